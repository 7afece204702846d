"""Node catalog backed by the bundled JSON documentation file."""

import json
import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_PATH = Path(__file__).parent / "data" / "node_docs.json"


class StaticNodeCatalog:
    """Serves documentation from an in-memory mapping loaded once."""

    def __init__(self, docs: Optional[dict[str, str]] = None):
        self._docs = dict(docs) if docs is not None else self._load(DEFAULT_CATALOG_PATH)

    @classmethod
    def from_file(cls, path: Path) -> "StaticNodeCatalog":
        return cls(cls._load(path))

    @staticmethod
    def _load(path: Path) -> dict[str, str]:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        docs = {}
        for node_type, entry in data.items():
            if isinstance(entry, dict):
                docs[node_type] = entry.get("documentation", "")
            else:
                docs[node_type] = str(entry)
        logger.debug(f"Loaded documentation for {len(docs)} node types from {path}")
        return docs

    def get_documentation(self, node_type: str) -> Optional[str]:
        return self._docs.get(node_type)

    def node_types(self) -> list[str]:
        return sorted(self._docs)

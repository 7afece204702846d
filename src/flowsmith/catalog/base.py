"""Lookup interface for node documentation."""

from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class NodeCatalog(Protocol):
    """Read-only source of node documentation.

    Implementations return ``None`` for node types they do not know and raise
    ``CatalogUnavailableError`` when their backing store cannot be reached.
    """

    def get_documentation(self, node_type: str) -> Optional[str]:
        """Return the documentation text for a node type, or None if unknown."""
        ...

"""Node catalog backed by a remote documentation service."""

import logging
from typing import Optional

import requests

from flowsmith.core.exceptions import CatalogUnavailableError

logger = logging.getLogger(__name__)


class HttpNodeCatalog:
    """Fetches node documentation with ``GET {base_url}/nodes/{node_type}``.

    The service answers 404 for unknown node types; any other failure means the
    catalog is unavailable.
    """

    def __init__(self, base_url: str, timeout: float = 10.0, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def get_documentation(self, node_type: str) -> Optional[str]:
        url = f"{self.base_url}/nodes/{node_type}"
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.Timeout as e:
            raise CatalogUnavailableError(f"Node catalog timed out after {self.timeout}s: {url}") from e
        except requests.RequestException as e:
            raise CatalogUnavailableError(f"Node catalog unreachable: {e}") from e

        if response.status_code == 404:
            logger.debug(f"Node catalog has no entry for '{node_type}'")
            return None
        if not response.ok:
            raise CatalogUnavailableError(f"Node catalog returned HTTP {response.status_code} for {url}")

        content_type = response.headers.get("content-type", "").lower()
        if "json" not in content_type:
            return response.text

        try:
            payload = response.json()
        except ValueError as e:
            raise CatalogUnavailableError(f"Node catalog returned invalid JSON for {url}") from e
        if isinstance(payload, dict):
            documentation = payload.get("documentation")
            return documentation if isinstance(documentation, str) else None
        return None

"""Read-only node documentation catalogs."""

from flowsmith.catalog.base import NodeCatalog
from flowsmith.catalog.http_catalog import HttpNodeCatalog
from flowsmith.catalog.static_catalog import StaticNodeCatalog

__all__ = ["HttpNodeCatalog", "NodeCatalog", "StaticNodeCatalog"]

"""Course catalog: courses, modules and lessons."""

from .events import CatalogChange, CatalogChangeKind, CatalogEventBus
from .repository import (
    CassandraCatalogRepository,
    CatalogRepository,
    InMemoryCatalogRepository,
)
from .service import CatalogService


__all__ = [
    "CassandraCatalogRepository",
    "CatalogChange",
    "CatalogChangeKind",
    "CatalogEventBus",
    "CatalogRepository",
    "CatalogService",
    "InMemoryCatalogRepository",
]

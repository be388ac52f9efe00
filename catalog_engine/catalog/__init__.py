"""Product Catalog module.

Provides the category tree, the category attribute registry, the
tabular upload parser and the catalog repositories.
"""

from catalog_engine.catalog.attributes import AttributeResult, CategoryAttributeRegistry
from catalog_engine.catalog.hierarchy import CategoryHierarchyService, CategoryNode, CategoryResult
from catalog_engine.catalog.models import (
    Category,
    CategoryAttributeDefinition,
    CategoryAttributeUsage,
    Product,
)
from catalog_engine.catalog.repository import CategoryRepository, ProductRepository
from catalog_engine.catalog.tabular import ParsedTable, RawRow, parse_tabular

__all__ = [
    # Models
    "Category",
    "CategoryAttributeDefinition",
    "CategoryAttributeUsage",
    "Product",
    # Repositories
    "CategoryRepository",
    "ProductRepository",
    # Hierarchy
    "CategoryHierarchyService",
    "CategoryNode",
    "CategoryResult",
    # Attributes
    "AttributeResult",
    "CategoryAttributeRegistry",
    # Parser
    "ParsedTable",
    "RawRow",
    "parse_tabular",
]

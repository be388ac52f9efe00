"""Catalog Engine.

Category hierarchy, category attribute registry and bulk product
import/export pipelines for marketplace sellers.
"""

__version__ = "0.1.0"

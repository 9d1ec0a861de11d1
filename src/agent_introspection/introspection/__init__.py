"""
Introspection Package
Discovery, connection tests and table import
"""
from .introspector import SchemaIntrospector
from .importer import ImportResult, TableImportPipeline, split_table_name

__all__ = [
    "SchemaIntrospector",
    "ImportResult",
    "TableImportPipeline",
    "split_table_name",
]

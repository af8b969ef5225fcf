"""Column schema discovery.

Turns one arbitrarily-shaped CRM sample record into the ordered list of
columns a sheet can show:
- walker: depth-first PathWalker over the tagged JSON tree
- resolvers: contact arrays and custom field shapes
- naming / read_only: display names and the read-only rule table
- registry: dedup, suppression and the picker's total order
- extraction: the never-raising entry point with its fallback column set
- selection: operations on a user's ordered column selection
"""

from src.sheetsync.columns.extraction import (
    ColumnExtractionError,
    extract_columns,
    fallback_columns,
)
from src.sheetsync.columns.naming import build_field_map, format_column_name
from src.sheetsync.columns.registry import ColumnRegistry
from src.sheetsync.columns.schemas import Column, EntityType, SelectedColumn

__all__ = [
    "Column",
    "ColumnExtractionError",
    "ColumnRegistry",
    "EntityType",
    "SelectedColumn",
    "build_field_map",
    "extract_columns",
    "fallback_columns",
    "format_column_name",
]

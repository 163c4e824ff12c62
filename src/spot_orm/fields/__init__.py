"""
Field declarations for spot-orm entities.
"""

from .column import Column, FieldDefinition, FieldIndexSet, get_column_marker

__all__ = [
    "Column",
    "FieldDefinition",
    "FieldIndexSet",
    "get_column_marker",
]

"""
core.resources — storage contract for the back office's business records.

Public API:
    read_resource, write_resource, create_resource, delete_resource
    display_label                         — human label for audit screens
    RESOURCE_TYPES, get_field_order, get_ui_path
"""

from core.resources.registry import (
    RESOURCE_TYPES,
    get_model,
    get_field_order,
    get_ui_path,
)
from core.resources.store import (
    read_resource,
    write_resource,
    create_resource,
    delete_resource,
    display_label,
    serialize_value,
)

__all__ = [
    'RESOURCE_TYPES',
    'get_model',
    'get_field_order',
    'get_ui_path',
    'read_resource',
    'write_resource',
    'create_resource',
    'delete_resource',
    'display_label',
    'serialize_value',
]

# countylocal/utils/__init__.py
"""
Utility functions package.

- general.py: result handling, timestamps, slugs, request parsing
"""

from .general import (
    _handle_service_result, utcnow, isoformat, parse_datetime, slugify, get_json_body,
    non_string_fields, invalid_type_result
)

__all__ = [
    '_handle_service_result',
    'utcnow',
    'isoformat',
    'parse_datetime',
    'slugify',
    'get_json_body',
    'non_string_fields',
    'invalid_type_result',
]

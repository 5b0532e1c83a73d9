# countylocal/utils/general.py
"""
General-purpose utility functions.

This module contains helpers for service result handling, timestamps,
slugs and request body parsing shared by the API blueprints and services.
"""

import re
from datetime import datetime, timezone
from flask import jsonify, request

_SLUG_STRIP = re.compile(r'[^a-z0-9]+')


def utcnow():
    """Naive UTC timestamp, the format every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def isoformat(value):
    return value.isoformat() if value else None


def parse_datetime(value):
    """ISO 8601 text to naive UTC. Raises ValueError when unparseable."""
    if value is None or isinstance(value, datetime):
        return value
    parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    if parsed.tzinfo is not None:
        # Stored as naive UTC
        parsed = (parsed - parsed.utcoffset()).replace(tzinfo=None)
    return parsed



def slugify(value):
    """'Joe's Pizza & Subs' -> 'joe-s-pizza-subs'"""
    return _SLUG_STRIP.sub('-', (value or '').lower()).strip('-')


def get_json_body():
    """Returns the request JSON body, or None when it is missing or malformed."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else None


def non_string_fields(data, fields):
    """Fields present in data whose value is neither null nor a string."""
    return [field for field in fields
            if data.get(field) is not None and not isinstance(data.get(field), str)]


def invalid_type_result(fields, expected='string'):
    return ({"success": False, "error": f"Fields must be of type {expected}", "invalid": fields}, 400)


def _handle_service_result(result, default_error_status=500, success_status=200):
    """
    Parses the result from a service function.
    If it's a tuple (error_dict, status_code), it uses the custom status code.
    Otherwise, it assumes success (success_status) or uses the default error status.

    Adds 'error_code' field to error responses for structured frontend handling.
    """
    # Check if the result is a tuple (result_dict, status_code)
    if isinstance(result, tuple) and len(result) == 2:
        result_dict, status_code = result
        if not result_dict.get("success", True):
            result_dict["error_code"] = result_dict.get("error_code", status_code)
        return jsonify(result_dict), status_code

    # If not a tuple, check the 'success' key in the dictionary
    if result.get("success"):
        return jsonify(result), success_status
    else:
        result["error_code"] = result.get("error_code", default_error_status)
        return jsonify(result), default_error_status

"""
Response parsing utilities for Elasticsearch hits.
"""

from typing import Dict, Any


# Hit metadata copied into projected rows
HIT_METADATA = ("_id", "_index", "_type")


def flatten_document(
    document: Dict[str, Any],
    prefix: str = "",
    max_depth: int = 10,
) -> Dict[str, Any]:
    """
    Flatten nested objects into dotted keys.

    Args:
        document: Document body (e.g. a hit's _source)
        prefix: Key prefix for the current level
        max_depth: Objects deeper than this are kept as values

    Returns:
        Flat dict, keys in document order
    """
    flat: Dict[str, Any] = {}
    for key, value in document.items():
        name = f"{prefix}.{key}" if prefix else key
        if isinstance(value, dict) and value and max_depth > 1:
            flat.update(flatten_document(value, name, max_depth - 1))
        else:
            flat[name] = value
    return flat


def unwrap_field_values(fields: Dict[str, Any]) -> Dict[str, Any]:
    """
    Unwrap docvalue/script field values.

    Elasticsearch returns every requested field as a list; single-element
    lists become scalars.

    Args:
        fields: The hit's "fields" object

    Returns:
        Dict of field name to value
    """
    unwrapped: Dict[str, Any] = {}
    for name, value in fields.items():
        if isinstance(value, list) and len(value) == 1:
            unwrapped[name] = value[0]
        else:
            unwrapped[name] = value
    return unwrapped


def hit_to_row(hit: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge a hit's metadata, flattened _source and fields into one row.

    Values from "fields" win over _source values of the same name.
    """
    row: Dict[str, Any] = {}
    for key in HIT_METADATA:
        if key in hit:
            row[key] = hit[key]
    row.update(flatten_document(hit.get("_source") or {}))
    row.update(unwrap_field_values(hit.get("fields") or {}))
    return row

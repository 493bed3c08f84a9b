"""
Projection of records into plain dicts and back.

``to_plain_object`` is what templating and network layers consume: one key
per declared property and aggregation, across the whole type chain. The
shallow form returns the live aggregation lists (no defensive copy). The deep
form also projects nested records and therefore builds new lists.
"""
from typing import Any, Dict, Mapping, Optional, Set

from liteclass.schema import get_schema


def _project(value: Any, visiting: Set[int]) -> Any:
    from liteclass.record import Record

    if isinstance(value, Record):
        # A destroyed record still referenced by a live one projects as None
        if value.is_destroyed:
            return None
        return _to_plain(value, True, visiting)
    if isinstance(value, list):
        return [_project(item, visiting) for item in value]
    if isinstance(value, tuple):
        return tuple(_project(item, visiting) for item in value)
    if isinstance(value, dict):
        return {key: _project(item, visiting) for key, item in value.items()}
    return value


def _to_plain(record: Any, deep: bool, visiting: Set[int]) -> Dict[str, Any]:
    schema = get_schema(record)
    if deep:
        if id(record) in visiting:
            raise ValueError(f"Circular reference detected at {record!r}")
        visiting.add(id(record))

    data: Dict[str, Any] = {}
    for name in schema.properties:
        value = record.get_property(name)
        data[name] = _project(value, visiting) if deep else value
    for name in schema.aggregations:
        items = record.get_aggregation(name)
        data[name] = _project(items, visiting) if deep else items

    if deep:
        visiting.discard(id(record))
    return data


def to_plain_object(record: Any, deep: bool = False) -> Dict[str, Any]:
    """
    Snapshot the current state of ``record``.

    Args:
        record: Any record instance.
        deep: Also project records nested in property values and aggregation
              items (raises ValueError on reference cycles).

    Returns:
        field name -> value, properties first, then aggregations.
    """
    return _to_plain(record, deep, set())


def from_plain_object(record_type: type, data: Optional[Mapping[str, Any]] = None) -> Any:
    """Construct a ``record_type`` instance from a plain snapshot."""
    return record_type(dict(data or {}))

"""
Schema composition for record types.

A record type carries two independent field namespaces, properties and
aggregations. Each type declares its own fields; the merged schema walks the
MRO so that a lookup by name finds the nearest declaration, exactly like
attribute lookup on the class itself. A subtype declaration shadows an
inherited one of the same name even when the kinds differ, so the merged
namespaces never share a name.

Usage (class statement syntax - PREFERRED):
    class Item(Record, properties={"done": {"default_value": False, "validator": bool}}):
        pass

    class TodoList(Record, aggregations={"items": {"validator": Item}}):
        pass

Usage (factory function):
    Item = compose(Record, properties={"done": PropertyDescriptor(False, bool)}, name="Item")

Usage (static extend, available on every record type):
    Item = Record.extend(properties={...}, members={"toggle": toggle})

The merged tables are exposed as read-only mappings and cannot be re-bound
after the type is created; neither can static members wrapped in readonly().
"""
from dataclasses import dataclass
from types import FunctionType, MappingProxyType
import sys
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple
import logging

from liteclass.descriptors import (
    AggregationDescriptor,
    PropertyDescriptor,
    normalize_aggregation,
    normalize_property,
    normalize_table,
)
from liteclass.errors import SchemaError

logger = logging.getLogger(__name__)

_PROTECTED_ATTRIBUTES = frozenset({
    '__schema__',
    '__properties__',
    '__aggregations__',
    '__own_properties__',
    '__own_aggregations__',
    '__readonly__',
})


class readonly:
    """Marker for a static member that may not be re-assigned on the type."""
    __slots__ = ('value',)

    def __init__(self, value: Any):
        self.value = value

    def __repr__(self) -> str:
        return f"readonly({self.value!r})"


@dataclass(frozen=True)
class Schema:
    """Merged, immutable field tables of a record type."""
    properties: Mapping[str, PropertyDescriptor]
    aggregations: Mapping[str, AggregationDescriptor]

    def has_property(self, name: str) -> bool:
        return name in self.properties

    def has_aggregation(self, name: str) -> bool:
        return name in self.aggregations

    @property
    def field_names(self) -> Tuple[str, ...]:
        return tuple(self.properties) + tuple(self.aggregations)

    def __contains__(self, name: object) -> bool:
        return name in self.properties or name in self.aggregations


def merge_schema(mro: Tuple[type, ...]) -> Schema:
    """Merge per-type declarations along ``mro`` (nearest declaration wins)."""
    properties: Dict[str, PropertyDescriptor] = {}
    aggregations: Dict[str, AggregationDescriptor] = {}
    seen = set()
    for klass in mro:
        own_properties = klass.__dict__.get('__own_properties__')
        own_aggregations = klass.__dict__.get('__own_aggregations__')
        if own_properties is None and own_aggregations is None:
            continue
        own_properties = own_properties or {}
        own_aggregations = own_aggregations or {}
        for name, descriptor in own_properties.items():
            if name not in seen:
                properties[name] = descriptor
        for name, descriptor in own_aggregations.items():
            if name not in seen:
                aggregations[name] = descriptor
        seen.update(own_properties)
        seen.update(own_aggregations)
    return Schema(MappingProxyType(properties), MappingProxyType(aggregations))


class RecordMeta(type):
    """
    Metaclass for record types.

    Accepts ``properties=``, ``aggregations=``, ``statics=`` and ``registry=``
    as class keywords, normalizes the declarations and attaches the merged
    schema to the new type.
    """

    def __new__(mcs, name: str, bases: tuple, namespace: dict,
                properties: Optional[Mapping[str, Any]] = None,
                aggregations: Optional[Mapping[str, Any]] = None,
                statics: Optional[Mapping[str, Any]] = None,
                registry: Any = None,
                **kwargs):
        own_properties = normalize_table(properties, normalize_property)
        own_aggregations = normalize_table(aggregations, normalize_aggregation)

        clash = set(own_properties) & set(own_aggregations)
        if clash:
            raise SchemaError(
                f"{name}: {sorted(clash)} declared both as property and as aggregation"
            )

        namespace = dict(namespace)
        for static_name, value in (statics or {}).items():
            if isinstance(value, FunctionType):
                value = staticmethod(value)
            elif isinstance(value, readonly) and isinstance(value.value, FunctionType):
                value = readonly(staticmethod(value.value))
            namespace[static_name] = value

        readonly_names = set()
        for base in bases:
            readonly_names.update(getattr(base, '__readonly__', ()))
        for attr_name, value in list(namespace.items()):
            if isinstance(value, readonly):
                readonly_names.add(attr_name)
                namespace[attr_name] = value.value

        cls = super().__new__(mcs, name, bases, namespace, **kwargs)

        type.__setattr__(cls, '__own_properties__', MappingProxyType(own_properties))
        type.__setattr__(cls, '__own_aggregations__', MappingProxyType(own_aggregations))
        schema = merge_schema(cls.__mro__)
        type.__setattr__(cls, '__schema__', schema)
        type.__setattr__(cls, '__properties__', schema.properties)
        type.__setattr__(cls, '__aggregations__', schema.aggregations)
        type.__setattr__(cls, '__readonly__', frozenset(readonly_names))
        if registry is not None:
            type.__setattr__(cls, '__registry__', registry)

        logger.debug(
            f"Composed {name}: properties={list(schema.properties)} aggregations={list(schema.aggregations)}"
        )
        return cls

    def __init__(cls, name: str, bases: tuple, namespace: dict, **kwargs):
        # Class keywords were consumed by __new__
        super().__init__(name, bases, namespace)

    def __setattr__(cls, name: str, value: Any) -> None:
        if name in _PROTECTED_ATTRIBUTES or name in cls.__dict__.get('__readonly__', ()):
            raise AttributeError(f"{cls.__name__}.{name} is read-only")
        super().__setattr__(name, value)

    def __delattr__(cls, name: str) -> None:
        if name in _PROTECTED_ATTRIBUTES or name in cls.__dict__.get('__readonly__', ()):
            raise AttributeError(f"{cls.__name__}.{name} is read-only")
        super().__delattr__(name)

    def __repr__(cls) -> str:
        schema = cls.__dict__.get('__schema__')
        if schema is None:
            return super().__repr__()
        props = ', '.join(schema.properties)
        aggs = ', '.join(schema.aggregations)
        return f"<record type '{cls.__name__}' properties=({props}) aggregations=({aggs})>"


def compose(parent: Optional[type] = None,
            properties: Optional[Mapping[str, Any]] = None,
            aggregations: Optional[Mapping[str, Any]] = None,
            members: Optional[Mapping[str, Any]] = None,
            statics: Optional[Mapping[str, Any]] = None,
            *,
            name: Optional[str] = None,
            registry: Any = None,
            module: Optional[str] = None) -> type:
    """
    Create a record type from a parent type and field declarations.

    Args:
        parent: Record type to inherit from (defaults to Record).
        properties: name -> property declaration.
        aggregations: name -> aggregation declaration.
        members: Instance members (methods, class attributes). An ``__init__``
                 here overrides construction and must call the parent
                 ``__init__`` with the same settings.
        statics: Static members; functions become staticmethods, values wrapped
                 in readonly() cannot be re-assigned.
        name: Name of the new type (defaults to the parent's name).
        registry: Identity registry for instances of the new type.
        module: Value of ``__module__`` (defaults to the calling module).

    Returns:
        The new record type.
    """
    if parent is None:
        from liteclass.record import Record
        parent = Record
    if not isinstance(parent, RecordMeta):
        raise SchemaError(f"Parent must be a record type, got {parent!r}")

    type_name = name or parent.__name__
    namespace = dict(members or {})
    if module is None:
        module = sys._getframe(1).f_globals.get('__name__', parent.__module__)
    namespace.setdefault('__module__', module)
    namespace.setdefault('__qualname__', type_name)
    metaclass = type(parent)
    return metaclass(
        type_name,
        (parent,),
        namespace,
        properties=properties,
        aggregations=aggregations,
        statics=statics,
        registry=registry,
    )


def get_schema(record_type: type) -> Schema:
    """Return the merged schema of a record type (or of a record's type)."""
    if not isinstance(record_type, RecordMeta):
        record_type = type(record_type)
    return record_type.__schema__


def readonly_members(record_type: type) -> FrozenSet[str]:
    return getattr(record_type, '__readonly__', frozenset())

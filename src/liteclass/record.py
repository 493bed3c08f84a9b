"""
Record: the base of all record types.

A record holds one value per declared property and one ordered list per
declared aggregation. Every write goes through the type's schema:

- writing an undeclared field raises UnknownFieldError;
- a value rejected by its validator is silently ignored (no state change,
  no event);
- an accepted write emits one ChangeEvent under three names
  (``change``, ``change:<field>``, ``change:<field>:<action>``) unless the
  caller passes ``suppress_event=True``.

Reads are lenient: ``get_property``/``get_aggregation`` return None for
undeclared names, while the positional reads (``get_aggregation_at``,
``index_of_aggregation``, ``aggregation_as_set``) raise UnknownFieldError.

Lifecycle:
    1. identity is allocated (honoring a preferred id under the "#" key)
    2. the emitter is initialized
    3. every field is reset to its default, then settings are applied,
       without events
    4. the ``init`` hook runs

    ``destroy()`` detaches listeners, destroys contained records, releases
    the identifier and marks the record unusable.

Subtypes that override ``__init__`` must call ``super().__init__(settings)``
before touching any field.
"""
from collections.abc import Mapping, Sequence, Set
import copy
import logging
import operator
import sys
from typing import AbstractSet, Any, Dict, Iterable, Iterator, List, Optional, Tuple

from liteclass.config import ID_KEY, get_current_registry
from liteclass.descriptors import AggregationDescriptor, PropertyDescriptor
from liteclass.errors import RecordDestroyedError, UnknownFieldError
from liteclass.events import CHANGE, UPDATE, ChangeEvent, EventEmitter
from liteclass.schema import RecordMeta, Schema, compose, readonly
from liteclass.uid import IdentityRegistry

logger = logging.getLogger(__name__)

# Property values copied (one level) by clone()
_MUTABLE_CONTAINERS = (list, dict, set, bytearray)


def _same_value(current: Any, value: Any) -> bool:
    if current is value:
        return True
    if type(current) is not type(value):
        return False
    return bool(current == value)


def _coerce_index(index: Any) -> Optional[int]:
    """Return ``index`` as an int, or None if it is not an integer."""
    if isinstance(index, bool):
        return None
    try:
        return operator.index(index)
    except TypeError:
        return None


def _is_item_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray))


def _destroy_contained(value: Any) -> None:
    if isinstance(value, type):
        return
    destroy = getattr(value, 'destroy', None)
    if callable(destroy):
        destroy()


class ItemSet(Set):
    """Membership view over items that are not all hashable.

    Hashable items are looked up by hash; the others by identity, then
    equality. Iteration keeps first-occurrence order.
    """

    def __init__(self, items: Iterable[Any] = ()):
        self._hashed = set()
        self._unhashable: List[Any] = []
        self._order: List[Any] = []
        for item in items:
            if item in self:
                continue
            try:
                self._hashed.add(item)
            except TypeError:
                self._unhashable.append(item)
            self._order.append(item)

    def __contains__(self, value: object) -> bool:
        try:
            if value in self._hashed:
                return True
        except TypeError:
            pass
        return any(item is value or item == value for item in self._unhashable)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._order)

    def __len__(self) -> int:
        return len(self._order)

    def __repr__(self) -> str:
        return f"ItemSet({self._order!r})"


def _extend(cls, properties=None, aggregations=None, members=None, statics=None, *, name=None, registry=None):
    """Compose a subtype of ``cls``."""
    return compose(cls, properties, aggregations, members, statics, name=name, registry=registry,
                   module=sys._getframe(1).f_globals.get('__name__'))


def _get_instance_by_id(cls, uid: str) -> Optional['Record']:
    """Return the live record registered under ``uid``."""
    return cls.resolve_registry().lookup(uid)


def _get_id_of(instance: Any) -> Optional[str]:
    """Return the identifier of a record, or None for anything else."""
    if isinstance(instance, Record):
        return instance.uid
    return None


class Record(EventEmitter, metaclass=RecordMeta, statics={
    'extend': readonly(classmethod(_extend)),
    'get_instance_by_id': readonly(classmethod(_get_instance_by_id)),
    'get_id_of': readonly(_get_id_of),
}):
    """Schema-validated record with change notifications."""

    __registry__: Optional[IdentityRegistry] = None

    def __init__(self, settings: Optional[Mapping] = None, **kwargs: Any):
        if settings is not None and not isinstance(settings, Mapping):
            raise TypeError(f"{type(self).__name__} settings must be a mapping, got {type(settings).__name__}")
        settings = dict(settings or {})
        settings.update(kwargs)
        preferred_id = settings.pop(ID_KEY, None)

        if getattr(self, '_uid', None) is None:
            self._registry = type(self).resolve_registry()
            self._uid = self._registry.register(self, preferred_id)

        EventEmitter.__init__(self)
        self._destroyed = False
        self._properties: Dict[str, Any] = {}
        self._aggregations: Dict[str, List[Any]] = {}

        self.apply_settings(settings, initialize_first=True, suppress_event=True)
        self.init(settings)

    @classmethod
    def resolve_registry(cls) -> IdentityRegistry:
        """Registry used by this type: its own, else the active one."""
        if cls.__registry__ is not None:
            return cls.__registry__
        return get_current_registry()

    # ========== LIFECYCLE ==========

    def init(self, settings: Optional[Dict[str, Any]] = None) -> 'Record':
        """Construction hook, called once the settings are applied."""
        return self

    def initialize(self, settings: Optional[Dict[str, Any]] = None) -> 'Record':
        return self.init(settings)

    def destroy(self) -> None:
        """Release every resource held by this record.

        Contained values exposing ``destroy()`` are destroyed as well.
        Calling it again is a no-op.
        """
        if getattr(self, '_destroyed', True):
            return
        self._destroyed = True
        self.off()

        properties, self._properties = self._properties, {}
        aggregations, self._aggregations = self._aggregations, {}
        for value in properties.values():
            _destroy_contained(value)
        for items in aggregations.values():
            for item in list(items):
                _destroy_contained(item)

        self._registry.release(self._uid)
        logger.debug(f"Destroyed {type(self).__name__}: id={self._uid}")

    @property
    def is_destroyed(self) -> bool:
        return self._destroyed

    @property
    def uid(self) -> str:
        return self._uid

    def get_uid(self) -> str:
        return self._uid

    def _check_alive(self) -> None:
        if self._destroyed:
            raise RecordDestroyedError(self._uid)

    # ========== SCHEMA LOOKUP ==========

    @property
    def schema(self) -> Schema:
        return type(self).__schema__

    def _property_descriptor(self, name: str) -> PropertyDescriptor:
        self._check_alive()
        descriptor = type(self).__properties__.get(name)
        if descriptor is None:
            raise UnknownFieldError(name, 'property', type(self))
        return descriptor

    def _aggregation_items(self, name: str) -> Tuple[AggregationDescriptor, List[Any]]:
        self._check_alive()
        descriptor = type(self).__aggregations__.get(name)
        if descriptor is None:
            raise UnknownFieldError(name, 'aggregation', type(self))
        return descriptor, self._aggregations.setdefault(name, [])

    def _notify(self, event: ChangeEvent) -> None:
        for event_name in event.event_names:
            self.emit(event_name, event)

    # ========== READS ==========

    def get_property(self, name: str) -> Any:
        """Current value of property ``name``, or None if it is not declared."""
        self._check_alive()
        descriptor = type(self).__properties__.get(name)
        if descriptor is None:
            return None
        if name not in self._properties:
            return descriptor.default()
        return self._properties[name]

    def get_aggregation(self, name: str) -> Optional[List[Any]]:
        """The live list of aggregation ``name``, or None if it is not declared."""
        self._check_alive()
        if name not in type(self).__aggregations__:
            return None
        return self._aggregations.setdefault(name, [])

    def get(self, name: str) -> Any:
        """Property value or aggregation list named ``name``, else None."""
        if name in type(self).__properties__:
            return self.get_property(name)
        return self.get_aggregation(name)

    def get_aggregation_at(self, name: str, index: int) -> Any:
        """Item at ``index``, or None if the index is outside the sequence."""
        _, items = self._aggregation_items(name)
        position = _coerce_index(index)
        if position is None or not 0 <= position < len(items):
            return None
        return items[position]

    def index_of_aggregation(self, name: str, item: Any) -> int:
        """Position of the first item equal to ``item``, or -1."""
        _, items = self._aggregation_items(name)
        try:
            return items.index(item)
        except ValueError:
            return -1

    def aggregation_as_set(self, name: str) -> AbstractSet[Any]:
        """Membership view of an aggregation.

        A frozenset when every item is hashable, else an ItemSet.
        """
        _, items = self._aggregation_items(name)
        try:
            return frozenset(items)
        except TypeError:
            return ItemSet(items)

    # ========== PROPERTY WRITES ==========

    def set_property(self, name: str, value: Any, *, suppress_event: bool = False) -> 'Record':
        descriptor = self._property_descriptor(name)
        if not descriptor.validate(value):
            logger.debug(f"{type(self).__name__}.{name}: rejected {value!r}")
            return self

        old_value = self.get_property(name)
        if name in self._properties and _same_value(old_value, value):
            return self

        self._properties[name] = value
        if not suppress_event:
            self._notify(ChangeEvent(
                source=self,
                action='set',
                property=name,
                old_value=old_value,
                new_value=value,
            ))
        return self

    # ========== AGGREGATION WRITES ==========

    def _accept(self, name: str, descriptor: AggregationDescriptor, item: Any) -> bool:
        if descriptor.validate(item):
            return True
        logger.debug(f"{type(self).__name__}.{name}: rejected item {item!r}")
        return False

    def add_aggregation(self, name: str, item: Any, *, suppress_event: bool = False) -> 'Record':
        """Append ``item``."""
        descriptor, items = self._aggregation_items(name)
        if not self._accept(name, descriptor, item):
            return self
        items.append(item)
        if not suppress_event:
            self._notify(ChangeEvent(source=self, action='add', aggregation=name, value=item))
        return self

    def add_first_aggregation(self, name: str, item: Any, *, suppress_event: bool = False) -> 'Record':
        """Prepend ``item``."""
        descriptor, items = self._aggregation_items(name)
        if not self._accept(name, descriptor, item):
            return self
        items.insert(0, item)
        if not suppress_event:
            self._notify(ChangeEvent(source=self, action='addFirst', aggregation=name, value=item))
        return self

    def insert_aggregation_at(self, name: str, index: int, item: Any, *, suppress_event: bool = False) -> 'Record':
        """Insert ``item`` before ``index``; an index outside ``[0, len)`` appends."""
        descriptor, items = self._aggregation_items(name)
        if not self._accept(name, descriptor, item):
            return self
        position = _coerce_index(index)
        if position is None or not 0 <= position < len(items):
            position = len(items)
        items.insert(position, item)
        if not suppress_event:
            self._notify(ChangeEvent(source=self, action='insertAt', aggregation=name, value=item, index=position))
        return self

    def remove_first_aggregation(self, name: str, *, suppress_event: bool = False) -> Any:
        """Remove and return the first item (None when empty; the event still fires)."""
        _, items = self._aggregation_items(name)
        value = items.pop(0) if items else None
        if not suppress_event:
            self._notify(ChangeEvent(source=self, action='removeFirst', aggregation=name, value=value))
        return value

    def remove_last_aggregation(self, name: str, *, suppress_event: bool = False) -> Any:
        """Remove and return the last item (None when empty; the event still fires)."""
        _, items = self._aggregation_items(name)
        value = items.pop() if items else None
        if not suppress_event:
            self._notify(ChangeEvent(source=self, action='removeLast', aggregation=name, value=value))
        return value

    def remove_aggregation(self, name: str, item: Any, *, suppress_event: bool = False) -> Any:
        """Remove the first item equal to ``item`` and return it, or None if absent."""
        _, items = self._aggregation_items(name)
        try:
            position = items.index(item)
        except ValueError:
            return None
        value = items.pop(position)
        if not suppress_event:
            self._notify(ChangeEvent(source=self, action='remove', aggregation=name, value=value, index=position))
        return value

    def remove_aggregation_at(self, name: str, index: int, *, suppress_event: bool = False) -> Any:
        """Remove and return the item at ``index`` (0 included), or None if the index is invalid."""
        _, items = self._aggregation_items(name)
        position = _coerce_index(index)
        if position is None or not 0 <= position < len(items):
            return None
        value = items.pop(position)
        if not suppress_event:
            self._notify(ChangeEvent(source=self, action='removeAt', aggregation=name, value=value, index=position))
        return value

    def remove_all_aggregation(self, name: str, *, suppress_event: bool = False) -> List[Any]:
        """Empty the aggregation in place and return the removed items.

        The event carries the removed items as a tuple.
        """
        _, items = self._aggregation_items(name)
        removed = items[:]
        items.clear()
        if not suppress_event:
            self._notify(ChangeEvent(source=self, action='removeAll', aggregation=name, value=tuple(removed)))
        return removed

    # ========== BULK SETTINGS ==========

    def apply_settings(self, settings: Optional[Mapping] = None, *,
                       initialize_first: bool = False,
                       suppress_event: bool = False,
                       schema: Optional[Schema] = None) -> 'Record':
        """Apply several field values at once.

        Args:
            settings: field name -> value. Unknown names are ignored. For an
                      aggregation, a list or tuple is added item by item
                      (in order); any other value is added as a single item.
            initialize_first: Reset every field to its default first (never
                              emits events).
            suppress_event: Skip the consolidated ``change``/``change:update``
                            event emitted at the end.
            schema: Field tables to apply against instead of the type's own.

        Returns:
            self
        """
        self._check_alive()
        schema = schema if schema is not None else type(self).__schema__
        # Copy sequences up front: a value may be one of our own live lists
        pending = []
        for name, value in (settings or {}).items():
            is_sequence = name in schema.aggregations and _is_item_sequence(value)
            pending.append((name, list(value) if is_sequence else value, is_sequence))

        if initialize_first:
            for name, descriptor in schema.properties.items():
                self._properties[name] = descriptor.default()
            for name in schema.aggregations:
                items = self._aggregations.get(name)
                if items is None:
                    self._aggregations[name] = []
                else:
                    items.clear()

        for name, value, is_sequence in pending:
            if name in schema.properties:
                self.set_property(name, value, suppress_event=True)
            elif name in schema.aggregations:
                if is_sequence:
                    for item in value:
                        self.add_aggregation(name, item, suppress_event=True)
                else:
                    self.add_aggregation(name, value, suppress_event=True)
            else:
                logger.debug(f"{type(self).__name__}: ignoring unknown setting {name!r}")

        if not suppress_event:
            event = ChangeEvent(source=self, action=UPDATE)
            self.emit(CHANGE, event)
            self.emit(f"{CHANGE}:{UPDATE}", event)
        return self

    # ========== SERIALIZATION ==========

    def to_plain_object(self, deep: bool = False) -> Dict[str, Any]:
        from liteclass.serializer import to_plain_object
        return to_plain_object(self, deep=deep)

    def clone(self) -> 'Record':
        """New record of the same type (with its own id) holding the same values.

        Aggregation lists and list, dict, set or bytearray property values are
        copied one level deep; the items themselves are shared.
        """
        data = self.to_plain_object()
        for name in type(self).__properties__:
            if isinstance(data[name], _MUTABLE_CONTAINERS):
                data[name] = copy.copy(data[name])
        return type(self)(data)

    def __repr__(self) -> str:
        state = " destroyed" if getattr(self, '_destroyed', False) else ""
        return f"<{type(self).__name__} id={getattr(self, '_uid', None)!r}{state}>"

    # Aliases
    set = set_property
    add = add_aggregation
    add_first = add_first_aggregation
    insert_at = insert_aggregation_at
    at = get_aggregation_at
    index_of = index_of_aggregation
    to_set = aggregation_as_set
    remove = remove_aggregation
    remove_first = remove_first_aggregation
    remove_last = remove_last_aggregation
    remove_at = remove_aggregation_at
    remove_all = remove_all_aggregation
    apply = apply_settings
    to_dict = to_plain_object

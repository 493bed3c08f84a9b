"""
Schema-validated records with change notifications.

liteclass lets you declare record types with validated scalar properties and
validated ordered aggregations, instantiate them, and observe every mutation
through a hierarchy of synchronous change events.

Key Features:
- Record types composed through inheritance (class keywords, compose(), extend())
- Validators gate every write; rejected values are silently ignored
- Three-tier change events: change, change:<field>, change:<field>:<action>
- Process-wide identity registry with collision-safe id allocation
- Bulk settings application and plain-dict projection

Quick Start:
    >>> from liteclass import Record
    >>>
    >>> class Item(Record, properties={
    ...     "done": {"default_value": False, "validator": bool},
    ... }):
    ...     pass
    >>>
    >>> class TodoList(Record, aggregations={"items": {"validator": Item}}):
    ...     pass
    >>>
    >>> todo = TodoList()
    >>> todo.on("change:items:add", lambda event: print(event.value))
    >>> todo.add_aggregation("items", Item(done=True))

Modules:
    - record: Record base class (state, mutation API, lifecycle)
    - schema: Record type composition and merged schemas
    - descriptors: Property and aggregation descriptors
    - events: ChangeEvent and the synchronous EventEmitter
    - uid: Identity registry
    - serializer: Plain-dict projection
    - config: Active registry and reserved settings key
    - errors: Exception taxonomy
"""

# Records
from liteclass.record import Record

# Schema
from liteclass.schema import (
    RecordMeta,
    Schema,
    compose,
    get_schema,
    readonly,
)

# Descriptors
from liteclass.descriptors import (
    PropertyDescriptor,
    AggregationDescriptor,
    accept_all,
)

# Events
from liteclass.events import ChangeEvent, EventEmitter, change_event_names

# Identity
from liteclass.uid import IdentityRegistry

# Serialization
from liteclass.serializer import to_plain_object, from_plain_object

# Configuration
from liteclass.config import (
    ID_KEY,
    get_default_registry,
    set_default_registry,
    get_current_registry,
    registry_context,
)

# Errors
from liteclass.errors import (
    LiteClassError,
    UnknownFieldError,
    SchemaError,
    RecordDestroyedError,
)

__all__ = [
    # Records
    'Record',
    # Schema
    'RecordMeta',
    'Schema',
    'compose',
    'get_schema',
    'readonly',
    # Descriptors
    'PropertyDescriptor',
    'AggregationDescriptor',
    'accept_all',
    # Events
    'ChangeEvent',
    'EventEmitter',
    'change_event_names',
    # Identity
    'IdentityRegistry',
    # Serialization
    'to_plain_object',
    'from_plain_object',
    # Configuration
    'ID_KEY',
    'get_default_registry',
    'set_default_registry',
    'get_current_registry',
    'registry_context',
    # Errors
    'LiteClassError',
    'UnknownFieldError',
    'SchemaError',
    'RecordDestroyedError',
]

__version__ = '1.0.0'
__description__ = 'Schema-validated records with change notifications'

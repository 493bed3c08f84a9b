"""
Field descriptors for record types.

A property descriptor declares a single validated value with a default; an
aggregation descriptor declares an ordered, validated sequence of items.
Both are frozen: once a record type is composed its schema cannot change.

Declarations are accepted in several shapes and normalized here:
    None                                   -> accept anything, default None
    {"default_value": 0, "validator": f}   -> mapping form
    PropertyDescriptor(0, validator=int)   -> already normalized
A validator that is a class (or tuple of classes) becomes an isinstance check.
"""
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

from liteclass.errors import SchemaError

Validator = Callable[[Any], bool]


def accept_all(value: Any) -> bool:
    """Default validator."""
    return True


def _isinstance_validator(types) -> Validator:
    def validator(value: Any) -> bool:
        return isinstance(value, types)
    validator.__name__ = f"isinstance_{getattr(types, '__name__', 'types')}"
    return validator


def normalize_validator(validator: Any) -> Validator:
    """Turn a declared validator into a predicate."""
    if validator is None:
        return accept_all
    if isinstance(validator, type) or (
        isinstance(validator, tuple) and validator and all(isinstance(t, type) for t in validator)
    ):
        return _isinstance_validator(validator)
    if not callable(validator):
        raise SchemaError(f"Validator must be callable or a type, got {validator!r}")
    return validator


@dataclass(frozen=True)
class PropertyDescriptor:
    """Declaration of a scalar field.

    ``default_factory`` takes precedence over ``default_value`` and is called
    once per instance, so mutable defaults are never shared.
    """
    default_value: Any = None
    validator: Validator = accept_all
    default_factory: Optional[Callable[[], Any]] = None

    def __post_init__(self):
        object.__setattr__(self, 'validator', normalize_validator(self.validator))
        if self.default_factory is not None and not callable(self.default_factory):
            raise SchemaError(f"default_factory must be callable, got {self.default_factory!r}")

    def default(self) -> Any:
        if self.default_factory is not None:
            return self.default_factory()
        return self.default_value

    def validate(self, value: Any) -> bool:
        return bool(self.validator(value))


@dataclass(frozen=True)
class AggregationDescriptor:
    """Declaration of an ordered collection field."""
    validator: Validator = accept_all

    def __post_init__(self):
        object.__setattr__(self, 'validator', normalize_validator(self.validator))

    def validate(self, item: Any) -> bool:
        return bool(self.validator(item))


def normalize_property(name: str, declaration: Any) -> PropertyDescriptor:
    """Build a PropertyDescriptor from any accepted declaration shape."""
    if isinstance(declaration, PropertyDescriptor):
        return declaration
    if declaration is None:
        return PropertyDescriptor()
    if isinstance(declaration, Mapping):
        unknown = set(declaration) - {'default_value', 'validator', 'default_factory'}
        if unknown:
            raise SchemaError(f"Property {name!r} has unknown descriptor keys: {sorted(unknown)}")
        return PropertyDescriptor(
            default_value=declaration.get('default_value'),
            validator=declaration.get('validator'),
            default_factory=declaration.get('default_factory'),
        )
    raise SchemaError(f"Property {name!r} must be declared with a mapping or PropertyDescriptor, got {declaration!r}")


def normalize_aggregation(name: str, declaration: Any) -> AggregationDescriptor:
    """Build an AggregationDescriptor from any accepted declaration shape."""
    if isinstance(declaration, AggregationDescriptor):
        return declaration
    if declaration is None:
        return AggregationDescriptor()
    if isinstance(declaration, Mapping):
        unknown = set(declaration) - {'validator'}
        if unknown:
            raise SchemaError(f"Aggregation {name!r} has unknown descriptor keys: {sorted(unknown)}")
        return AggregationDescriptor(validator=declaration.get('validator'))
    raise SchemaError(f"Aggregation {name!r} must be declared with a mapping or AggregationDescriptor, got {declaration!r}")


def normalize_table(declarations: Optional[Mapping[str, Any]], normalize) -> Dict[str, Any]:
    """Normalize a name -> declaration mapping."""
    if declarations is None:
        return {}
    if not isinstance(declarations, Mapping):
        raise SchemaError(f"Field declarations must be a mapping, got {type(declarations).__name__}")
    table = {}
    for name, declaration in declarations.items():
        if not isinstance(name, str) or not name:
            raise SchemaError(f"Field names must be non-empty strings, got {name!r}")
        table[name] = normalize(name, declaration)
    return table

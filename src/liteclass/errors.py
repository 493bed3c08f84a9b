"""
Exception taxonomy for liteclass.

Validation rejections are deliberately NOT exceptions: a validator returning
False turns the write into a silent no-op. Only structural mistakes raise.
"""
from typing import Optional


class LiteClassError(Exception):
    """Base class for all liteclass errors."""


class UnknownFieldError(LiteClassError, KeyError):
    """Raised when a write (or a positional read) names an undeclared field."""

    def __init__(self, field_name: str, kind: str, record_type: Optional[type] = None):
        self.field_name = field_name
        self.kind = kind
        self.record_type = record_type
        type_name = record_type.__name__ if record_type is not None else "record"
        self.message = f"{kind.capitalize()} {field_name!r} is not declared on {type_name}"
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


class SchemaError(LiteClassError, TypeError):
    """Raised when a record type declaration is malformed."""


class RecordDestroyedError(LiteClassError, RuntimeError):
    """Raised when a destroyed record is used."""

    def __init__(self, uid: Optional[str]):
        self.uid = uid
        super().__init__(f"Record {uid!r} has been destroyed")

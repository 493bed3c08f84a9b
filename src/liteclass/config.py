"""
Ambient configuration for liteclass.

Holds the process-wide default identity registry and a contextvars-based
override so that tests or embedding applications can route new records
into an isolated registry without threading it through every constructor.

Resolution order for a new record:
    type-level ``registry=`` axis -> ``registry_context()`` -> default registry
"""

import contextvars
import logging
from contextlib import contextmanager
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from liteclass.uid import IdentityRegistry

logger = logging.getLogger(__name__)

# Reserved settings key carrying a caller-preferred identifier
ID_KEY = "#"

_default_registry: Optional['IdentityRegistry'] = None

current_registry: contextvars.ContextVar = contextvars.ContextVar('current_registry', default=None)


def get_default_registry() -> 'IdentityRegistry':
    """Return the process-wide registry, creating it on first use."""
    global _default_registry
    if _default_registry is None:
        from liteclass.uid import IdentityRegistry
        _default_registry = IdentityRegistry()
    return _default_registry


def set_default_registry(registry: Optional['IdentityRegistry']) -> None:
    """Replace the process-wide registry (None recreates it lazily)."""
    global _default_registry
    _default_registry = registry
    logger.debug(f"Default identity registry set to {registry!r}")


def get_current_registry() -> 'IdentityRegistry':
    """Return the registry active in this context."""
    registry = current_registry.get()
    return registry if registry is not None else get_default_registry()


@contextmanager
def registry_context(registry: 'IdentityRegistry'):
    """
    Route record construction inside the block to ``registry``.

    Args:
        registry: The registry that new records register with.

    Example:
        with registry_context(IdentityRegistry()) as reg:
            item = Item()
            assert reg.lookup(item.uid) is item
    """
    token = current_registry.set(registry)
    try:
        yield registry
    finally:
        current_registry.reset(token)

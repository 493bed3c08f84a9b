"""Pytest configuration and shared fixtures."""
import pytest

from liteclass import IdentityRegistry
import liteclass.config as config_module


@pytest.fixture(autouse=True)
def isolated_registry():
    """Give every test its own default identity registry."""
    original = config_module._default_registry
    registry = IdentityRegistry()
    config_module.set_default_registry(registry)

    yield registry

    config_module._default_registry = original


@pytest.fixture
def recorder():
    """Listener collecting (event_name, event) pairs."""
    class Recorder:
        def __init__(self):
            self.calls = []

        def listen(self, emitter, *event_names):
            for name in event_names:
                emitter.on(name, lambda event, _name=name: self.calls.append((_name, event)))
            return self

        @property
        def names(self):
            return [name for name, _ in self.calls]

        @property
        def events(self):
            return [event for _, event in self.calls]

    return Recorder()

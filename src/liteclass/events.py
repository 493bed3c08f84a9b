"""
Change events and synchronous event dispatch.

Every successful mutation of a record produces one ChangeEvent which is
delivered under three names, most generic first:

    change                      any mutation of the record
    change:<field>              any mutation of one field
    change:<field>:<action>     one kind of mutation of one field

Bulk updates use the pair ``change`` / ``change:update`` instead.

Dispatch is synchronous and re-entrant: listeners may mutate the emitting
record (or subscribe/unsubscribe) while an event is being delivered. The
listener list is copied before delivery, so such changes take effect from
the next emission on.
"""
import builtins
from dataclasses import dataclass, field
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

CHANGE = 'change'
UPDATE = 'update'


def change_event_names(field_name: Optional[str], action: str) -> Tuple[str, ...]:
    """Return the event names a change is dispatched under, in order."""
    if field_name is None:
        return (CHANGE, f"{CHANGE}:{action}")
    return (CHANGE, f"{CHANGE}:{field_name}", f"{CHANGE}:{field_name}:{action}")


@dataclass(frozen=True)
class ChangeEvent:
    """Immutable record of one mutation.

    Property writes fill ``property``/``old_value``/``new_value``; collection
    writes fill ``aggregation``/``value`` and ``index`` when positional.
    A bulk update has neither field name set.
    """
    source: Any
    action: str
    property: Optional[str] = None
    aggregation: Optional[str] = None
    old_value: Any = None
    new_value: Any = None
    value: Any = None
    index: Optional[int] = None
    timestamp: float = field(default_factory=time.time)

    @builtins.property
    def name(self) -> Optional[str]:
        """The property or aggregation this event is about."""
        return self.property if self.property is not None else self.aggregation

    @builtins.property
    def event_names(self) -> Tuple[str, ...]:
        return change_event_names(self.name, self.action)

    def to_dict(self) -> Dict[str, Any]:
        """Export the populated fields as a plain dict (source as its id)."""
        data = {
            'source': getattr(self.source, 'uid', None),
            'action': self.action,
            'timestamp': self.timestamp,
        }
        if self.property is not None:
            data.update(property=self.property, old_value=self.old_value, new_value=self.new_value)
        if self.aggregation is not None:
            data.update(aggregation=self.aggregation, value=self.value)
        if self.index is not None:
            data['index'] = self.index
        return data


@dataclass
class _Subscription:
    callback: Callable[..., Any]
    once: bool = False


class EventEmitter:
    """Named-event publisher with persistent and one-shot listeners.

    Adding a listener that is already subscribed to the same event is a no-op,
    except that ``on`` turns an existing ``once`` subscription persistent.
    A listener that raises is logged and skipped; delivery continues with the
    remaining listeners.
    """

    def __init__(self) -> None:
        self._events: Dict[str, List[_Subscription]] = {}

    def _subscribe(self, event: str, listener: Callable[..., Any], once: bool) -> 'EventEmitter':
        if not callable(listener):
            raise TypeError(f"Listener for {event!r} must be callable, got {listener!r}")
        subscriptions = self._events.setdefault(event, [])
        for subscription in subscriptions:
            if subscription.callback == listener:
                if not once:
                    subscription.once = False
                return self
        subscriptions.append(_Subscription(listener, once))
        return self

    def on(self, event: str, listener: Callable[..., Any]) -> 'EventEmitter':
        """Subscribe ``listener`` to ``event``."""
        return self._subscribe(event, listener, once=False)

    def once(self, event: str, listener: Callable[..., Any]) -> 'EventEmitter':
        """Subscribe ``listener`` for the next emission of ``event`` only."""
        return self._subscribe(event, listener, once=True)

    def remove_listener(self, event: str, listener: Callable[..., Any]) -> 'EventEmitter':
        subscriptions = self._events.get(event)
        if not subscriptions:
            return self
        remaining = [sub for sub in subscriptions if sub.callback != listener]
        if remaining:
            self._events[event] = remaining
        else:
            del self._events[event]
        return self

    def remove_all_listeners(self, event: Optional[str] = None) -> 'EventEmitter':
        """Remove every listener of ``event``, or of all events if None."""
        if event is None:
            self._events.clear()
        else:
            self._events.pop(event, None)
        return self

    def off(self, event: Optional[str] = None, listener: Optional[Callable[..., Any]] = None) -> 'EventEmitter':
        """Unsubscribe.

        Args:
            event: Event name. If None, all listeners of all events are removed.
            listener: Specific listener to remove. If None, every listener of
                      ``event`` is removed.
        """
        if event is not None and listener is not None:
            return self.remove_listener(event, listener)
        return self.remove_all_listeners(event)

    def listeners(self, event: str) -> List[Callable[..., Any]]:
        return [sub.callback for sub in self._events.get(event, ())]

    def listener_count(self, event: str) -> int:
        return len(self._events.get(event, ()))

    def event_names(self) -> List[str]:
        return list(self._events.keys())

    def emit(self, event: str, *args: Any) -> bool:
        """Deliver ``args`` to every listener of ``event``.

        Returns:
            True if the event had listeners.
        """
        subscriptions = self._events.get(event)
        if not subscriptions:
            return False

        # Snapshot: listeners added or removed during delivery do not affect this round
        for subscription in list(subscriptions):
            if subscription.once:
                live = self._events.get(event)
                if live is None or subscription not in live:
                    continue
                live.remove(subscription)
                if not live:
                    del self._events[event]
            try:
                subscription.callback(*args)
            except Exception as e:
                logger.warning(f"Error in listener for {event!r}: {e}", exc_info=True)
        return True

    # Aliases
    add_listener = on
    add_event_listener = on
    one = once

import threading
from typing import Type, Callable, List, Dict, Any, Optional
from squeeze.domain.events import Event

class EventBus:
    """Carries run events from the worker to displays and control requests back.

    Delivery is synchronous and keyed on the exact event class; the worker and
    the keyboard thread both publish, so the subscriber table is locked.
    """

    def __init__(self):
        self._subscribers: Dict[Type[Event], List[Callable[[Any], None]]] = {}
        self._lock = threading.Lock()

    def subscribe(self, event_type: Type[Event], callback: Optional[Callable[[Any], None]] = None):
        """Subscribes a callback to a specific event type. Can be used as a decorator."""
        if callback is None:
            def decorator(func: Callable[[Any], None]):
                self.subscribe(event_type, func)
                return func
            return decorator

        with self._lock:
            self._subscribers.setdefault(event_type, []).append(callback)

    def publish(self, event: Event):
        """Publishes an event to all subscribers of its exact type, on the caller's thread."""
        with self._lock:
            callbacks = list(self._subscribers.get(type(event), ()))
        for callback in callbacks:
            callback(event)

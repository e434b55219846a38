import asyncio
import inspect
import logging
from typing import Callable, Dict, List

logger = logging.getLogger(__name__)


class EventEmitter:
    """Simple event emitter for upload events."""

    def __init__(self):
        self._listeners: Dict[str, List[Callable]] = {}

    def on(self, event_name: str, callback: Callable):
        """Subscribe to an event."""
        if event_name not in self._listeners:
            self._listeners[event_name] = []
        if callback not in self._listeners[event_name]:
            self._listeners[event_name].append(callback)

    def off(self, event_name: str, callback: Callable):
        """Unsubscribe from an event."""
        if event_name in self._listeners:
            if callback in self._listeners[event_name]:
                self._listeners[event_name].remove(callback)

    def emit(self, event_name: str, *args, **kwargs):
        """
        Call every listener in subscription order.

        Awaitables returned by listeners are scheduled on the running loop.
        Listener errors are logged and never reach the emitter.
        """
        if event_name not in self._listeners:
            return

        for callback in self._listeners[event_name][:]:  # Copy list to avoid modification during iteration
            try:
                result = callback(*args, **kwargs)
                if inspect.isawaitable(result):
                    asyncio.get_running_loop().create_task(
                        self._await_listener(event_name, result)
                    )
            except Exception as e:
                logger.error(f"Error in event listener for {event_name}: {e}")

    @staticmethod
    async def _await_listener(event_name: str, coro):
        try:
            await coro
        except Exception as e:
            logger.error(f"Error in event listener for {event_name}: {e}")

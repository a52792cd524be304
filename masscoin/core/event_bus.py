import asyncio
import inspect
from typing import Any, Callable, Dict, List, Optional, Set

from masscoin.shared.utils import logger


class EventBus:
    """In-process outbound queue for post-commit side effects.

    Handlers run concurrently and each one is isolated: a timeout or an
    exception is logged and never reaches the publisher.
    """

    def __init__(self, handler_timeout: float = 5.0):
        self.subscriptions: Dict[str, List[Callable]] = {}
        self.handler_timeout = handler_timeout
        self.log = logger.get_logger("event_bus")
        self._pending: Set[asyncio.Task] = set()

    async def publish(self, event_name: str, event_data: Any):
        handlers = self.subscriptions.get(event_name, [])
        if not handlers:
            self.log.debug(f"No handlers for: {event_name}")
            return
        await asyncio.gather(
            *(self._run_handler(handler, event_data) for handler in handlers)
        )

    def publish_nowait(self, event_name: str, event_data: Any) -> asyncio.Task:
        """Schedule delivery on the running loop and return immediately"""
        task = asyncio.create_task(self.publish(event_name, event_data))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self):
        """Wait for every scheduled delivery to finish"""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _run_handler(self, handler: Callable, event_data: Any):
        name = getattr(handler, "__name__", repr(handler))
        try:
            await asyncio.wait_for(
                handler(event_data)
                if inspect.iscoroutinefunction(handler)
                else asyncio.to_thread(handler, event_data),
                timeout=self.handler_timeout,
            )
        except asyncio.TimeoutError:
            self.log.error(f"Handler timed out: {name}")
        except Exception as e:
            self.log.error(f"Error in event handler {name}: {e}")

    def subscribe(self, event_name: str, handler: Callable[[Any], None]):
        self.subscriptions.setdefault(event_name, []).append(handler)
        self.log.debug(f"Subscribed handler to: {event_name}")

    def clear(self, event_name: Optional[str] = None):
        if event_name is None:
            self.subscriptions.clear()
        else:
            self.subscriptions.pop(event_name, None)


def init_event_bus() -> EventBus:
    from masscoin.core.config import settings

    event_bus.handler_timeout = settings.EVENT_HANDLER_TIMEOUT
    return event_bus


# Global event bus instance
event_bus = EventBus()

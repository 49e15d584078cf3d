"""
Ordered hook listeners per event name.

Listeners may be plain functions or coroutine functions and may be bound to a
``Context``; a bound listener only sees events whose identity it matches.

Two dispatch modes are available:

- ``serialize`` calls matching listeners one at a time in registration order
  and stops at the first truthy result (return ``HANDLED`` to claim an event).
- ``parallelize`` starts every matching listener, waits for all of them and
  ignores their results; failures are logged and do not affect the others.

Usage:
    hooks = HookRegistry()
    hooks.on("before-command", lambda argv: HANDLED if argv.command.name == "secret" else None)
    if await hooks.serialize("before-command", argv, meta=argv.meta):
        return
"""

from __future__ import annotations

import asyncio
import functools
import inspect
from collections import defaultdict
from typing import TYPE_CHECKING, Any, Optional

from chorus.logging_config import get_logger
from chorus.types import HookHandler

if TYPE_CHECKING:
    from chorus.meta import Meta
    from chorus.scope import Context

logger = get_logger(__name__)

HANDLED = True
"""Return value marking an event as handled by a serial listener."""


class HookRegistry:
    """Registry of listeners keyed by event name."""

    def __init__(self) -> None:
        self._hooks: dict[str, list[tuple[Optional[Context], HookHandler]]] = defaultdict(list)
        self._background: set[asyncio.Task] = set()

    def on(
        self,
        event: str,
        handler: HookHandler,
        context: Optional[Context] = None,
        prepend: bool = False,
    ) -> HookHandler:
        entry = (context, handler)
        if prepend:
            self._hooks[event].insert(0, entry)
        else:
            self._hooks[event].append(entry)
        return handler

    def off(self, event: str, handler: HookHandler, context: Optional[Context] = None) -> bool:
        listeners = self._hooks.get(event, [])
        for index, (bound, registered) in enumerate(listeners):
            if registered is handler and (context is None or bound == context):
                del listeners[index]
                return True
        return False

    def listeners(self, event: str, meta: Optional[Meta] = None) -> list[HookHandler]:
        return [
            handler
            for context, handler in self._hooks.get(event, [])
            if context is None or meta is None or context.match(meta)
        ]

    def count(self, event: str) -> int:
        return len(self._hooks.get(event, []))

    async def serialize(self, event: str, *args: Any, meta: Optional[Meta] = None) -> Any:
        """Run listeners in order until one returns a truthy result, and return it."""
        for handler in self.listeners(event, meta):
            result = handler(*args)
            if inspect.isawaitable(result):
                result = await result
            if result:
                logger.debug("Hook handled event", hook=event)
                return result
        return None

    async def parallelize(self, event: str, *args: Any, meta: Optional[Meta] = None) -> None:
        """Run every listener concurrently and wait for all of them."""
        pending = []
        for handler in self.listeners(event, meta):
            try:
                result = handler(*args)
            except Exception:
                logger.exception("Hook listener failed", hook=event)
                continue
            if inspect.isawaitable(result):
                pending.append(result)
        if not pending:
            return
        results = await asyncio.gather(*pending, return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException):
                logger.error(
                    "Hook listener failed",
                    exc_info=False,
                    hook=event,
                    error=f"{type(result).__name__}: {result}",
                )

    def emit(self, event: str, *args: Any) -> None:
        """Notify listeners synchronously; coroutine listeners are scheduled on the running loop.

        A failing listener is logged and does not stop the others.
        """
        for handler in self.listeners(event):
            try:
                result = handler(*args)
            except Exception:
                logger.exception("Hook listener failed", hook=event)
                continue
            if not inspect.isawaitable(result):
                continue
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                if inspect.iscoroutine(result):
                    result.close()
                logger.warning("Dropped async listener outside of an event loop", hook=event)
                continue
            task = asyncio.ensure_future(result, loop=loop)
            self._background.add(task)
            task.add_done_callback(self._background.discard)
            task.add_done_callback(functools.partial(self._report_background, event))

    def _report_background(self, event: str, task: asyncio.Task) -> None:
        error = None if task.cancelled() else task.exception()
        if error is not None:
            logger.error(
                "Hook listener failed",
                exc_info=False,
                hook=event,
                error=f"{type(error).__name__}: {error}",
            )


__all__ = ["HANDLED", "HookRegistry"]

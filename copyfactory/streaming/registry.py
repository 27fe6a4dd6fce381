# copyfactory/streaming/registry.py
from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from copyfactory.config import RetryOptions
from copyfactory.enums import ListenerState
from copyfactory.errors import NotFoundError
from copyfactory.utils.ids import make_listener_id
from copyfactory.utils.logger import logger

Fetch = Callable[[Any], Awaitable[List[Any]]]
Advance = Callable[[Any, List[Any]], Any]


@dataclass
class ListenerRegistration:
    id: str
    listener: Any
    cursor: Any
    state: ListenerState = ListenerState.REGISTERED
    task: Optional[asyncio.Task] = None


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class ListenerRegistry:
    """
    Owns the listeners of one kind and runs one polling task per listener.

    Each task fetches events after the listener's cursor, advances the cursor and
    hands the batch to `listener.<handler_name>`. Fetch failures and handler failures
    go to `listener.on_error` (when present) and never stop the loop; the only
    exception is NotFoundError, which means the subject is gone and the listener
    is moved to FAILED. Removed and failed registrations are dropped.
    """

    def __init__(self, kind: str, handler_name: str, *, polling_interval: float = 1.0,
                 retry_opts: Optional[RetryOptions] = None) -> None:
        self._kind = kind
        self._handler_name = handler_name
        self._polling_interval = polling_interval
        self._retry_opts = retry_opts or RetryOptions()
        self._registrations: Dict[str, ListenerRegistration] = {}

    @property
    def kind(self) -> str:
        return self._kind

    @property
    def listeners(self) -> Dict[str, Any]:
        return {lid: reg.listener for lid, reg in self._registrations.items()}

    def get_state(self, listener_id: str) -> Optional[ListenerState]:
        """State of a registered listener, None once it is removed or has failed."""
        reg = self._registrations.get(listener_id)
        return reg.state if reg is not None else None

    def add(self, listener: Any, fetch: Fetch, advance: Advance, cursor: Any = None) -> str:
        """Register `listener` and start polling. Must be called with a running event loop."""
        if not callable(getattr(listener, self._handler_name, None)):
            raise TypeError(f"{self._kind} listener must define {self._handler_name}()")
        loop = asyncio.get_running_loop()
        listener_id = make_listener_id(self._kind)
        reg = ListenerRegistration(id=listener_id, listener=listener, cursor=cursor)
        self._registrations[listener_id] = reg
        reg.task = loop.create_task(self._run(reg, fetch, advance))
        reg.state = ListenerState.POLLING
        logger.debug(f"{self._kind} listener {listener_id} registered, cursor={cursor}")
        return listener_id

    def remove(self, listener_id: str) -> None:
        """Stop a listener. Unknown or already removed ids are ignored."""
        reg = self._registrations.pop(listener_id, None)
        if reg is None:
            return
        reg.state = ListenerState.STOPPED
        # inside its own task the loop notices the removal at the next check
        if reg.task is not None and not reg.task.done() and reg.task is not _current_task():
            reg.task.cancel()
        logger.debug(f"{self._kind} listener {listener_id} removed")

    async def close(self) -> None:
        tasks = [reg.task for reg in self._registrations.values() if reg.task is not None]
        for listener_id in list(self._registrations):
            self.remove(listener_id)
        current = _current_task()
        tasks = [t for t in tasks if t is not current]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # ---- sleep (patched in tests) --------------------------------------------------
    async def _sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(seconds, 0))

    # ---- polling loop --------------------------------------------------------------
    def _is_live(self, reg: ListenerRegistration) -> bool:
        return self._registrations.get(reg.id) is reg

    async def _run(self, reg: ListenerRegistration, fetch: Fetch, advance: Advance) -> None:
        error_count = 0
        while self._is_live(reg):
            try:
                events = await fetch(reg.cursor)
            except asyncio.CancelledError:
                raise
            except NotFoundError as err:
                if not self._is_live(reg):
                    return
                logger.error(f"{self._kind} listener {reg.id}: subject not found, stopping: {err}")
                await self._report_error(reg, err)
                self._fail(reg)
                return
            except Exception as err:
                if not self._is_live(reg):
                    return
                error_count += 1
                delay = self._retry_opts.delay(error_count)
                logger.error(f"{self._kind} listener {reg.id}: failed to fetch events, retry in {delay:.2f}s: {err}")
                await self._report_error(reg, err)
                await self._sleep(delay)
                continue

            # removed while the fetch was in flight
            if not self._is_live(reg):
                return
            error_count = 0
            if events:
                reg.cursor = advance(reg.cursor, events)
                await self._deliver(reg, events)
            else:
                await self._sleep(self._polling_interval)

    async def _deliver(self, reg: ListenerRegistration, events: List[Any]) -> None:
        handler = getattr(reg.listener, self._handler_name)
        try:
            result = handler(events)
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception as err:
            logger.exception(f"{self._kind} listener {reg.id} failed to handle {len(events)} event(s)")
            await self._report_error(reg, err)

    async def _report_error(self, reg: ListenerRegistration, err: Exception) -> None:
        on_error = getattr(reg.listener, "on_error", None)
        if on_error is None:
            return
        try:
            result = on_error(err)
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception(f"on_error of {self._kind} listener {reg.id} raised")

    def _fail(self, reg: ListenerRegistration) -> None:
        if self._registrations.pop(reg.id, None) is None:
            return
        reg.state = ListenerState.FAILED
        logger.debug(f"{self._kind} listener {reg.id} failed")

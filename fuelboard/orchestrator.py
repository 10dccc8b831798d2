"""Per-consumer async fetch lifecycle.

Each consumer (a KPI card, a chart) owns one ``FetchConsumer``. A request is
tagged with a generation number when it is issued; on completion the result
is applied only if that generation is still current, so the most recently
initiated Selection always wins regardless of network completion order.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Optional, Set, TypeVar, Union

from fuelboard.filters import Selection, is_queryable

logger = logging.getLogger(__name__)

T = TypeVar("T")

Fetcher = Callable[[Selection], Union[Awaitable[T], T]]


class FetchStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class FetchSnapshot(Generic[T]):
    status: FetchStatus = FetchStatus.IDLE
    data: Optional[T] = None
    error: Optional[BaseException] = None
    selection: Optional[Selection] = None

    @property
    def loading(self) -> bool:
        return self.status is FetchStatus.LOADING

    @property
    def message(self) -> Optional[str]:
        return str(self.error) if self.error is not None else None


class FetchConsumer(Generic[T]):
    def __init__(
        self,
        fetcher: Fetcher,
        *,
        name: str = "consumer",
        queryable: Callable[[Selection], bool] = is_queryable,
        on_change: Optional[Callable[[FetchSnapshot], None]] = None,
    ):
        self.name = name
        self._fetcher = fetcher
        self._queryable = queryable
        self._on_change = on_change
        self._generation = 0
        self._disposed = False
        self._tasks: Set[asyncio.Task] = set()
        self._current: Optional[asyncio.Task] = None
        self._snapshot: FetchSnapshot = FetchSnapshot()

    @property
    def snapshot(self) -> FetchSnapshot:
        return self._snapshot

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def disposed(self) -> bool:
        return self._disposed

    def select(self, selection: Selection) -> Optional[asyncio.Task]:
        """React to a Selection change. Must be called from a running event loop."""
        if self._disposed:
            return None
        current = self._snapshot
        if current.selection == selection and current.status is not FetchStatus.IDLE:
            return self._current if current.status is FetchStatus.LOADING else None

        if not self._queryable(selection):
            self._generation += 1
            self._current = None
            self._set(FetchSnapshot(status=FetchStatus.IDLE, selection=selection))
            return None
        return self._issue(selection)

    def refresh(self) -> Optional[asyncio.Task]:
        selection = self._snapshot.selection
        if self._disposed or selection is None or not self._queryable(selection):
            return None
        return self._issue(selection)

    async def wait(self) -> FetchSnapshot:
        task = self._current
        if task is not None and not task.done():
            await asyncio.wait({task})
        return self._snapshot

    def dispose(self) -> None:
        self._disposed = True
        self._generation += 1
        self._on_change = None
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
        self._current = None

    def _issue(self, selection: Selection) -> asyncio.Task:
        self._generation += 1
        token = self._generation
        self._set(FetchSnapshot(status=FetchStatus.LOADING, selection=selection))
        logger.debug("%s: request #%d for %s", self.name, token, selection)
        task = asyncio.ensure_future(self._run(token, selection))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        self._current = task
        return task

    async def _run(self, token: int, selection: Selection) -> None:
        try:
            data = await self._call(selection)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            if not self._is_current(token):
                logger.debug("%s: dropping stale failure #%d: %s", self.name, token, exc)
                return
            logger.warning("%s: request #%d failed: %s", self.name, token, exc)
            self._set(FetchSnapshot(status=FetchStatus.FAILURE, error=exc, selection=selection))
            return

        if not self._is_current(token):
            logger.debug("%s: dropping stale result #%d (current #%d)", self.name, token, self._generation)
            return
        self._set(FetchSnapshot(status=FetchStatus.SUCCESS, data=data, selection=selection))

    async def _call(self, selection: Selection) -> Any:
        fetcher = self._fetcher
        if inspect.iscoroutinefunction(fetcher) or inspect.iscoroutinefunction(getattr(fetcher, "__call__", None)):
            return await self._fetcher(selection)
        result = await asyncio.to_thread(self._fetcher, selection)
        if inspect.isawaitable(result):
            return await result
        return result

    def _is_current(self, token: int) -> bool:
        return not self._disposed and token == self._generation

    def _set(self, snapshot: FetchSnapshot) -> None:
        self._snapshot = snapshot
        callback = self._on_change
        if callback is not None:
            callback(snapshot)


__all__ = ["FetchConsumer", "FetchSnapshot", "FetchStatus"]

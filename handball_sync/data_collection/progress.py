"""Fortschritts-Events eines Pipeline-Laufs, konsumiert als Async-Iterator."""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Optional

from ..domain.contracts import ProgressEvent

logger = logging.getLogger("progress")


class ProgressChannel:
    """Unbegrenzte Queue von ProgressEvents mit explizitem Ende-Marker.

    Produzenten rufen ``emit``; ein einzelner Konsument iteriert mit
    ``async for``, bis ``close`` aufgerufen und die Queue leer ist.
    """

    _DONE = object()

    def __init__(self) -> None:
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    def emit(
        self,
        stage: str,
        detail: str,
        current: Optional[int] = None,
        total: Optional[int] = None,
    ) -> ProgressEvent:
        event = ProgressEvent(stage=stage, detail=detail, current=current, total=total)
        logger.debug(str(event))
        if not self._closed:
            self._queue.put_nowait(event)
        return event

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(self._DONE)

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> AsyncIterator[ProgressEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[ProgressEvent]:
        while True:
            item = await self._queue.get()
            if item is self._DONE:
                return
            yield item


class NullProgress(ProgressChannel):
    """Verwirft Events; für Läufe ohne Zuhörer."""

    def emit(self, stage, detail, current=None, total=None) -> ProgressEvent:
        return ProgressEvent(stage=stage, detail=detail, current=current, total=total)


__all__ = ["ProgressChannel", "NullProgress"]

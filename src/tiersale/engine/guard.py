"""Reentrancy guard - serializes mutating sale operations."""

from __future__ import annotations

import asyncio
import contextvars
import itertools
import logging

from tiersale.errors import ReentrantCall

log = logging.getLogger(__name__)

_ids = itertools.count()


class ReentrancyGuard:
    """Mutual exclusion around a critical section.

    Independent callers queue on an asyncio.Lock and run one at a time.
    A call that re-enters from inside the guarded section (for example a
    transfer hook awaiting another sale operation) shares the holder's
    context and is rejected with ReentrantCall instead of deadlocking.
    """

    def __init__(self, name: str = "sale") -> None:
        self._name = name
        self._lock = asyncio.Lock()
        self._inside: contextvars.ContextVar[bool] = contextvars.ContextVar(
            f"tiersale_guard_{next(_ids)}", default=False
        )
        self._token: contextvars.Token[bool] | None = None

    @property
    def locked(self) -> bool:
        return self._lock.locked()

    async def __aenter__(self) -> ReentrancyGuard:
        if self._inside.get():
            log.warning("Rejected reentrant call into %s", self._name)
            raise ReentrantCall(f"reentrant call into {self._name}")
        await self._lock.acquire()
        self._token = self._inside.set(True)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        token, self._token = self._token, None
        if token is not None:
            self._inside.reset(token)
        self._lock.release()

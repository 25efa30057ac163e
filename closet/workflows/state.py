import asyncio
from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar

S = TypeVar("S")


@dataclass(frozen=True)
class Notice:
    title: str
    description: Optional[str] = None
    variant: str = "default"  # default | destructive


class StateCell(Generic[S]):
    """Owns one workflow's state; every transition goes through `update`.

    States are immutable values. Transition functions run under a lock, so
    callbacks resumed from timers or network calls never observe or write a
    half-applied state.
    """

    def __init__(self, initial: S):
        self._state = initial
        self._lock = asyncio.Lock()

    @property
    def state(self) -> S:
        return self._state

    async def update(self, fn: Callable[[S], S]) -> S:
        async with self._lock:
            self._state = fn(self._state)
            return self._state

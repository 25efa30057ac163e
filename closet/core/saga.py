import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from closet.core.errors import SagaFailed

logger = logging.getLogger("uvicorn.error")

Action = Callable[[Dict[str, Any]], Awaitable[Any]]


@dataclass
class SagaStep:
    name: str
    action: Action
    compensate: Optional[Action] = None


class Saga:
    """Ordered steps, each with an optional compensating action.

    Steps share a context dict; a step's return value is stored under its
    name. On the first failing step, compensations of the already completed
    steps run in reverse order and SagaFailed is raised.
    """

    def __init__(self, name: str):
        self.name = name
        self.steps: List[SagaStep] = []

    def step(self, name: str, action: Action, compensate: Optional[Action] = None) -> "Saga":
        self.steps.append(SagaStep(name, action, compensate))
        return self

    async def run(self, ctx: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        ctx = {} if ctx is None else ctx
        done: List[SagaStep] = []
        for st in self.steps:
            try:
                ctx[st.name] = await st.action(ctx)
            except Exception as exc:
                logger.warning("saga:%s step=%s failed err=%s", self.name, st.name, exc)
                errors = await self._compensate(done, ctx)
                raise SagaFailed(st.name, exc, errors) from exc
            done.append(st)
        return ctx

    async def _compensate(self, done: List[SagaStep], ctx: Dict[str, Any]) -> List[tuple]:
        errors: List[tuple] = []
        for st in reversed(done):
            if st.compensate is None:
                continue
            try:
                await st.compensate(ctx)
            except Exception as exc:
                logger.error("saga:%s compensate step=%s failed err=%s", self.name, st.name, exc)
                errors.append((st.name, exc))
        return errors

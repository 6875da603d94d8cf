"""
Saga runner.

A saga is an ordered list of steps. Each step's action receives the
shared context dict and may return a dict that is merged into it.
A step may name a compensation that undoes its effect.

When a step fails, the runner compensates every completed step in
reverse order and raises SagaFailed. A compensation that itself
fails is logged and the runner carries on with the rest; the
resulting SagaFailed then reports compensated=False.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from ledger_bot.errors import LedgerBotError
from ledger_bot.logging_config import get_logger

log = get_logger(__name__)

Context = dict[str, Any]
Action = Callable[[Context], Awaitable[Context | None]]
Compensation = Callable[[Context], Awaitable[None]]


class SagaFailed(LedgerBotError):
    """A saga step raised. `cause` is the original exception."""

    def __init__(self, saga: str, step: str, cause: BaseException, compensated: bool):
        super().__init__(f"{saga} failed at {step}: {cause}")
        self.saga = saga
        self.step = step
        self.cause = cause
        self.compensated = compensated


@dataclass
class SagaStep:
    name: str
    action: Action
    compensate: Compensation | None = None


@dataclass
class Saga:
    name: str
    steps: list[SagaStep] = field(default_factory=list)

    async def run(self, context: Context | None = None) -> Context:
        """Execute steps in order, threading the context dict through."""
        ctx: Context = dict(context or {})
        done: list[SagaStep] = []
        for index, step in enumerate(self.steps):
            log.info("saga_step", saga=self.name, step=step.name, index=index)
            try:
                result = await step.action(ctx)
            except Exception as exc:
                log.warning(
                    "saga_step_failed",
                    saga=self.name,
                    step=step.name,
                    error=type(exc).__name__,
                )
                compensated = await self._compensate(done, ctx)
                raise SagaFailed(self.name, step.name, exc, compensated) from exc
            if result:
                ctx.update(result)
            done.append(step)
        log.info("saga_completed", saga=self.name)
        return ctx

    async def _compensate(self, done: list[SagaStep], ctx: Context) -> bool:
        ok = True
        for step in reversed(done):
            if step.compensate is None:
                continue
            try:
                await step.compensate(ctx)
                log.info("saga_compensated", saga=self.name, step=step.name)
            except Exception:
                ok = False
                log.error(
                    "saga_compensation_failed",
                    saga=self.name,
                    step=step.name,
                    exc_info=True,
                )
        return ok

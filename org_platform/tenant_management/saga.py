"""
Saga Runner

Runs an ordered list of steps across independent stores without a shared
transaction. Every step boundary is logged with the saga name and context so
an external reconciler can find organizations left in an orphaned state.
On failure, completed steps are compensated in reverse order.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from structlog import get_logger

from ..errors import OrphanedStateError

logger = get_logger()

StepAction = Callable[[], Awaitable[Any]]


@dataclass
class SagaStep:
    """One step of a saga and its optional compensation."""

    name: str
    action: StepAction
    compensation: Optional[StepAction] = None


@dataclass
class Saga:
    """
    Ordered, non-transactional multi-store operation.

    Example:
        saga = Saga("create_tenant", {"organization_name": "acme"})
        saga.add_step("insert_metadata", insert, compensation=remove)
        results = await saga.execute()
    """

    name: str
    context: dict[str, Any] = field(default_factory=dict)
    steps: list[SagaStep] = field(default_factory=list)

    def add_step(
        self,
        name: str,
        action: StepAction,
        compensation: Optional[StepAction] = None,
    ) -> "Saga":
        self.steps.append(SagaStep(name=name, action=action, compensation=compensation))
        return self

    async def execute(self) -> dict[str, Any]:
        """
        Run all steps in order.

        Returns:
            Mapping of step name to the value its action returned

        Raises:
            The failing step's exception after compensation, or
            OrphanedStateError if a compensation failed as well
        """
        results: dict[str, Any] = {}
        completed: list[SagaStep] = []

        logger.info("saga_started", saga=self.name, steps=[s.name for s in self.steps], **self.context)

        for step in self.steps:
            logger.info("saga_step_started", saga=self.name, step=step.name, **self.context)
            try:
                results[step.name] = await step.action()
            except Exception as e:
                logger.error(
                    "saga_step_failed",
                    saga=self.name,
                    step=step.name,
                    error=str(e),
                    completed_steps=[s.name for s in completed],
                    **self.context,
                )
                await self._compensate(completed, failed_step=step.name, error=e)
                raise

            completed.append(step)
            logger.info("saga_step_completed", saga=self.name, step=step.name, **self.context)

        logger.info("saga_completed", saga=self.name, **self.context)
        return results

    async def _compensate(self, completed: list[SagaStep], failed_step: str, error: Exception) -> None:
        for step in reversed(completed):
            if step.compensation is None:
                continue

            logger.warning("saga_compensating", saga=self.name, step=step.name, **self.context)
            try:
                await step.compensation()
            except Exception as compensation_error:
                logger.error(
                    "saga_orphaned_state",
                    saga=self.name,
                    failed_step=failed_step,
                    compensation_step=step.name,
                    error=str(error),
                    compensation_error=str(compensation_error),
                    **self.context,
                )
                raise OrphanedStateError(
                    details={
                        "saga": self.name,
                        "failed_step": failed_step,
                        "compensation_step": step.name,
                    }
                ) from compensation_error

        if any(step.compensation for step in completed):
            logger.info("saga_compensated", saga=self.name, failed_step=failed_step, **self.context)

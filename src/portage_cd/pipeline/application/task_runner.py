"""
Sequential task runner with a selectable failure-aggregation strategy.

Stages are sequenced FAIL_FAST: a failing stage aborts the remainder.
Code-scan engines are sequenced BEST_EFFORT: every engine runs and all
failures are joined into one AggregateError.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable

from portage_cd.pipeline.domain.enums import AggregationStrategy
from portage_cd.shared.domain.exceptions import AggregateError, PortageError
from portage_cd.shared.infrastructure.execution.options import CancellationSignal
from portage_cd.shared.infrastructure.logging import get_logger


@dataclass(frozen=True)
class Step:
    """A named unit of work."""

    name: str
    action: Callable[[], None]


class TaskRunner:
    """Runs steps strictly in order, never concurrently."""

    def __init__(
        self,
        strategy: AggregationStrategy,
        cancel: CancellationSignal | None = None,
        logger: Any = None,
    ):
        self.strategy = strategy
        self.cancel = cancel
        self.logger = logger if logger is not None else get_logger(__name__)

    def run(self, steps: Iterable[Step]) -> None:
        """
        Run every step according to the strategy.

        Raises:
            The first step error (FAIL_FAST) or an AggregateError (BEST_EFFORT)
        """
        errors: list[Exception] = []

        for step in steps:
            # the signal only stops new steps, a running step handles its own cancel
            if self.cancel is not None and self.cancel.is_cancelled:
                error = PortageError(f"{step.name}: canceled before start", context={"step": step.name})
                self.logger.warning("step_skipped_canceled", step=step.name)
                if self.strategy is AggregationStrategy.FAIL_FAST:
                    raise error
                errors.append(error)
                continue

            start_time = time.perf_counter()
            try:
                step.action()
            except Exception as e:
                self.logger.error(
                    "step_failed",
                    step=step.name,
                    strategy=self.strategy.value,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                if self.strategy is AggregationStrategy.FAIL_FAST:
                    raise
                errors.append(e)
                continue

            self.logger.debug(
                "step_completed",
                step=step.name,
                duration=round(time.perf_counter() - start_time, 3),
            )

        if errors:
            raise AggregateError(errors)

"""
Best-effort execution of homogeneous sub-tasks.
"""

import io
from typing import IO, Any, Sequence

from portage_cd.pipeline.application.task_runner import Step, TaskRunner
from portage_cd.pipeline.application.tasks.code_scan import CodeScanOptions, CodeScanTask
from portage_cd.pipeline.domain.enums import AggregationStrategy
from portage_cd.shared.infrastructure.execution import CancellationSignal, ExecOptions
from portage_cd.shared.infrastructure.logging import get_logger


class CombinedTask:
    """
    Runs sub-tasks strictly in list order, never concurrently.

    A failing sub-task does not stop the remaining ones; every failure is
    joined into one AggregateError. Each sub-task writes its summary into a
    private buffer, and the buffers are flushed to ``display_writer`` in task
    order once all sub-tasks have finished.
    """

    def __init__(
        self,
        tasks: Sequence[CodeScanTask],
        display_writer: IO[str],
        opts: CodeScanOptions,
        exec_options: ExecOptions,
        logger: Any = None,
    ):
        self.tasks = list(tasks)
        self.display_writer = display_writer
        self.opts = opts
        self.exec_options = exec_options
        self.logger = logger if logger is not None else get_logger(__name__)

    def run(self, cancel: CancellationSignal | None = None) -> None:
        """
        Run every sub-task.

        Raises:
            AggregateError: One entry per failed sub-task
        """
        exec_options = self.exec_options.replace(cancel=cancel) if cancel is not None else self.exec_options
        buffers = [io.StringIO() for _ in self.tasks]

        steps = [
            Step(task.name, self._bind(task, exec_options, buffer))
            for task, buffer in zip(self.tasks, buffers)
        ]

        self.logger.debug("combined_task_start", tasks=[task.name for task in self.tasks])
        try:
            TaskRunner(AggregationStrategy.BEST_EFFORT, cancel=cancel, logger=self.logger).run(steps)
        finally:
            for buffer in buffers:
                self.display_writer.write(buffer.getvalue())
            self.display_writer.flush()

    def _bind(self, task: CodeScanTask, exec_options: ExecOptions, buffer: io.StringIO):
        def action() -> None:
            task.run(self.opts, exec_options, buffer)

        return action

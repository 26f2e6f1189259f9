"""
PipelineRunner - Executes stages in their fixed order, failing fast.

This module provides the PipelineRunner class that interprets the stage
transition table: it checks the table is consistent, runs the stages one
after the other and stops the run at the first failure.
"""

import logging
import time
from typing import Dict, List, Sequence, Tuple

import pandas as pd

from .context import PipelineContext, RunState
from .stage import Stage

logger = logging.getLogger(__name__)

# Fields present before any stage runs
SEEDED_FIELDS = frozenset({"current_read_path"})


class PipelineRunner:
    """Executes stages strictly sequentially.

    The runner handles:
    - Transition table validation
    - Sequential execution, one external tool at a time
    - Fail-fast error propagation (no retry, no cleanup)
    - Execution time reporting
    """

    def __init__(self):
        """Initialize the pipeline runner."""
        self._execution_times: Dict[str, float] = {}
        self._subtask_times: Dict[str, Dict[str, float]] = {}

    def run(self, stages: Sequence[Stage], context: PipelineContext) -> PipelineContext:
        """Execute all stages in order.

        Parameters
        ----------
        stages : Sequence[Stage]
            The transition table, in execution order
        context : PipelineContext
            Initial pipeline context

        Returns
        -------
        PipelineContext
            Final context after all stages complete

        Raises
        ------
        ValueError
            If the transition table is inconsistent
        Exception
            If any stage fails; the context is left in state FAILED
        """
        self.validate_stages(stages, context.state)

        start_time = time.time()
        logger.info(f"Starting pipeline execution with {len(stages)} stages")

        for position, stage in enumerate(stages, start=1):
            logger.info(f"Step {position}/{len(stages)}: {stage.name}")
            try:
                context = self._execute_stage(stage, context)
            except Exception as e:
                context.state = RunState.FAILED
                log_path = getattr(e, "log_path", None)
                if log_path is not None:
                    logger.error(f"Stage '{stage.name}' failed; its tool output is in {log_path}")
                skipped = [s.name for s in stages[position:]]
                if skipped:
                    logger.info(f"Not running remaining stages: {', '.join(skipped)}")
                raise

        total_time = time.time() - start_time
        logger.info(f"Pipeline execution completed in {total_time:.1f}s")

        self._log_execution_summary()

        return context

    @staticmethod
    def validate_stages(stages: Sequence[Stage], initial_state: RunState = RunState.INIT) -> None:
        """Check that the stages form a valid linear transition table.

        Parameters
        ----------
        stages : Sequence[Stage]
            Stages in execution order
        initial_state : RunState
            State of the run before the first stage

        Raises
        ------
        ValueError
            On duplicate names, shared artifact ownership, a required field no
            earlier stage produces, or a broken state chain
        """
        names = [stage.name for stage in stages]
        if len(set(names)) != len(names):
            raise ValueError("Duplicate stage names detected")

        available = set(SEEDED_FIELDS)
        owners: Dict[str, str] = {}
        state = initial_state
        for stage in stages:
            if stage.entry_state is not state:
                raise ValueError(
                    f"Stage '{stage.name}' starts from '{stage.entry_state.value}' "
                    f"but the run is in '{state.value}' at that point"
                )
            unavailable = [f for f in stage.requires if f not in available]
            if unavailable:
                raise ValueError(
                    f"Stage '{stage.name}' requires {unavailable}, which no earlier stage produces"
                )
            for field_name in stage.produces:
                if field_name in owners:
                    raise ValueError(
                        f"Artifact '{field_name}' is produced by both "
                        f"'{owners[field_name]}' and '{stage.name}'"
                    )
                owners[field_name] = stage.name
                available.add(field_name)
            state = stage.exit_state

    def _execute_stage(self, stage: Stage, context: PipelineContext) -> PipelineContext:
        """Execute a single stage and track timing.

        Parameters
        ----------
        stage : Stage
            Stage to execute
        context : PipelineContext
            Current context

        Returns
        -------
        PipelineContext
            Updated context
        """
        start_time = time.time()
        result = stage(context)
        elapsed = time.time() - start_time
        self._execution_times[stage.name] = elapsed

        if stage.subtask_times:
            self._subtask_times[stage.name] = stage.subtask_times

        return result

    def execution_summary(self) -> pd.DataFrame:
        """Return stage execution times as a table.

        Returns
        -------
        pd.DataFrame
            Columns ``stage``, ``seconds`` and ``percent``, in execution order
        """
        summary = pd.DataFrame(
            list(self._execution_times.items()), columns=["stage", "seconds"]
        )
        total = summary["seconds"].sum()
        summary["percent"] = (summary["seconds"] / total * 100) if total > 0 else 0.0
        return summary.round({"seconds": 1, "percent": 1})

    def _log_execution_summary(self) -> None:
        """Log summary of stage execution times."""
        if not self._execution_times:
            return

        logger.info("=" * 60)
        logger.info("Stage Execution Summary")
        logger.info("=" * 60)
        for line in self.execution_summary().to_string(index=False).splitlines():
            logger.info(line)

        for stage_name, subtasks in self._subtask_times.items():
            for subtask_name, subtask_elapsed in subtasks.items():
                logger.info(f"  {stage_name} └─ {subtask_name:24s} {subtask_elapsed:6.1f}s")

        logger.info("-" * 60)
        logger.info(f"{'Total stage time:':30s} {sum(self._execution_times.values()):6.1f}s")
        logger.info("=" * 60)

    def dry_run(self, stages: Sequence[Stage]) -> List[Tuple[str, str]]:
        """Show the execution plan without running stages.

        Parameters
        ----------
        stages : Sequence[Stage]
            Stages to analyze

        Returns
        -------
        List[Tuple[str, str]]
            ``(stage name, subdirectory)`` in execution order
        """
        self.validate_stages(stages)
        return [(stage.name, stage.subdirectory) for stage in stages]

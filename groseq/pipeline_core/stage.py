"""
Stage - Abstract base class for all pipeline stages.

A stage is one row of the pipeline's transition table: it names its
subdirectory, the context fields it reads and writes, and the run states it
moves between. Subclasses build and run one external command in _process.
"""

import logging
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Tuple

from .context import PipelineContext, RunState
from .error_handling import PipelineError, graceful_error_handling

logger = logging.getLogger(__name__)


class Stage(ABC):
    """Abstract base class for all pipeline stages.

    Each stage declares its descriptor (name, subdirectory, required and
    produced context fields, entry and exit state) and implements _process.

    The stage execution is handled by __call__, which validates the
    preconditions, creates the subdirectory, logs execution, converts
    unexpected file system errors and tracks timing.
    """

    def __init__(self):
        """Initialize the stage with subtask tracking."""
        self._subtask_times: Dict[str, float] = {}

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for the stage.

        Returns
        -------
        str
            The stage name used for logging and error reporting
        """
        pass

    @property
    @abstractmethod
    def subdirectory(self) -> str:
        """Subdirectory of the output root owned by the stage."""
        pass

    @property
    def requires(self) -> Tuple[str, ...]:
        """Context fields the stage reads.

        Returns
        -------
        Tuple[str, ...]
            Artifact field names that must be set before the stage runs
        """
        return ()

    @property
    def produces(self) -> Tuple[str, ...]:
        """Context fields the stage records on success."""
        return ()

    @property
    @abstractmethod
    def entry_state(self) -> RunState:
        """State the run must be in for the stage to start."""
        pass

    @property
    @abstractmethod
    def exit_state(self) -> RunState:
        """State the run is in after the stage succeeded."""
        pass

    @property
    def description(self) -> str:
        """Human-readable description for logging.

        Returns
        -------
        str
            Description of what this stage does
        """
        return f"Stage: {self.name}"

    @abstractmethod
    def log_path(self, context: PipelineContext) -> Path:
        """Log file capturing the output of the stage's external tool."""
        pass

    def __call__(self, context: PipelineContext) -> PipelineContext:
        """Execute the stage with pre/post processing.

        This method handles:
        - State and required-field validation
        - Subdirectory creation
        - Execution logging and timing
        - Verification that every produced field was recorded

        Parameters
        ----------
        context : PipelineContext
            The pipeline context

        Returns
        -------
        PipelineContext
            Updated context after stage execution

        Raises
        ------
        PipelineError
            If preconditions are not met or the stage did not record its artifacts
        StageExecutionError
            If the external tool fails
        """
        if context.state is not self.entry_state:
            raise PipelineError(
                f"Stage '{self.name}' expects run state '{self.entry_state.value}', "
                f"found '{context.state.value}'",
                stage=self.name,
            )

        missing = [f for f in self.requires if getattr(context, f, None) is None]
        if missing:
            raise PipelineError(
                f"Stage '{self.name}' requires these artifacts first: {', '.join(missing)}",
                stage=self.name,
            )

        logger.info(f"Executing {self.description}")
        start_time = time.time()

        try:
            context.workspace.create_subdirectory(self.subdirectory)

            with graceful_error_handling(self.name, self.log_path(context)):
                updated_context = self._process(context)

            unrecorded = [f for f in self.produces if not updated_context.is_recorded(f)]
            if unrecorded:
                raise PipelineError(
                    f"Stage '{self.name}' did not record: {', '.join(unrecorded)}",
                    stage=self.name,
                )
        except Exception as e:
            elapsed = time.time() - start_time
            logger.error(f"Stage '{self.name}' failed after {elapsed:.1f}s: {e}")
            raise

        updated_context.state = self.exit_state
        updated_context.mark_complete(self.name)

        elapsed = time.time() - start_time
        logger.info(f"Stage '{self.name}' completed successfully in {elapsed:.1f}s")
        return updated_context

    @abstractmethod
    def _process(self, context: PipelineContext) -> PipelineContext:
        """Core processing logic - must be implemented by subclasses.

        Parameters
        ----------
        context : PipelineContext
            The pipeline context

        Returns
        -------
        PipelineContext
            Updated context after processing
        """
        pass

    def _require(self, context: PipelineContext, field_name: str) -> Path:
        """Read a declared input field from the context."""
        if field_name not in self.requires:
            raise PipelineError(
                f"Stage '{self.name}' reads '{field_name}' without declaring it",
                stage=self.name,
            )
        return getattr(context, field_name)

    def _record(self, context: PipelineContext, field_name: str, path: Path) -> None:
        """Record a declared output field in the context."""
        if field_name not in self.produces:
            raise PipelineError(
                f"Stage '{self.name}' does not own artifact '{field_name}'",
                stage=self.name,
            )
        context.record_artifact(field_name, path, self.name)

    def __repr__(self) -> str:
        """Return string representation of the stage."""
        return f"{self.__class__.__name__}(name='{self.name}', subdirectory='{self.subdirectory}')"

    def _start_subtask(self, subtask_name: str) -> float:
        """Start timing a subtask.

        Parameters
        ----------
        subtask_name : str
            Name of the subtask

        Returns
        -------
        float
            Start time for the subtask
        """
        start_time = time.time()
        logger.debug(f"Stage '{self.name}': Starting subtask '{subtask_name}'")
        return start_time

    def _end_subtask(self, subtask_name: str, start_time: float) -> None:
        """End timing a subtask and record duration.

        Parameters
        ----------
        subtask_name : str
            Name of the subtask
        start_time : float
            Start time from _start_subtask
        """
        elapsed = time.time() - start_time
        self._subtask_times[subtask_name] = elapsed
        logger.debug(f"Stage '{self.name}': Completed subtask '{subtask_name}' in {elapsed:.1f}s")

    @property
    def subtask_times(self) -> Dict[str, float]:
        """Get recorded subtask durations.

        Returns
        -------
        Dict[str, float]
            Dictionary of subtask names to durations in seconds
        """
        return self._subtask_times.copy()

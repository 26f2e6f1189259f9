"""
PipelineContext - Single source of truth for pipeline state.

This module provides the PipelineContext dataclass that flows through all
stages, carrying the run configuration, the workspace and the path of every
artifact produced so far. It also defines the RunState machine the stages
advance through.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Set

from .error_handling import PipelineError

if TYPE_CHECKING:
    from ..config import RunConfig
    from .workspace import Workspace

logger = logging.getLogger(__name__)


class RunState(Enum):
    """Linear states of a run; FAILED is absorbing."""

    INIT = "init"
    TRIMMED = "trimmed"
    ALIGNED = "aligned"
    CONVERTED = "converted"
    FILTERED = "filtered"
    TAGGED = "tagged"
    TRACKED = "tracked"
    FAILED = "failed"


ARTIFACT_FIELDS = (
    "current_read_path",
    "trimmed_read_path",
    "read_lengths_path",
    "alignment_path",
    "bam_path",
    "sorted_filtered_bam_path",
    "tag_directory_path",
    "track_path",
)


@dataclass
class PipelineContext:
    """Container for all run state - the single source of truth.

    Artifact fields are additive: each one is recorded at most once, by the
    stage that produces it. ``current_read_path`` is seeded with the input
    reads and updated once, by the trimming stage.

    Attributes
    ----------
    config : RunConfig
        Validated run configuration
    workspace : Workspace
        Manages all file paths for the pipeline run
    start_time : datetime
        Pipeline execution start time
    sample_basename : str
        Sample name derived from the input reads
    current_read_path : Path
        Reads the next stage should consume
    trimmed_read_path : Optional[Path]
        Gzipped adapter-trimmed reads
    read_lengths_path : Optional[Path]
        Read-length report of the trimmer
    alignment_path : Optional[Path]
        SAM file written by bowtie2
    bam_path : Optional[Path]
        Unfiltered BAM converted from the SAM file
    sorted_filtered_bam_path : Optional[Path]
        MAPQ-filtered, coordinate-sorted BAM
    tag_directory_path : Optional[Path]
        HOMER tag directory
    track_path : Optional[Path]
        UCSC bedGraph track
    state : RunState
        Current state of the run
    completed_stages : Set[str]
        Names of stages that have completed successfully
    """

    # --- Immutable Configuration ---
    config: "RunConfig"
    workspace: "Workspace"
    start_time: datetime = field(default_factory=datetime.now)

    # --- Derived once ---
    sample_basename: str = ""
    current_read_path: Optional[Path] = None

    # --- Artifacts ---
    trimmed_read_path: Optional[Path] = None
    read_lengths_path: Optional[Path] = None
    alignment_path: Optional[Path] = None
    bam_path: Optional[Path] = None
    sorted_filtered_bam_path: Optional[Path] = None
    tag_directory_path: Optional[Path] = None
    track_path: Optional[Path] = None

    # --- Stage tracking ---
    state: RunState = RunState.INIT
    completed_stages: Set[str] = field(default_factory=set)
    _recorded: Set[str] = field(default_factory=set, init=False, repr=False)

    @classmethod
    def from_config(cls, config: "RunConfig", workspace: "Workspace") -> "PipelineContext":
        """Build the initial context of a run.

        Parameters
        ----------
        config : RunConfig
            Validated run configuration
        workspace : Workspace
            Workspace rooted at ``config.output_root_dir``

        Returns
        -------
        PipelineContext
            Context in state INIT with the input reads as current reads
        """
        return cls(
            config=config,
            workspace=workspace,
            sample_basename=config.sample_basename,
            current_read_path=Path(config.input_read_path),
        )

    def record_artifact(self, field_name: str, path: Path, stage_name: str) -> None:
        """Record the path of an artifact produced by a stage.

        Parameters
        ----------
        field_name : str
            One of ARTIFACT_FIELDS
        path : Path
            Path of the artifact
        stage_name : str
            Stage recording the artifact, for error reporting

        Raises
        ------
        PipelineError
            If the field is unknown or was already recorded
        """
        if field_name not in ARTIFACT_FIELDS:
            raise PipelineError(f"Unknown artifact field '{field_name}'", stage=stage_name)
        if field_name in self._recorded:
            raise PipelineError(
                f"Artifact '{field_name}' was already recorded; "
                f"stage '{stage_name}' may not overwrite it",
                stage=stage_name,
            )
        setattr(self, field_name, Path(path))
        self._recorded.add(field_name)
        logger.debug(f"Stage '{stage_name}' recorded {field_name}={path}")

    def is_recorded(self, field_name: str) -> bool:
        """Return True if a stage has recorded the given artifact field."""
        return field_name in self._recorded

    def mark_complete(self, stage_name: str) -> None:
        """Mark a stage as complete.

        Parameters
        ----------
        stage_name : str
            Name of the stage to mark complete
        """
        self.completed_stages.add(stage_name)
        logger.debug(f"Stage '{stage_name}' marked as complete")

    def is_complete(self, stage_name: str) -> bool:
        """Check if a stage has been completed."""
        return stage_name in self.completed_stages

    def get_execution_time(self) -> float:
        """Get the elapsed execution time in seconds.

        Returns
        -------
        float
            Elapsed time since pipeline start
        """
        return (datetime.now() - self.start_time).total_seconds()

    def __repr__(self) -> str:
        """Return string representation showing key state information."""
        return (
            f"PipelineContext("
            f"sample='{self.sample_basename}', "
            f"state={self.state.value}, "
            f"stages_completed={len(self.completed_stages)}, "
            f"execution_time={self.get_execution_time():.1f}s)"
        )

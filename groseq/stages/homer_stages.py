"""
HOMER stages.

Build the HOMER tag directory from the final alignment file and derive a
strand-separated UCSC bedGraph track from it. Both stages share the
``homer`` directory, which is the tag directory itself.
"""

import logging
from pathlib import Path
from typing import List

from ..pipeline_core import PipelineContext, RunState, Stage
from ..utils import run_command

logger = logging.getLogger(__name__)


class TagDirectoryStage(Stage):
    """Run makeTagDirectory on the sorted, filtered BAM."""

    @property
    def name(self) -> str:
        """Return the stage name."""
        return "make_tag_directory"

    @property
    def description(self) -> str:
        """Return a description of what this stage does."""
        return "Building HOMER tag directory"

    @property
    def subdirectory(self) -> str:
        """Return the stage subdirectory."""
        return "homer"

    @property
    def requires(self):
        """Return the context fields this stage reads."""
        return ("sorted_filtered_bam_path",)

    @property
    def produces(self):
        """Return the context fields this stage records."""
        return ("tag_directory_path",)

    @property
    def entry_state(self) -> RunState:
        """Return the state the run must be in."""
        return RunState.FILTERED

    @property
    def exit_state(self) -> RunState:
        """Return the state reached on success."""
        return RunState.TAGGED

    def log_path(self, context: PipelineContext) -> Path:
        """Return the makeTagDirectory log path."""
        return context.workspace.stage_dir(self.subdirectory) / "maketagdirectory.out"

    def build_command(self, context: PipelineContext) -> List[str]:
        """Build the makeTagDirectory command line.

        GC bias checking is always on; the genome is only passed when one
        was configured.
        """
        cmd = ["makeTagDirectory", str(context.workspace.stage_dir(self.subdirectory))]
        if context.config.homer_genome:
            cmd.extend(["-genome", context.config.homer_genome])
        cmd.extend(
            [
                "-checkGC",
                "-format",
                "sam",
                str(self._require(context, "sorted_filtered_bam_path")),
            ]
        )
        return cmd

    def _process(self, context: PipelineContext) -> PipelineContext:
        """Run makeTagDirectory."""
        run_command(self.build_command(context), self.log_path(context), self.name)
        self._record(context, "tag_directory_path", context.workspace.stage_dir(self.subdirectory))
        return context


class UcscTrackStage(Stage):
    """Run makeUCSCfile on the tag directory."""

    @property
    def name(self) -> str:
        """Return the stage name."""
        return "make_ucsc_file"

    @property
    def description(self) -> str:
        """Return a description of what this stage does."""
        return "Building UCSC browser track"

    @property
    def subdirectory(self) -> str:
        """Return the stage subdirectory."""
        return "homer"

    @property
    def requires(self):
        """Return the context fields this stage reads."""
        return ("tag_directory_path",)

    @property
    def produces(self):
        """Return the context fields this stage records."""
        return ("track_path",)

    @property
    def entry_state(self) -> RunState:
        """Return the state the run must be in."""
        return RunState.TAGGED

    @property
    def exit_state(self) -> RunState:
        """Return the state reached on success."""
        return RunState.TRACKED

    def log_path(self, context: PipelineContext) -> Path:
        """Return the makeUCSCfile log path."""
        return context.workspace.stage_dir(self.subdirectory) / "makeucscfile_out"

    def build_command(self, context: PipelineContext) -> List[str]:
        """Build the makeUCSCfile command line."""
        return [
            "makeUCSCfile",
            str(self._require(context, "tag_directory_path")),
            "-o",
            "auto",
            "-strand",
            "separate",
        ]

    @staticmethod
    def auto_track_path(tag_directory: Path) -> Path:
        """Return the file name makeUCSCfile picks for ``-o auto``."""
        tag_directory = Path(tag_directory)
        return tag_directory / f"{tag_directory.name}.ucsc.bedGraph.gz"

    def _process(self, context: PipelineContext) -> PipelineContext:
        """Run makeUCSCfile."""
        tag_directory = self._require(context, "tag_directory_path")
        run_command(self.build_command(context), self.log_path(context), self.name)

        track = self.auto_track_path(tag_directory)
        logger.info(f"UCSC track written to {track}")
        self._record(context, "track_path", track)
        return context

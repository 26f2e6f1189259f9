"""
Preprocessing stages.

This module contains the adapter trimming stage, which runs
``homerTools trim`` on the raw reads, moves its outputs into the
``preprocess`` directory under sample-scoped names and recompresses the
trimmed reads.
"""

import logging
import shutil
from pathlib import Path
from typing import List

from ..pipeline_core import PipelineContext, RunState, Stage
from ..utils import compress_file, run_command

logger = logging.getLogger(__name__)

# Fixed homerTools trim parameters
TRIM_MIN_LENGTH = 15
TRIM_MAX_MISMATCHES = 1
TRIM_MIN_MATCH_LENGTH = 4
TRIMMED_SUFFIX = "trimmed"
LENGTHS_SUFFIX = "lengths"


def homer_trim_output(reads: Path, suffix: str) -> Path:
    """Return where homerTools trim writes an output for the given input.

    HOMER names its outputs after the input with any ``.gz`` dropped, e.g.
    ``reads.fastq.gz`` -> ``reads.fastq.trimmed``, next to the input file.
    """
    reads = Path(reads)
    name = reads.name[: -len(".gz")] if reads.name.endswith(".gz") else reads.name
    return reads.with_name(f"{name}.{suffix}")


class TrimAdapterStage(Stage):
    """Trim the 3' Illumina adapter from the raw reads."""

    @property
    def name(self) -> str:
        """Return the stage name."""
        return "trim_adapter"

    @property
    def description(self) -> str:
        """Return a description of what this stage does."""
        return "Trimming 3' Illumina adapter"

    @property
    def subdirectory(self) -> str:
        """Return the stage subdirectory."""
        return "preprocess"

    @property
    def requires(self):
        """Return the context fields this stage reads."""
        return ("current_read_path",)

    @property
    def produces(self):
        """Return the context fields this stage records."""
        return ("trimmed_read_path", "read_lengths_path", "current_read_path")

    @property
    def entry_state(self) -> RunState:
        """Return the state the run must be in."""
        return RunState.INIT

    @property
    def exit_state(self) -> RunState:
        """Return the state reached on success."""
        return RunState.TRIMMED

    def log_path(self, context: PipelineContext) -> Path:
        """Return the trimming log path."""
        return context.workspace.get_sample_path(self.subdirectory, "_trim.out")

    def build_command(self, context: PipelineContext) -> List[str]:
        """Build the homerTools trim command line."""
        return [
            "homerTools",
            "trim",
            "-3",
            context.config.adapter_sequence,
            "-min",
            str(TRIM_MIN_LENGTH),
            "-mis",
            str(TRIM_MAX_MISMATCHES),
            "-minMatchLength",
            str(TRIM_MIN_MATCH_LENGTH),
            "-suffix",
            TRIMMED_SUFFIX,
            "-lenSuffix",
            LENGTHS_SUFFIX,
            str(self._require(context, "current_read_path")),
        ]

    def _process(self, context: PipelineContext) -> PipelineContext:
        """Run the trimmer, then rename and recompress its outputs."""
        reads = self._require(context, "current_read_path")
        workspace = context.workspace

        run_command(self.build_command(context), self.log_path(context), self.name)

        trimmed_fastq = workspace.get_sample_path(self.subdirectory, ".fastq")
        lengths_file = workspace.get_sample_path(self.subdirectory, "_lengths.txt")

        start = self._start_subtask("rename_outputs")
        shutil.move(str(homer_trim_output(reads, TRIMMED_SUFFIX)), str(trimmed_fastq))
        shutil.move(str(homer_trim_output(reads, LENGTHS_SUFFIX)), str(lengths_file))
        self._end_subtask("rename_outputs", start)

        start = self._start_subtask("compress_reads")
        compressed = compress_file(trimmed_fastq)
        self._end_subtask("compress_reads", start)
        logger.info(f"Trimmed reads written to {compressed}")

        self._record(context, "trimmed_read_path", compressed)
        self._record(context, "read_lengths_path", lengths_file)
        self._record(context, "current_read_path", compressed)
        return context

"""
Alignment stages.

This module contains the stages that turn trimmed reads into the final
alignment file:
- Alignment with bowtie2 (SAM output)
- SAM to BAM conversion with samtools view
- MAPQ filtering and coordinate sorting with samtools view | samtools sort
"""

import logging
import os
import shlex
from pathlib import Path
from typing import List

from ..pipeline_core import PipelineContext, RunState, Stage
from ..utils import run_command, run_piped_commands

logger = logging.getLogger(__name__)

SORT_TEMP_PREFIX = "tmp"


class AlignReadsStage(Stage):
    """Align reads to the reference genome with bowtie2."""

    @property
    def name(self) -> str:
        """Return the stage name."""
        return "align_reads"

    @property
    def description(self) -> str:
        """Return a description of what this stage does."""
        return "Aligning reads to reference genome"

    @property
    def subdirectory(self) -> str:
        """Return the stage subdirectory."""
        return "align"

    @property
    def requires(self):
        """Return the context fields this stage reads."""
        return ("current_read_path",)

    @property
    def produces(self):
        """Return the context fields this stage records."""
        return ("alignment_path",)

    @property
    def entry_state(self) -> RunState:
        """Return the state the run must be in."""
        return RunState.TRIMMED

    @property
    def exit_state(self) -> RunState:
        """Return the state reached on success."""
        return RunState.ALIGNED

    def log_path(self, context: PipelineContext) -> Path:
        """Return the bowtie2 log path."""
        return context.workspace.get_sample_path(self.subdirectory, "_bt2.out")

    def sam_path(self, context: PipelineContext) -> Path:
        """Return the SAM output path."""
        return context.workspace.get_sample_path(self.subdirectory, ".sam")

    def build_command(self, context: PipelineContext) -> List[str]:
        """Build the bowtie2 command line.

        The user-supplied option string is split into tokens the way a POSIX
        shell would, so quoted values stay single arguments.
        """
        config = context.config
        return [
            "bowtie2",
            *shlex.split(config.aligner_options),
            "-x",
            config.reference_index_path,
            "-U",
            str(self._require(context, "current_read_path")),
            "-S",
            str(self.sam_path(context)),
        ]

    def _process(self, context: PipelineContext) -> PipelineContext:
        """Run bowtie2."""
        run_command(self.build_command(context), self.log_path(context), self.name)
        self._record(context, "alignment_path", self.sam_path(context))
        return context


class ConvertAlignmentStage(Stage):
    """Convert the SAM file to BAM and delete the SAM file."""

    @property
    def name(self) -> str:
        """Return the stage name."""
        return "convert_alignment"

    @property
    def description(self) -> str:
        """Return a description of what this stage does."""
        return "Converting to bam format"

    @property
    def subdirectory(self) -> str:
        """Return the stage subdirectory."""
        return "align"

    @property
    def requires(self):
        """Return the context fields this stage reads."""
        return ("alignment_path",)

    @property
    def produces(self):
        """Return the context fields this stage records."""
        return ("bam_path",)

    @property
    def entry_state(self) -> RunState:
        """Return the state the run must be in."""
        return RunState.ALIGNED

    @property
    def exit_state(self) -> RunState:
        """Return the state reached on success."""
        return RunState.CONVERTED

    def log_path(self, context: PipelineContext) -> Path:
        """Return the conversion log path."""
        return context.workspace.get_sample_path(self.subdirectory, "_bam.out")

    def bam_path(self, context: PipelineContext) -> Path:
        """Return the BAM output path."""
        return context.workspace.get_sample_path(self.subdirectory, ".bam")

    def build_command(self, context: PipelineContext) -> List[str]:
        """Build the samtools view command line."""
        return [
            "samtools",
            "view",
            "-b",
            "-S",
            "-h",
            "-o",
            str(self.bam_path(context)),
            str(self._require(context, "alignment_path")),
        ]

    def _process(self, context: PipelineContext) -> PipelineContext:
        """Run samtools view, then remove the SAM file to reclaim space."""
        sam = self._require(context, "alignment_path")
        run_command(self.build_command(context), self.log_path(context), self.name)

        if os.path.exists(sam):
            os.remove(sam)
            logger.debug(f"Removed {sam}")

        self._record(context, "bam_path", self.bam_path(context))
        return context


class SortFilterStage(Stage):
    """Drop low-MAPQ alignments and sort the remainder by coordinate."""

    @property
    def name(self) -> str:
        """Return the stage name."""
        return "sort_filter"

    @property
    def description(self) -> str:
        """Return a description of what this stage does."""
        return "Sorting and filtering on MAPQ"

    @property
    def subdirectory(self) -> str:
        """Return the stage subdirectory."""
        return "samtools"

    @property
    def requires(self):
        """Return the context fields this stage reads."""
        return ("bam_path",)

    @property
    def produces(self):
        """Return the context fields this stage records."""
        return ("sorted_filtered_bam_path",)

    @property
    def entry_state(self) -> RunState:
        """Return the state the run must be in."""
        return RunState.CONVERTED

    @property
    def exit_state(self) -> RunState:
        """Return the state reached on success."""
        return RunState.FILTERED

    def log_path(self, context: PipelineContext) -> Path:
        """Return the sort/filter log path."""
        return context.workspace.get_sample_path(self.subdirectory, "_sort_filter.out")

    def sorted_bam_path(self, context: PipelineContext) -> Path:
        """Return the final BAM path."""
        return context.workspace.get_sample_path(self.subdirectory, ".bam")

    def temp_prefix(self, context: PipelineContext) -> Path:
        """Return the samtools sort temporary file prefix."""
        return context.workspace.stage_dir(self.subdirectory) / SORT_TEMP_PREFIX

    def build_commands(self, context: PipelineContext) -> List[List[str]]:
        """Build the ``samtools view | samtools sort`` pipeline."""
        config = context.config
        view_cmd = [
            "samtools",
            "view",
            "-b",
            "-q",
            str(config.mapq_minimum),
            str(self._require(context, "bam_path")),
        ]
        sort_cmd = [
            "samtools",
            "sort",
            "-@",
            str(config.thread_count),
            "-m",
            config.memory_ceiling,
            "-T",
            str(self.temp_prefix(context)),
            "-o",
            str(self.sorted_bam_path(context)),
            "-",
        ]
        return [view_cmd, sort_cmd]

    def remove_stale_temp_files(self, context: PipelineContext) -> List[Path]:
        """Delete sort temporary files left behind by an earlier attempt.

        Returns
        -------
        List[Path]
            The files that were removed
        """
        stage_dir = context.workspace.stage_dir(self.subdirectory)
        stale = [stage_dir / f"{SORT_TEMP_PREFIX}.bam"]
        stale.extend(sorted(stage_dir.glob(f"{SORT_TEMP_PREFIX}.*.bam")))

        removed = []
        for path in stale:
            if path.exists():
                path.unlink()
                removed.append(path)
                logger.info(f"Removed stale temporary file {path}")
        return removed

    def _process(self, context: PipelineContext) -> PipelineContext:
        """Clean stale temp files, then filter and sort."""
        # Only leftovers of earlier attempts are removed; a failing sort keeps its own
        self.remove_stale_temp_files(context)

        run_piped_commands(self.build_commands(context), self.log_path(context), self.name)
        self._record(context, "sorted_filtered_bam_path", self.sorted_bam_path(context))
        return context

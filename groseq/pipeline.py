"""
Pipeline assembly and execution.

This module holds the stage transition table of the GRO-seq pipeline and
runs it for a validated RunConfig.
"""

import logging
from typing import List

from .config import RunConfig
from .pipeline_core import PipelineContext, PipelineRunner, Stage, Workspace
from .stages import (
    AlignReadsStage,
    ConvertAlignmentStage,
    SortFilterStage,
    TagDirectoryStage,
    TrimAdapterStage,
    UcscTrackStage,
)
from .utils import check_external_tools

logger = logging.getLogger(__name__)

# Fixed execution order: INIT -> TRIMMED -> ALIGNED -> CONVERTED -> FILTERED -> TAGGED -> TRACKED
PIPELINE_STAGES = (
    TrimAdapterStage,
    AlignReadsStage,
    ConvertAlignmentStage,
    SortFilterStage,
    TagDirectoryStage,
    UcscTrackStage,
)

REQUIRED_TOOLS = ["homerTools", "bowtie2", "samtools", "makeTagDirectory", "makeUCSCfile"]


def build_pipeline_stages() -> List[Stage]:
    """Instantiate the stages of the transition table, in order."""
    return [stage_class() for stage_class in PIPELINE_STAGES]


def run_pipeline(config: RunConfig) -> PipelineContext:
    """Run the full pipeline for a validated configuration.

    Creates the output root, seeds the context with the sample name and the
    input reads, and runs every stage in order. The first failure aborts the
    run; artifacts of earlier stages are left in place.

    Parameters
    ----------
    config : RunConfig
        Validated run configuration

    Returns
    -------
    PipelineContext
        Final context, in state TRACKED

    Raises
    ------
    StageExecutionError
        If an external tool fails or cannot be launched
    PipelineError
        If a stage breaks its preconditions or artifact contract
    """
    # Missing tools are reported up front; the failing stage still aborts the run
    check_external_tools(REQUIRED_TOOLS)

    workspace = Workspace(config.output_root_dir, config.sample_basename)
    context = PipelineContext.from_config(config, workspace)
    logger.info(f"Processing sample '{context.sample_basename}' into {workspace.output_dir}")

    stages = build_pipeline_stages()
    logger.info(f"Pipeline configured with {len(stages)} stages")

    runner = PipelineRunner()
    context = runner.run(stages, context)

    logger.info(f"Run finished in state '{context.state.value}'")
    return context

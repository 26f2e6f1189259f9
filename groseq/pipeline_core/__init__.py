"""
Pipeline infrastructure for groseq.

This package provides the core abstractions of the pipeline driver:
- PipelineContext: Container for run state and artifact paths
- Stage: Abstract base class for all pipeline stages
- Workspace: Centralized file path management
- PipelineRunner: Executes stages in order, failing fast
"""

from .context import PipelineContext, RunState
from .runner import PipelineRunner
from .stage import Stage
from .workspace import Workspace

__all__ = [
    "PipelineContext",
    "RunState",
    "Stage",
    "Workspace",
    "PipelineRunner",
]

"""
Workspace - Centralized file path management for pipeline runs.

This module provides the Workspace class that owns the output directory
tree of a run. Every stage writes into its own subdirectory of the output
root, and all artifact and log names are derived from the sample name here.
"""

import logging
from pathlib import Path
from typing import List

logger = logging.getLogger(__name__)


class Workspace:
    """Manages all file paths for a pipeline run.

    Attributes
    ----------
    output_dir : Path
        Output root of the run
    base_name : str
        Sample name used for artifact and log file names
    """

    def __init__(self, output_dir: Path, base_name: str):
        """Initialize workspace and create the output root.

        Parameters
        ----------
        output_dir : Path
            Output root directory path
        base_name : str
            Sample name used for generated files
        """
        self.output_dir = Path(output_dir)
        self.base_name = base_name

        self.output_dir.mkdir(parents=True, exist_ok=True)
        logger.debug(f"Workspace initialized: output_dir={self.output_dir}")

    def stage_dir(self, name: str) -> Path:
        """Return the path of a stage subdirectory without creating it."""
        return self.output_dir / name

    def create_subdirectory(self, name: str) -> Path:
        """Create a stage subdirectory of the output root if absent.

        Parameters
        ----------
        name : str
            Name of the subdirectory

        Returns
        -------
        Path
            Path to the subdirectory
        """
        subdir = self.stage_dir(name)
        subdir.mkdir(exist_ok=True)
        return subdir

    def get_sample_path(self, subdirectory: str, suffix: str) -> Path:
        """Build ``<output_dir>/<subdirectory>/<base_name><suffix>``.

        Parameters
        ----------
        subdirectory : str
            Stage subdirectory
        suffix : str
            Text appended to the sample name, e.g. ".bam" or "_bt2.out"

        Returns
        -------
        Path
            Full path of the sample-scoped file
        """
        return self.stage_dir(subdirectory) / f"{self.base_name}{suffix}"

    def list_outputs(self) -> List[Path]:
        """List every file and directory below the output root."""
        return sorted(self.output_dir.rglob("*"))

    def __repr__(self) -> str:
        """Return string representation of the workspace."""
        return f"Workspace(output_dir='{self.output_dir}', " f"base_name='{self.base_name}')"

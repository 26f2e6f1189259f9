"""
Error handling utilities for the GRO-seq pipeline.

This module provides:
- Custom exception classes for configuration, environment and stage errors
- A context manager turning unexpected file system errors inside a stage
  into a StageExecutionError that names the stage log

Every error is fatal to the run; nothing here retries or recovers.
"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, List, Optional, Union

logger = logging.getLogger(__name__)


class PipelineError(Exception):
    """Base exception for all pipeline errors."""

    def __init__(self, message: str, stage: Optional[str] = None, details: Optional[Dict] = None):
        """Initialize pipeline error.

        Parameters
        ----------
        message : str
            Error message
        stage : str, optional
            Stage where error occurred
        details : dict, optional
            Additional error details
        """
        super().__init__(message)
        self.stage = stage
        self.details = details or {}


class ConfigurationError(PipelineError):
    """Raised for bad or missing command-line input, detected before any stage runs."""


class MissingArgumentError(ConfigurationError):
    """Raised when required command-line options are absent."""

    def __init__(self, missing: List[str]):
        """Initialize missing argument error."""
        message = f"Missing required option(s): {', '.join(missing)}"
        super().__init__(message, details={"missing": list(missing)})
        self.missing = list(missing)


class UnreadableInputError(ConfigurationError):
    """Raised when the input read file does not exist or cannot be read."""

    def __init__(self, path: str):
        """Initialize unreadable input error."""
        message = f"Must specify a valid fastq file: '{path}' is not a readable file"
        super().__init__(message, details={"file": str(path)})


class UnsupportedExtensionError(ConfigurationError):
    """Raised when the input read file has an unrecognized extension."""

    def __init__(self, path: str):
        """Initialize unsupported extension error."""
        message = (
            f"Input '{path}' must end with .fq or .fastq, "
            "or be gzipped with .fq.gz or .fastq.gz"
        )
        super().__init__(message, details={"file": str(path)})


class NonEmptyOutputDirError(ConfigurationError):
    """Raised when the output directory already exists and has entries."""

    def __init__(self, path: str):
        """Initialize non-empty output directory error."""
        message = f"Output directory '{path}' is not empty; choose a new or empty directory"
        super().__init__(message, details={"directory": str(path)})


class PipelineEnvironmentError(PipelineError):
    """Raised when the runtime environment cannot support the run."""


class BadReferenceIndexError(PipelineEnvironmentError):
    """Raised when the bowtie2 index fails inspection."""

    def __init__(self, index: str, reason: Optional[str] = None):
        """Initialize bad reference index error."""
        message = f"Problem reading bowtie2 index '{index}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, details={"index": index})


class StageExecutionError(PipelineError):
    """Raised when an external tool of a stage fails or cannot be launched."""

    def __init__(
        self,
        stage_name: str,
        log_path: Union[str, Path],
        returncode: Optional[int] = None,
        original_error: Optional[Exception] = None,
    ):
        """Initialize stage execution error.

        Parameters
        ----------
        stage_name : str
            Stage whose invocation failed
        log_path : str or Path
            Log file holding the tool's own diagnostics
        returncode : int, optional
            Exit status, if the process ran at all
        original_error : Exception, optional
            Error raised while launching or handling the tool
        """
        if original_error is not None:
            reason = str(original_error)
        else:
            reason = f"exit status {returncode}"
        message = f"Stage '{stage_name}' failed ({reason}); check {log_path} for details"
        super().__init__(
            message,
            stage_name,
            {
                "log_path": str(log_path),
                "returncode": returncode,
                "error_type": type(original_error).__name__ if original_error else None,
            },
        )
        self.log_path = Path(log_path)
        self.returncode = returncode
        self.original_error = original_error


@contextmanager
def graceful_error_handling(stage_name: str, log_path: Union[str, Path]):
    """Context manager for error handling in stage bodies.

    Pipeline errors pass through unchanged. File system errors (for example
    a tool exiting 0 without writing the output a stage moves afterwards)
    become a StageExecutionError naming the stage log.

    Parameters
    ----------
    stage_name : str
        Name of the stage for error reporting
    log_path : str or Path
        The stage log the operator should inspect

    Examples
    --------
    >>> with graceful_error_handling("trim_adapter", "out/preprocess/s_trim.out"):
    ...     pass
    """
    try:
        yield
    except PipelineError:
        raise
    except OSError as e:
        logger.error(f"File system error in {stage_name}: {e}")
        raise StageExecutionError(stage_name, log_path, original_error=e) from e

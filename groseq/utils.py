# File: groseq/utils.py
# Location: groseq/groseq/utils.py

"""
Utility functions module.

Provides helper functions for running external tools with their output
captured in a log file, checking tool availability, parsing memory sizes
and compressing intermediate files.
"""

import logging
import os
import re
import shlex
import shutil
import subprocess
from pathlib import Path
from typing import List, Sequence, Union

import smart_open

from .pipeline_core.error_handling import StageExecutionError

logger = logging.getLogger("groseq")

MEMORY_SIZE_PATTERN = re.compile(r"^(\d+)([KMG]?)$", re.IGNORECASE)
_MEMORY_UNITS = {"": 1, "K": 1024, "M": 1024**2, "G": 1024**3}


def check_external_tools(tools: List[str]) -> bool:
    """
    Check if external tools are available in PATH.

    Parameters
    ----------
    tools : List[str]
        List of tool names to check for availability

    Returns
    -------
    bool
        True if all tools are available, False otherwise
    """
    available = True
    for tool in tools:
        if not shutil.which(tool):
            logger.warning(f"Tool not found in PATH: {tool}")
            available = False
        else:
            logger.debug(f"Found tool in PATH: {tool}")
    return available


def format_command(cmd: Sequence[str]) -> str:
    """Render a command as a copy-pasteable shell line for logging."""
    return " ".join(shlex.quote(str(token)) for token in cmd)


def _open_log(log_path: Union[str, Path]):
    log_path = Path(log_path)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    return open(log_path, "wb")


def _record_launch_failure(log_fh, error: OSError) -> None:
    log_fh.write(f"Failed to launch command: {error}\n".encode("utf-8"))
    log_fh.flush()


def run_command(cmd: Sequence[str], log_path: Union[str, Path], stage: str) -> Path:
    """
    Run an external tool with stdout and stderr captured in a log file.

    The command is passed as discrete argument tokens, never through a shell.
    The call blocks until the process exits; there is no timeout and no retry.

    Parameters
    ----------
    cmd : sequence of str
        Executable followed by its arguments.
    log_path : str or Path
        File receiving the combined output of the tool. Its parent directory
        is created if needed; an existing file is overwritten.
    stage : str
        Name of the invoking stage, used for error reporting.

    Returns
    -------
    Path
        The log path, after the tool exited with status 0.

    Raises
    ------
    StageExecutionError
        If the tool exits with a non-zero status or cannot be launched.
    """
    cmd = [str(token) for token in cmd]
    log_path = Path(log_path)
    logger.info("Running: %s", format_command(cmd))

    with _open_log(log_path) as log_fh:
        try:
            result = subprocess.run(cmd, stdout=log_fh, stderr=subprocess.STDOUT)
        except OSError as e:
            _record_launch_failure(log_fh, e)
            logger.error("Could not launch %s: %s", cmd[0], e)
            raise StageExecutionError(stage, log_path, original_error=e) from e

    if result.returncode != 0:
        logger.error("Command failed with exit status %d: %s", result.returncode, cmd[0])
        raise StageExecutionError(stage, log_path, returncode=result.returncode)

    logger.debug("Command completed successfully.")
    return log_path


def run_piped_commands(
    cmds: Sequence[Sequence[str]], log_path: Union[str, Path], stage: str
) -> Path:
    """
    Run ``cmd1 | cmd2 | ...`` with all diagnostics captured in one log file.

    Each command's stdout feeds the next command's stdin. Every stderr and the
    stdout of the last command go to the log. The pipeline fails if any of
    its members exits non-zero.

    Parameters
    ----------
    cmds : sequence of sequence of str
        The commands of the pipeline, in order.
    log_path : str or Path
        File receiving the combined diagnostics.
    stage : str
        Name of the invoking stage, used for error reporting.

    Returns
    -------
    Path
        The log path, after every member exited with status 0.

    Raises
    ------
    StageExecutionError
        If any member exits non-zero or cannot be launched.
    """
    if not cmds:
        raise ValueError("run_piped_commands needs at least one command")

    cmds = [[str(token) for token in cmd] for cmd in cmds]
    log_path = Path(log_path)
    logger.info("Running: %s", " | ".join(format_command(cmd) for cmd in cmds))

    procs: List[subprocess.Popen] = []
    with _open_log(log_path) as log_fh:
        upstream = None
        try:
            for i, cmd in enumerate(cmds):
                last = i == len(cmds) - 1
                proc = subprocess.Popen(
                    cmd,
                    stdin=upstream,
                    stdout=log_fh if last else subprocess.PIPE,
                    stderr=log_fh,
                )
                # The child holds its own copy; closing ours lets SIGPIPE propagate
                if upstream is not None:
                    upstream.close()
                upstream = proc.stdout
                procs.append(proc)
        except OSError as e:
            if upstream is not None:
                upstream.close()
            for proc in procs:
                proc.kill()
                proc.wait()
            _record_launch_failure(log_fh, e)
            logger.error("Could not launch pipeline member: %s", e)
            raise StageExecutionError(stage, log_path, original_error=e) from e

        returncodes = [proc.wait() for proc in procs]

    failed = [(cmd, returncode) for cmd, returncode in zip(cmds, returncodes) if returncode != 0]
    for cmd, returncode in failed:
        logger.error("Command failed with exit status %d: %s", returncode, cmd[0])
    if failed:
        # An upstream member dying of a broken pipe is a symptom; report the last failure
        raise StageExecutionError(stage, log_path, returncode=failed[-1][1])

    logger.debug("Pipeline completed successfully.")
    return log_path


def parse_memory_size(size: str) -> int:
    """
    Convert a samtools-style memory size ("768M", "2G", "500000") to bytes.

    Parameters
    ----------
    size : str
        Integer with an optional K, M or G suffix (case-insensitive).

    Returns
    -------
    int
        Size in bytes.

    Raises
    ------
    ValueError
        If the string is not a valid size.
    """
    match = MEMORY_SIZE_PATTERN.match(str(size).strip())
    if not match:
        raise ValueError(f"Invalid memory size '{size}'; expected e.g. 768M or 2G")
    number, unit = match.groups()
    return int(number) * _MEMORY_UNITS[unit.upper()]


def compress_file(source: Union[str, Path], remove_source: bool = True) -> Path:
    """
    Gzip-compress a file next to itself, like ``gzip FILE``.

    Parameters
    ----------
    source : str or Path
        File to compress; the result is written to ``<source>.gz``.
    remove_source : bool
        Delete the uncompressed file afterwards (default True).

    Returns
    -------
    Path
        Path of the compressed file.
    """
    source = Path(source)
    target = source.with_name(source.name + ".gz")
    logger.debug(f"Compressing {source} -> {target}")

    # smart_open picks gzip from the .gz extension
    with open(source, "rb") as in_fh, smart_open.open(str(target), "wb") as out_fh:
        shutil.copyfileobj(in_fh, out_fh)

    if remove_source:
        os.remove(source)
    return target

# File: groseq/validators.py
# Location: groseq/groseq/validators.py

"""
Validation module for groseq.

This module provides functions to validate:
- Mandatory options (--fastq, --bt2-index, --outdir)
- The input read file (existence, readability, extension)
- The output directory (absent or empty)
- Resource options (threads, memory ceiling, MAPQ threshold)
- The bowtie2 reference index (via bowtie2-inspect)

and assembles them into a RunConfig. Checks run in that order and have no
side effects: nothing is created on disk.
"""

import argparse
import logging
import os
import subprocess
from pathlib import Path
from typing import Any, Dict, Optional

import psutil

from .config import (
    DEFAULT_ADAPTER,
    DEFAULT_ALIGNER_OPTIONS,
    DEFAULT_MAPQ_MINIMUM,
    DEFAULT_MEMORY_CEILING,
    DEFAULT_THREADS,
    RunConfig,
    default_aligner_options,
    has_read_extension,
)
from .pipeline_core.error_handling import (
    BadReferenceIndexError,
    ConfigurationError,
    MissingArgumentError,
    NonEmptyOutputDirError,
    UnreadableInputError,
    UnsupportedExtensionError,
)
from .utils import parse_memory_size

logger = logging.getLogger("groseq")

REQUIRED_OPTIONS = (("fastq", "--fastq"), ("bt2_index", "--bt2-index"), ("outdir", "--outdir"))


def validate_required_options(args: argparse.Namespace) -> None:
    """
    Validate that the mandatory options were given.

    Parameters
    ----------
    args : argparse.Namespace
        Parsed command-line arguments.

    Raises
    ------
    MissingArgumentError
        Naming every missing flag.
    """
    missing = [flag for attr, flag in REQUIRED_OPTIONS if not getattr(args, attr, None)]
    if missing:
        raise MissingArgumentError(missing)


def validate_read_file(fastq_path: str) -> Path:
    """
    Validate that the input read file exists, is readable and has a read extension.

    Parameters
    ----------
    fastq_path : str
        Path to the fastq file.

    Returns
    -------
    Path
        The validated path.

    Raises
    ------
    UnreadableInputError
        If the file does not exist or cannot be read.
    UnsupportedExtensionError
        If the name does not end with .fastq, .fq, .fastq.gz or .fq.gz.
    """
    if not os.path.isfile(fastq_path) or not os.access(fastq_path, os.R_OK):
        raise UnreadableInputError(fastq_path)
    if not has_read_extension(fastq_path):
        raise UnsupportedExtensionError(fastq_path)
    return Path(fastq_path)


def validate_output_directory(outdir: str) -> Path:
    """
    Validate that the output directory is absent or empty.

    Parameters
    ----------
    outdir : str
        Output directory path.

    Returns
    -------
    Path
        The validated path. The directory is not created here.

    Raises
    ------
    NonEmptyOutputDirError
        If the directory exists and has any entry.
    ConfigurationError
        If the path exists but is not a directory.
    """
    path = Path(outdir)
    if path.exists():
        if not path.is_dir():
            raise ConfigurationError(f"Output path '{outdir}' exists and is not a directory")
        if any(path.iterdir()):
            raise NonEmptyOutputDirError(outdir)
    return path


def validate_resources(threads: int, memory_ceiling: str, mapq_minimum: int) -> None:
    """
    Validate thread count, per-thread memory ceiling and MAPQ threshold.

    Raises
    ------
    ConfigurationError
        If any value is out of range or malformed.
    """
    if threads < 1:
        raise ConfigurationError(f"Thread count must be at least 1, got {threads}")
    if mapq_minimum < 0:
        raise ConfigurationError(f"MAPQ threshold must not be negative, got {mapq_minimum}")
    try:
        parse_memory_size(memory_ceiling)
    except ValueError as e:
        raise ConfigurationError(str(e))


def check_memory_ceiling(threads: int, memory_ceiling: str) -> bool:
    """
    Warn if samtools sort may use more memory than is available.

    samtools sort applies the ceiling per thread, so the total is
    ``threads * memory_ceiling``.

    Returns
    -------
    bool
        True if the total fits in the currently available memory.
    """
    requested = threads * parse_memory_size(memory_ceiling)
    available = psutil.virtual_memory().available
    if requested > available:
        logger.warning(
            "samtools sort may use %.1f GB (%d threads x %s) but only %.1f GB are available",
            requested / 1024**3,
            threads,
            memory_ceiling,
            available / 1024**3,
        )
        return False
    return True


def validate_reference_index(index: str) -> None:
    """
    Validate the bowtie2 index by inspecting it with ``bowtie2-inspect -n``.

    Parameters
    ----------
    index : str
        bowtie2 index prefix.

    Raises
    ------
    BadReferenceIndexError
        If the inspection exits non-zero or bowtie2-inspect cannot be run.
    """
    cmd = ["bowtie2-inspect", "-n", index]
    logger.debug("Inspecting bowtie2 index: %s", " ".join(cmd))
    try:
        result = subprocess.run(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
    except OSError as e:
        raise BadReferenceIndexError(index, str(e)) from e
    if result.returncode != 0:
        raise BadReferenceIndexError(index, f"bowtie2-inspect exited with status {result.returncode}")


def _pick(cli_value: Any, cfg: Dict[str, Any], key: str, default: Any) -> Any:
    if cli_value is not None:
        return cli_value
    value = cfg.get(key)
    return default if value is None else value


def _as_int(key: str, value: Any) -> int:
    # Config file values arrive untyped; "4" is accepted, "four" and 2.5 are not
    if isinstance(value, bool) or isinstance(value, float):
        raise ConfigurationError(f"Invalid value for {key}: {value!r} is not an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"Invalid value for {key}: {value!r} is not an integer")


def build_run_config(args: argparse.Namespace, cfg: Optional[Dict[str, Any]] = None) -> RunConfig:
    """
    Validate raw option values and build the RunConfig of a run.

    Command-line values take precedence over the configuration file. Unless
    --bt2-opt is given, the bowtie2 options are rendered from the configured
    template with the effective thread count.

    Parameters
    ----------
    args : argparse.Namespace
        Parsed command-line arguments.
    cfg : dict, optional
        Defaults loaded from config.json.

    Returns
    -------
    RunConfig
        The validated configuration.

    Raises
    ------
    ConfigurationError
        For missing options, unusable input, a non-empty output directory or
        invalid resource values.
    BadReferenceIndexError
        If the bowtie2 index fails inspection.
    """
    cfg = cfg or {}

    validate_required_options(args)
    fastq = validate_read_file(args.fastq)
    outdir = validate_output_directory(args.outdir)

    threads = _as_int(
        "threads", _pick(getattr(args, "threads", None), cfg, "threads", DEFAULT_THREADS)
    )
    memory_ceiling = str(
        _pick(getattr(args, "mem_max", None), cfg, "mem_max", DEFAULT_MEMORY_CEILING)
    )
    mapq_minimum = _as_int(
        "mapq_min", _pick(getattr(args, "mapq_min", None), cfg, "mapq_min", DEFAULT_MAPQ_MINIMUM)
    )
    validate_resources(threads, memory_ceiling, mapq_minimum)
    check_memory_ceiling(threads, memory_ceiling)

    aligner_options = getattr(args, "bt2_opt", None)
    if aligner_options is None:
        template = cfg.get("bt2_options") or DEFAULT_ALIGNER_OPTIONS
        aligner_options = default_aligner_options(threads, template)

    validate_reference_index(args.bt2_index)

    config = RunConfig(
        input_read_path=fastq,
        reference_index_path=args.bt2_index,
        output_root_dir=outdir,
        thread_count=threads,
        memory_ceiling=memory_ceiling,
        mapq_minimum=mapq_minimum,
        aligner_options=aligner_options,
        adapter_sequence=_pick(getattr(args, "adapter", None), cfg, "adapter", DEFAULT_ADAPTER),
        homer_genome=_pick(getattr(args, "homer_genome", None), cfg, "homer_genome", None),
    )
    logger.debug(f"Run configuration: {config}")
    return config

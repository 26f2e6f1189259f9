# File: groseq/config.py
# Location: groseq/groseq/config.py

"""
Configuration management module.

This module handles loading default run parameters from a JSON file and
defines the immutable RunConfig that a validated run is built from.
All default values reside in config.json, which is included in
the installed package directory.

If no config_file is provided, this module attempts to load the default
config.json from the package installation directory.
"""

import json
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

# Anchored at the end of the file name: "reads.fq.gz" -> "reads"
READ_EXTENSION_PATTERN = re.compile(r"\.(fastq|fq)(\.gz)?$")

DEFAULT_THREADS = 4
DEFAULT_MEMORY_CEILING = "2G"
DEFAULT_MAPQ_MINIMUM = 10
DEFAULT_ALIGNER_OPTIONS = "--sensitive -p {threads} -t"
DEFAULT_ADAPTER = "TGGAATTCTCGGGTGCCAAGGAACTCCAGTCAC"


def load_config(config_file: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from a JSON file.

    If no config_file is provided, the function attempts to load the
    'config.json' from the installed package directory. If it fails
    to find or parse the file, it raises an error.

    Parameters
    ----------
    config_file : str, optional
        Path to a configuration file in JSON format. If None, defaults to
        the package-installed 'config.json'.

    Returns
    -------
    dict
        Configuration dictionary loaded from the JSON file.

    Raises
    ------
    FileNotFoundError
        If the specified configuration file does not exist.
    ValueError
        If there is an error parsing the JSON configuration file.
    """
    if not config_file:
        # Use the package's installed config.json
        config_file = os.path.join(os.path.dirname(__file__), "config.json")

    if not os.path.exists(config_file):
        raise FileNotFoundError(f"Configuration file '{config_file}' not found.")

    with open(config_file, "r", encoding="utf-8") as f:
        try:
            config = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Error parsing JSON configuration: {e}")

    return config


def has_read_extension(path: str) -> bool:
    """Return True if the file name ends in .fastq/.fq, optionally gzipped."""
    return READ_EXTENSION_PATTERN.search(os.path.basename(str(path))) is not None


def derive_sample_basename(path: str) -> str:
    """
    Derive the sample name from a read file path.

    The directory component is dropped and the trailing .fastq/.fq suffix
    (with an optional .gz) is stripped. Names without a recognized suffix
    are returned unchanged, which keeps the derivation idempotent.

    Parameters
    ----------
    path : str
        Path to the input read file.

    Returns
    -------
    str
        Sample name used to name every artifact of the run.
    """
    return READ_EXTENSION_PATTERN.sub("", os.path.basename(str(path)))


def default_aligner_options(threads: int, template: str = DEFAULT_ALIGNER_OPTIONS) -> str:
    """Render the bowtie2 option template for the given thread count."""
    return template.format(threads=threads)


@dataclass(frozen=True)
class RunConfig:
    """Validated, immutable inputs of a single pipeline run.

    Attributes
    ----------
    input_read_path : Path
        Raw reads (.fastq/.fq, optionally gzipped)
    reference_index_path : str
        bowtie2 index prefix (not a file path)
    output_root_dir : Path
        Output directory; absent or empty before the run
    thread_count : int
        Threads handed to bowtie2 and samtools sort
    memory_ceiling : str
        samtools sort memory per thread (e.g. "2G")
    mapq_minimum : int
        Alignments below this MAPQ are dropped
    aligner_options : str
        bowtie2 options, split into tokens when the command is built
    adapter_sequence : str
        3' adapter removed by homerTools trim
    homer_genome : str, optional
        Genome passed to makeTagDirectory for the GC check
    """

    input_read_path: Path
    reference_index_path: str
    output_root_dir: Path
    thread_count: int = DEFAULT_THREADS
    memory_ceiling: str = DEFAULT_MEMORY_CEILING
    mapq_minimum: int = DEFAULT_MAPQ_MINIMUM
    aligner_options: str = default_aligner_options(DEFAULT_THREADS)
    adapter_sequence: str = DEFAULT_ADAPTER
    homer_genome: Optional[str] = None

    @property
    def sample_basename(self) -> str:
        """Sample name derived from the input read file."""
        return derive_sample_basename(str(self.input_read_path))

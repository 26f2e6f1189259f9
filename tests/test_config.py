"""Tests for configuration loading and sample name derivation."""

import json
from pathlib import Path

import pytest

from groseq.config import (
    DEFAULT_ADAPTER,
    RunConfig,
    default_aligner_options,
    derive_sample_basename,
    has_read_extension,
    load_config,
)


class TestSampleBasename:
    """Tests for derive_sample_basename."""

    @pytest.mark.parametrize(
        "path,expected",
        [
            ("sample.fastq", "sample"),
            ("sample.fq", "sample"),
            ("sample.fastq.gz", "sample"),
            ("sample.fq.gz", "sample"),
            ("/data/run1/sample.fastq.gz", "sample"),
            ("relative/dir/GRO_rep1.fq", "GRO_rep1"),
            ("sample.R1.fastq.gz", "sample.R1"),
        ],
    )
    def test_strips_directory_and_read_suffix(self, path, expected):
        assert derive_sample_basename(path) == expected

    def test_only_trailing_suffix_is_stripped(self):
        """A .fq inside the name is kept; only the final suffix counts."""
        assert derive_sample_basename("a.fq.trimmed.fastq") == "a.fq.trimmed"

    def test_deterministic_and_idempotent(self):
        first = derive_sample_basename("/x/y/sample.fastq.gz")
        assert derive_sample_basename("/x/y/sample.fastq.gz") == first
        assert derive_sample_basename(first) == first

    def test_accepts_path_objects(self):
        assert derive_sample_basename(Path("/tmp/s.fq.gz")) == "s"


class TestReadExtension:
    """Tests for has_read_extension."""

    @pytest.mark.parametrize(
        "name", ["a.fastq", "a.fq", "a.fastq.gz", "a.fq.gz", "/d/a.b.fq.gz"]
    )
    def test_recognized(self, name):
        assert has_read_extension(name)

    @pytest.mark.parametrize(
        "name", ["a.txt", "a.fastq.bz2", "a.fa", "a.fq.gz.bak", "fastq", "a.gz"]
    )
    def test_rejected(self, name):
        assert not has_read_extension(name)


class TestLoadConfig:
    """Tests for load_config."""

    def test_loads_packaged_defaults(self):
        cfg = load_config()
        assert cfg["threads"] == 4
        assert cfg["mem_max"] == "2G"
        assert cfg["mapq_min"] == 10
        assert cfg["adapter"] == DEFAULT_ADAPTER
        assert "{threads}" in cfg["bt2_options"]

    def test_loads_user_file(self, tmp_path):
        config_file = tmp_path / "custom.json"
        config_file.write_text(json.dumps({"threads": 16}))
        assert load_config(str(config_file)) == {"threads": 16}

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "missing.json"))

    def test_invalid_json(self, tmp_path):
        config_file = tmp_path / "broken.json"
        config_file.write_text("{not json")
        with pytest.raises(ValueError, match="Error parsing JSON"):
            load_config(str(config_file))


class TestRunConfig:
    """Tests for the RunConfig dataclass."""

    def test_defaults(self, tmp_path):
        config = RunConfig(
            input_read_path=tmp_path / "s.fq",
            reference_index_path="idx",
            output_root_dir=tmp_path / "out",
        )
        assert config.thread_count == 4
        assert config.memory_ceiling == "2G"
        assert config.mapq_minimum == 10
        assert config.aligner_options == "--sensitive -p 4 -t"
        assert config.adapter_sequence == "TGGAATTCTCGGGTGCCAAGGAACTCCAGTCAC"
        assert config.homer_genome is None
        assert config.sample_basename == "s"

    def test_is_immutable(self, run_config):
        with pytest.raises(AttributeError):
            run_config.thread_count = 8

    def test_default_aligner_options_embed_threads(self):
        assert default_aligner_options(12) == "--sensitive -p 12 -t"
        assert default_aligner_options(2, "--very-fast -p {threads}") == "--very-fast -p 2"

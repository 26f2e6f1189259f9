"""Tests for the adapter trimming stage."""

import gzip
from pathlib import Path
from unittest.mock import patch

import pytest

from groseq.pipeline_core import RunState
from groseq.pipeline_core.error_handling import StageExecutionError
from groseq.stages.preprocess_stages import TrimAdapterStage, homer_trim_output


def fake_homer_trim(cmd, log_path, stage):
    """Write the two outputs homerTools trim leaves next to its input."""
    reads = Path(cmd[-1])
    homer_trim_output(reads, "trimmed").write_text("@r1\nACGTACGTACGTACGT\n+\nIIIIIIIIIIIIIIII\n")
    homer_trim_output(reads, "lengths").write_text("16\t1\n")
    Path(log_path).write_text("trimmed 1 read\n")
    return Path(log_path)


class TestTrimAdapterStage:
    """Test TrimAdapterStage."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("sample.fastq.gz", "sample.fastq.trimmed"),
            ("sample.fq", "sample.fq.trimmed"),
            ("run.1.fq.gz", "run.1.fq.trimmed"),
        ],
    )
    def test_homer_trim_output(self, tmp_path, name, expected):
        assert homer_trim_output(tmp_path / name, "trimmed") == tmp_path / expected

    def test_build_command(self, make_context, fastq_file):
        context = make_context()
        cmd = TrimAdapterStage().build_command(context)
        assert cmd == [
            "homerTools",
            "trim",
            "-3",
            "TGGAATTCTCGGGTGCCAAGGAACTCCAGTCAC",
            "-min",
            "15",
            "-mis",
            "1",
            "-minMatchLength",
            "4",
            "-suffix",
            "trimmed",
            "-lenSuffix",
            "lengths",
            str(fastq_file),
        ]

    @patch("groseq.stages.preprocess_stages.run_command", side_effect=fake_homer_trim)
    def test_successful_trim(self, mock_run, make_context, tmp_path, fastq_file):
        context = make_context()
        result = TrimAdapterStage()(context)

        preprocess = tmp_path / "out" / "preprocess"
        mock_run.assert_called_once()
        assert mock_run.call_args[0][1] == preprocess / "sample_trim.out"
        assert mock_run.call_args[0][2] == "trim_adapter"

        assert result.state is RunState.TRIMMED
        assert result.trimmed_read_path == preprocess / "sample.fastq.gz"
        assert result.current_read_path == preprocess / "sample.fastq.gz"
        assert result.read_lengths_path == preprocess / "sample_lengths.txt"
        assert not (preprocess / "sample.fastq").exists()
        assert not homer_trim_output(fastq_file, "trimmed").exists()
        with gzip.open(result.trimmed_read_path, "rt") as fh:
            assert fh.read().startswith("@r1\n")
        assert (preprocess / "sample_lengths.txt").read_text() == "16\t1\n"

    @patch("groseq.stages.preprocess_stages.run_command")
    def test_tool_failure(self, mock_run, make_context, tmp_path):
        log = tmp_path / "out" / "preprocess" / "sample_trim.out"
        mock_run.side_effect = StageExecutionError("trim_adapter", log, returncode=1)
        context = make_context()

        with pytest.raises(StageExecutionError):
            TrimAdapterStage()(context)

        assert context.trimmed_read_path is None
        assert not (tmp_path / "out" / "preprocess" / "sample.fastq.gz").exists()

    @patch("groseq.stages.preprocess_stages.run_command")
    def test_missing_trimmer_output(self, mock_run, make_context, tmp_path):
        """A trimmer exiting 0 without output fails on the rename step."""
        context = make_context()
        with pytest.raises(StageExecutionError) as exc_info:
            TrimAdapterStage()(context)
        assert exc_info.value.log_path == tmp_path / "out" / "preprocess" / "sample_trim.out"
        assert context.state is RunState.INIT

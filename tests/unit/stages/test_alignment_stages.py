"""Tests for alignment stages."""

from unittest.mock import patch

import pytest

from groseq.config import RunConfig
from groseq.pipeline_core import RunState
from groseq.pipeline_core.error_handling import StageExecutionError
from groseq.stages.alignment_stages import (
    AlignReadsStage,
    ConvertAlignmentStage,
    SortFilterStage,
)


@pytest.fixture
def trimmed_reads(tmp_path):
    path = tmp_path / "out" / "preprocess" / "sample.fastq.gz"
    path.parent.mkdir(parents=True)
    path.write_bytes(b"")
    return path


class TestAlignReadsStage:
    """Test AlignReadsStage."""

    def test_build_command(self, make_context, trimmed_reads, tmp_path):
        context = make_context(RunState.TRIMMED, current_read_path=trimmed_reads)
        cmd = AlignReadsStage().build_command(context)
        assert cmd == [
            "bowtie2",
            "--sensitive",
            "-p",
            "4",
            "-t",
            "-x",
            str(tmp_path / "index" / "genome"),
            "-U",
            str(trimmed_reads),
            "-S",
            str(tmp_path / "out" / "align" / "sample.sam"),
        ]

    def test_aligner_options_are_tokenized(self, make_context, run_config, trimmed_reads):
        config = RunConfig(
            input_read_path=run_config.input_read_path,
            reference_index_path="idx",
            output_root_dir=run_config.output_root_dir,
            aligner_options="--very-sensitive --rg 'SM:my sample'",
        )
        context = make_context(RunState.TRIMMED, config=config, current_read_path=trimmed_reads)
        cmd = AlignReadsStage().build_command(context)
        assert cmd[1:4] == ["--very-sensitive", "--rg", "SM:my sample"]

    @patch("groseq.stages.alignment_stages.run_command")
    def test_records_sam(self, mock_run, make_context, trimmed_reads, tmp_path):
        context = make_context(RunState.TRIMMED, current_read_path=trimmed_reads)
        result = AlignReadsStage()(context)

        assert result.state is RunState.ALIGNED
        assert result.alignment_path == tmp_path / "out" / "align" / "sample.sam"
        assert mock_run.call_args[0][1] == tmp_path / "out" / "align" / "sample_bt2.out"


class TestConvertAlignmentStage:
    """Test ConvertAlignmentStage."""

    @pytest.fixture
    def sam_file(self, tmp_path):
        path = tmp_path / "out" / "align" / "sample.sam"
        path.parent.mkdir(parents=True)
        path.write_text("@HD\tVN:1.6\n")
        return path

    def test_build_command(self, make_context, sam_file, tmp_path):
        context = make_context(RunState.ALIGNED, alignment_path=sam_file)
        assert ConvertAlignmentStage().build_command(context) == [
            "samtools",
            "view",
            "-b",
            "-S",
            "-h",
            "-o",
            str(tmp_path / "out" / "align" / "sample.bam"),
            str(sam_file),
        ]

    @patch("groseq.stages.alignment_stages.run_command")
    def test_removes_sam_after_conversion(self, mock_run, make_context, sam_file, tmp_path):
        context = make_context(RunState.ALIGNED, alignment_path=sam_file)
        result = ConvertAlignmentStage()(context)

        assert result.state is RunState.CONVERTED
        assert result.bam_path == tmp_path / "out" / "align" / "sample.bam"
        assert not sam_file.exists()

    @patch("groseq.stages.alignment_stages.run_command")
    def test_failure_keeps_sam(self, mock_run, make_context, sam_file):
        mock_run.side_effect = StageExecutionError("convert_alignment", "x.out", returncode=1)
        context = make_context(RunState.ALIGNED, alignment_path=sam_file)
        with pytest.raises(StageExecutionError):
            ConvertAlignmentStage()(context)
        assert sam_file.exists()


class TestSortFilterStage:
    """Test SortFilterStage."""

    @pytest.fixture
    def bam_file(self, tmp_path):
        path = tmp_path / "out" / "align" / "sample.bam"
        path.parent.mkdir(parents=True)
        path.write_bytes(b"BAM\x01")
        return path

    def test_build_commands(self, make_context, bam_file, tmp_path):
        context = make_context(RunState.CONVERTED, bam_path=bam_file)
        view_cmd, sort_cmd = SortFilterStage().build_commands(context)

        samtools_dir = tmp_path / "out" / "samtools"
        assert view_cmd == ["samtools", "view", "-b", "-q", "10", str(bam_file)]
        assert sort_cmd == [
            "samtools",
            "sort",
            "-@",
            "4",
            "-m",
            "2G",
            "-T",
            str(samtools_dir / "tmp"),
            "-o",
            str(samtools_dir / "sample.bam"),
            "-",
        ]

    @patch("groseq.stages.alignment_stages.run_piped_commands")
    def test_success(self, mock_pipe, make_context, bam_file, tmp_path):
        context = make_context(RunState.CONVERTED, bam_path=bam_file)
        result = SortFilterStage()(context)

        assert result.state is RunState.FILTERED
        assert result.sorted_filtered_bam_path == tmp_path / "out" / "samtools" / "sample.bam"
        assert mock_pipe.call_args[0][1] == tmp_path / "out" / "samtools" / "sample_sort_filter.out"

    @pytest.mark.parametrize("sort_fails", [False, True])
    def test_stale_temp_files_removed_before_sort(self, make_context, bam_file, tmp_path, sort_fails):
        samtools_dir = tmp_path / "out" / "samtools"
        samtools_dir.mkdir(parents=True)
        stale = [samtools_dir / "tmp.bam", samtools_dir / "tmp.0000.bam", samtools_dir / "tmp.0001.bam"]
        for path in stale:
            path.write_bytes(b"old")
        unrelated = samtools_dir / "other.bam"
        unrelated.write_bytes(b"keep")

        seen_at_sort_time = []

        def fake_pipe(cmds, log_path, stage):
            seen_at_sort_time.extend(p for p in stale if p.exists())
            if sort_fails:
                raise StageExecutionError(stage, log_path, returncode=1)
            return log_path

        context = make_context(RunState.CONVERTED, bam_path=bam_file)
        with patch("groseq.stages.alignment_stages.run_piped_commands", side_effect=fake_pipe):
            if sort_fails:
                with pytest.raises(StageExecutionError):
                    SortFilterStage()(context)
            else:
                SortFilterStage()(context)

        assert seen_at_sort_time == []
        assert not any(path.exists() for path in stale)
        assert unrelated.exists()

    def test_remove_stale_temp_files_without_directory(self, make_context, bam_file):
        context = make_context(RunState.CONVERTED, bam_path=bam_file)
        assert SortFilterStage().remove_stale_temp_files(context) == []

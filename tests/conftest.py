"""Shared pytest fixtures for all test modules."""

import gzip
import json
import os
import stat
import sys
from pathlib import Path
from typing import Callable, Dict, List

import pytest

from groseq.config import RunConfig
from groseq.pipeline_core import PipelineContext, RunState, Workspace

STUB_TOOL_SOURCE = Path(__file__).parent / "fixtures" / "stub_tool.py"
STUB_TOOL_NAMES = [
    "homerTools",
    "bowtie2",
    "bowtie2-inspect",
    "samtools",
    "makeTagDirectory",
    "makeUCSCfile",
]

# Members of the view | sort pipe start together, so they log in either order
PIPE_KEYS = ("samtools-filter", "samtools-sort")

# Invocation order of a successful run, as recorded by the stub tools
EXPECTED_CALL_ORDER = [
    "homerTools",
    "bowtie2",
    "samtools-convert",
    "samtools-filter",
    "samtools-sort",
    "makeTagDirectory",
    "makeUCSCfile",
]


@pytest.fixture
def fastq_file(tmp_path) -> Path:
    """Gzipped single-read fastq in its own input directory."""
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    path = data_dir / "sample.fastq.gz"
    with gzip.open(path, "wt") as fh:
        fh.write("@r1\nACGTACGTACGTACGTTGGAATTCTCGG\n+\nIIIIIIIIIIIIIIIIIIIIIIIIIIII\n")
    return path


@pytest.fixture
def run_config(tmp_path, fastq_file) -> RunConfig:
    """RunConfig with default parameters and a fresh output directory."""
    return RunConfig(
        input_read_path=fastq_file,
        reference_index_path=str(tmp_path / "index" / "genome"),
        output_root_dir=tmp_path / "out",
    )


@pytest.fixture
def make_context(run_config) -> Callable[..., PipelineContext]:
    """Factory for contexts placed at a given state with given artifacts.

    Artifacts are recorded the way the owning stage would record them, so a
    stage under test sees exactly what its predecessors left behind.
    """

    def _make(state: RunState = RunState.INIT, config: RunConfig = None, **artifacts):
        config = config or run_config
        workspace = Workspace(config.output_root_dir, config.sample_basename)
        context = PipelineContext.from_config(config, workspace)
        for field_name, path in artifacts.items():
            context.record_artifact(field_name, Path(path), "test_setup")
        context.state = state
        return context

    return _make


class StubTools:
    """Executable stand-ins for the external tools, placed first on PATH."""

    def __init__(self, bin_dir: Path, calls_file: Path, monkeypatch):
        self.bin_dir = bin_dir
        self.calls_file = calls_file
        self._monkeypatch = monkeypatch

    def fail(self, key: str) -> None:
        """Make the tool with the given key exit with status 3."""
        self._monkeypatch.setenv("GROSEQ_STUB_FAIL", key)

    def calls(self) -> List[Dict]:
        """Return every recorded invocation, in order."""
        if not self.calls_file.exists():
            return []
        with open(self.calls_file) as fh:
            return [json.loads(line) for line in fh if line.strip()]

    def keys(self) -> List[str]:
        """Return the keys of the recorded invocations, in order."""
        return [call["key"] for call in self.calls()]

    def ordered_keys(self) -> List[str]:
        """Return the recorded keys with the two pipe members in pipe order.

        Only the positions held by the pipe members are rewritten, so every
        other key keeps the position it was recorded at.
        """
        keys = self.keys()
        positions = [i for i, key in enumerate(keys) if key in PIPE_KEYS]
        pipe_keys = sorted((keys[i] for i in positions), key=PIPE_KEYS.index)
        for i, key in zip(positions, pipe_keys):
            keys[i] = key
        return keys


@pytest.fixture
def stub_tools(tmp_path, monkeypatch) -> StubTools:
    """Install stub tools on PATH that always succeed unless told to fail."""
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    source = STUB_TOOL_SOURCE.read_text()
    for name in STUB_TOOL_NAMES:
        tool = bin_dir / name
        tool.write_text(f"#!{sys.executable}\n{source}")
        tool.chmod(tool.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)

    calls_file = tmp_path / "stub_calls.jsonl"
    monkeypatch.setenv("PATH", f"{bin_dir}{os.pathsep}{os.environ.get('PATH', '')}")
    monkeypatch.setenv("GROSEQ_STUB_CALLS", str(calls_file))
    monkeypatch.delenv("GROSEQ_STUB_FAIL", raising=False)
    return StubTools(bin_dir, calls_file, monkeypatch)

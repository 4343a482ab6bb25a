"""Shared pytest fixtures for penaudio tests.

The codec tools are replaced by small executable Python scripts named after
the real binaries, so the real subprocess runner is exercised end to end.
Their behaviour is steered through environment variables:

    FAKE_TOOL_LOG   file receiving one JSON line per invocation
    FAKE_FAIL       name of the tool that should write partial output and exit 3
    FAKE_CHANNELS   channel count oggdec reports (default 2)
    FAKE_SLOW       name of the tool that should hang after writing its output
    FAKE_STARTED    marker file the slow tool writes its pid into before hanging
    FAKE_SKIP_OUTPUT name of the tool that should exit 0 without writing output
"""

import asyncio
import json
import os
import stat
import sys
from pathlib import Path

import pytest

from penaudio.core import MediaFileConverter
from penaudio.media.subprocess_runner import SubprocessRunner
from penaudio.media.tools import ToolPaths
from penaudio.storage.cache import ArtifactCache

FAKE_TOOL_SOURCE = '''#!{python}
import json
import os
import sys
import time

name = os.path.basename(sys.argv[0])
args = sys.argv[1:]

log_path = os.environ.get("FAKE_TOOL_LOG")
if log_path:
    with open(log_path, "a", encoding="utf-8") as log:
        log.write(json.dumps([name] + args) + "\\n")

output = None
for i, arg in enumerate(args):
    if arg in ("-w", "--wavout", "-o") and i + 1 < len(args):
        output = args[i + 1]
    elif arg.startswith("--output="):
        output = arg.split("=", 1)[1]

if name == "oggdec":
    channels = os.environ.get("FAKE_CHANNELS", "2")
    print("Decoding with fake oggdec")
    print("Bitstream is %s channel, 44100Hz" % channels)
    sys.stdout.flush()

if os.environ.get("FAKE_FAIL") == name:
    if output:
        with open(output, "wb") as f:
            f.write(b"PARTIAL")
    sys.stderr.write("fake %s failure\\n" % name)
    sys.exit(3)

if os.environ.get("FAKE_SKIP_OUTPUT") != name and output:
    with open(output, "wb") as f:
        f.write(("FAKE " + name + " " + " ".join(args)).encode("utf-8"))

if os.environ.get("FAKE_SLOW") == name:
    marker = os.environ.get("FAKE_STARTED")
    if marker:
        with open(marker, "w", encoding="utf-8") as f:
            f.write(str(os.getpid()))
    time.sleep(30)

sys.exit(0)
'''

FAKE_TOOL_NAMES = ("mpg123", "oggenc", "oggdec")


@pytest.fixture
def fake_tools_dir(tmp_path: Path, monkeypatch) -> Path:
    """Creates executable fake codec tools and isolates their environment."""
    tools_dir = tmp_path / "bin"
    tools_dir.mkdir()
    source = FAKE_TOOL_SOURCE.replace("{python}", sys.executable)
    for name in FAKE_TOOL_NAMES:
        tool = tools_dir / name
        tool.write_text(source, encoding="utf-8")
        tool.chmod(tool.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)

    for var in ("FAKE_FAIL", "FAKE_CHANNELS", "FAKE_SLOW", "FAKE_STARTED", "FAKE_SKIP_OUTPUT"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("FAKE_TOOL_LOG", str(tmp_path / "invocations.jsonl"))
    return tools_dir


@pytest.fixture
def fake_tools(fake_tools_dir: Path) -> ToolPaths:
    return ToolPaths(
        mpg123=str(fake_tools_dir / "mpg123"),
        oggenc=str(fake_tools_dir / "oggenc"),
        oggdec=str(fake_tools_dir / "oggdec"),
    )


@pytest.fixture
def invocations(tmp_path: Path):
    """Returns a callable reading the fake tool invocations made so far."""

    def _read() -> list[list[str]]:
        log_path = tmp_path / "invocations.jsonl"
        if not log_path.exists():
            return []
        with open(log_path, encoding="utf-8") as f:
            return [json.loads(line) for line in f if line.strip()]

    return _read


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    """A cache directory that does not exist yet."""
    return tmp_path / "cache"


@pytest.fixture
def converter(cache_dir: Path, fake_tools: ToolPaths) -> MediaFileConverter:
    """A converter wired to the fake tools, without the Ogg integrity check."""
    return MediaFileConverter(
        ArtifactCache(cache_dir),
        fake_tools,
        runner=SubprocessRunner(timeout=20),
    )


@pytest.fixture
def make_source(tmp_path: Path):
    """Returns a factory writing a dummy source file."""
    sources = tmp_path / "sources"
    sources.mkdir()

    def _make(name: str, content: bytes = b"source audio") -> Path:
        path = sources / name
        path.write_bytes(content)
        return path

    return _make


def leftover_files(directory: Path) -> list[str]:
    """Names of temporary or intermediate files in a directory."""
    if not directory.is_dir():
        return []
    return sorted(
        p.name for p in directory.iterdir() if p.name.endswith((".tmp", ".wav"))
    )


async def wait_for_file(path: Path) -> None:
    """Polls until a non-empty file appears (at most 10 seconds)."""
    for _ in range(1000):
        if path.exists() and path.stat().st_size > 0:
            return
        await asyncio.sleep(0.01)
    raise AssertionError(f"{path} never appeared")


def pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True

"""
Pytest configuration and shared fixtures for the signbridge test suite.
"""

import asyncio
import sys
import textwrap
from pathlib import Path
from typing import List

import pytest

from signbridge.handoff.layout import SharedLayout


# Fast polling keeps the suite quick; the protocol does not depend on the value.
POLL = 0.05


FAKE_SIGNTOOL = textwrap.dedent(
    '''
    """Stand-in for signtool.exe: appends a marker to the target file."""
    import sys
    import time
    from pathlib import Path

    log = Path(sys.argv[1])
    args = sys.argv[2:]
    target = Path(args[-1])

    with log.open("a") as f:
        f.write(f"start {target.name} {' '.join(args[:-1])}\\n")

    if "hang" in target.name:
        time.sleep(30)
    if "slow" in target.name:
        time.sleep(0.3)
    if "fail" in target.name:
        print("SignTool Error: No certificates were found.", file=sys.stderr)
        sys.exit(1)

    with target.open("ab") as f:
        f.write(b"SIGNED")

    with log.open("a") as f:
        f.write(f"end {target.name}\\n")

    print(f"Successfully signed: {target}")
    '''
)


class FakeSignTool:
    """Command and invocation log for the fake signing tool."""

    def __init__(self, script: Path, log: Path):
        self.script = script
        self.log = log

    @property
    def command(self) -> List[str]:
        return [sys.executable, str(self.script), str(self.log)]

    def lines(self) -> List[str]:
        if not self.log.exists():
            return []
        return self.log.read_text().splitlines()

    def started(self) -> List[str]:
        return [line.split()[1] for line in self.lines() if line.startswith("start ")]


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "slow: tests that wait on several poll cycles"
    )


@pytest.fixture
def layout(tmp_path: Path) -> SharedLayout:
    """Shared root with in/ and out/ created."""
    shared = SharedLayout(tmp_path / "shared")
    shared.root.mkdir()
    shared.ensure()
    return shared


@pytest.fixture
def fake_signtool(tmp_path: Path) -> FakeSignTool:
    script = tmp_path / "fake_signtool.py"
    script.write_text(FAKE_SIGNTOOL)
    return FakeSignTool(script, tmp_path / "signtool.log")


@pytest.fixture
def wait_until():
    """Async helper: poll a predicate until true or the timeout expires."""

    async def _wait_until(predicate, timeout: float = 5.0, interval: float = 0.01) -> bool:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while loop.time() < deadline:
            if predicate():
                return True
            await asyncio.sleep(interval)
        return predicate()

    return _wait_until

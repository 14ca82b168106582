# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Tests for run_command, the single place external commands are spawned.

These spawn the running interpreter so they work on any host.
"""

import sys
from pathlib import Path

import pytest

from shipwright.utils.process import NO_EXIT_CODE, CommandResult, run_command


def test_captures_stdout_and_exit_code() -> None:
    result = run_command([sys.executable, "-c", "print('10.3.0')"], timeout=30)
    assert result.ok
    assert result.exit_code == 0
    assert result.stdout == "10.3.0\n"
    assert result.args[0] == sys.executable


def test_nonzero_exit_is_returned() -> None:
    result = run_command(
        [sys.executable, "-c", "import sys; sys.stderr.write('boom\\n'); sys.exit(3)"],
        timeout=30,
    )
    assert not result.ok
    assert result.exit_code == 3
    assert result.describe().endswith("exited with 3: boom")


def test_timeout_is_reported() -> None:
    result = run_command([sys.executable, "-c", "import time; time.sleep(10)"], timeout=0.5)
    assert result.timed_out
    assert not result.ok
    assert "timed out" in result.describe()


def test_missing_executable() -> None:
    result = run_command(["definitely-not-a-real-tool-7f3a"], timeout=5)
    assert result.exit_code == NO_EXIT_CODE
    assert not result.ok
    assert "definitely-not-a-real-tool-7f3a" in result.stderr


def test_cwd_and_env(tmp_path: Path) -> None:
    result = run_command(
        [sys.executable, "-c", "import os; print(os.getcwd()); print(os.environ['SHIPWRIGHT_X'])"],
        cwd=tmp_path,
        env={"SHIPWRIGHT_X": "1"},
        timeout=30,
    )
    cwd_line, env_line = result.stdout.splitlines()
    assert Path(cwd_line).resolve() == tmp_path.resolve()
    assert env_line == "1"


def test_describe_without_output() -> None:
    result = CommandResult(
        args=("yarn", "--production"), exit_code=1, stdout="", stderr="", elapsed_seconds=0.0
    )
    assert result.describe() == "`yarn --production` exited with 1"


@pytest.mark.skipif(sys.platform == "win32", reason="exec format errors are POSIX-specific")
def test_unlaunchable_binary_is_returned(tmp_path: Path) -> None:
    binary = tmp_path / "Cypress"
    binary.write_bytes(b"\x00\x13\x37 truncated download")
    binary.chmod(0o755)

    result = run_command([str(binary)], timeout=5)

    assert result.exit_code == NO_EXIT_CODE
    assert not result.ok
    assert result.stderr.startswith(str(binary))


def test_undecodable_output_is_replaced() -> None:
    result = run_command(
        [sys.executable, "-c", "import sys; sys.stdout.buffer.write(b'\\xff\\xfe10.3.0')"],
        timeout=30,
    )
    assert result.ok
    assert result.stdout == "\ufffd\ufffd10.3.0"

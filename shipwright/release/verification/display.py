# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Virtual display for smoke-testing GUI binaries on headless hosts.

CI Linux machines have no X server, and an Electron app will not start
without one. VirtualDisplay starts Xvfb for the duration of the smoke test
and stops it afterwards. It is only needed on Linux when DISPLAY is unset.

Usage:
    display = VirtualDisplay(config.virtual_display)
    if display.is_needed():
        display.start()
        try:
            launch(env=display.env)
        finally:
            display.stop()

Xvfb is a long-running server, so this is the one place that uses
subprocess.Popen directly instead of run_command.
"""

import os
import subprocess
import sys
import time
from typing import Mapping, Protocol

from shipwright.config.schema import VirtualDisplayConfig
from shipwright.logging.logger import get_logger

_logger = get_logger(__name__)


class DisplayResource(Protocol):
    """What the smoke test needs from a display provider."""

    def is_needed(self) -> bool: ...

    def start(self) -> None: ...

    def stop(self) -> None: ...

    @property
    def env(self) -> dict[str, str]: ...


class VirtualDisplay:
    """
    An Xvfb server, started on demand and stopped exactly once.

    stop() is safe to call repeatedly and on a display that never started.
    """

    def __init__(
        self,
        config: VirtualDisplayConfig,
        environ: Mapping[str, str] | None = None,
        host_platform: str | None = None,
    ) -> None:
        self._config = config
        self._environ = os.environ if environ is None else environ
        self._host_platform = host_platform or sys.platform
        self._process: subprocess.Popen[bytes] | None = None

    def is_needed(self) -> bool:
        return self._host_platform.startswith("linux") and not self._environ.get("DISPLAY")

    @property
    def running(self) -> bool:
        return self._process is not None

    @property
    def env(self) -> dict[str, str]:
        """Environment overrides for processes that should draw on this display."""
        return {"DISPLAY": self._config.display}

    def start(self) -> None:
        """
        Spawn Xvfb and wait for it to settle.

        Raises:
            RuntimeError: If Xvfb is missing or exits during start-up.
        """
        if self._process is not None:
            return

        args = [*self._config.command, self._config.display, "-screen", "0", self._config.screen]
        _logger.info("Starting virtual display", extra={"command": " ".join(args)})
        try:
            process = subprocess.Popen(
                args,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as err:
            raise RuntimeError(f"cannot start {args[0]}: {err}") from err

        time.sleep(self._config.startup_seconds)
        exit_code = process.poll()
        if exit_code is not None:
            raise RuntimeError(f"{args[0]} exited with {exit_code} during start-up")

        self._process = process

    def stop(self) -> None:
        """Terminate Xvfb if this instance started it."""
        process = self._process
        if process is None:
            return
        self._process = None

        process.terminate()
        try:
            process.wait(timeout=5)
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait()
        _logger.info("Stopped virtual display", extra={"display": self._config.display})


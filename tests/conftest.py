# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Shared pytest fixtures for shipwright tests.

Fixtures here are available to every test file automatically.
External commands never run in unit tests: stages take a `runner`, and
`fake_runner` records every call and answers from canned responses.
"""

import json
import textwrap
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Sequence

import pytest

from shipwright.utils.process import CommandResult


@dataclass
class RecordedCall:
    args: tuple[str, ...]
    cwd: Path | None
    env: Mapping[str, str] | None
    timeout: float | None

    @property
    def command(self) -> str:
        return " ".join(self.args)


@dataclass
class FakeRunner:
    """
    Stand-in for run_command.

    `respond(needle, ...)` registers a canned result for any command whose
    joined argv contains `needle`. Later registrations win. Unmatched
    commands succeed with empty output.
    """

    calls: list[RecordedCall] = field(default_factory=list)
    _rules: list[tuple[str, int, str, str, bool]] = field(default_factory=list)

    def respond(
        self,
        needle: str,
        exit_code: int = 0,
        stdout: str = "",
        stderr: str = "",
        timed_out: bool = False,
    ) -> None:
        self._rules.append((needle, exit_code, stdout, stderr, timed_out))

    def __call__(
        self,
        args: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        argv = tuple(str(arg) for arg in args)
        call = RecordedCall(args=argv, cwd=cwd, env=env, timeout=timeout)
        self.calls.append(call)
        for needle, exit_code, stdout, stderr, timed_out in reversed(self._rules):
            if needle in call.command:
                return CommandResult(
                    args=argv,
                    exit_code=exit_code,
                    stdout=stdout,
                    stderr=stderr,
                    elapsed_seconds=0.0,
                    timed_out=timed_out,
                )
        return CommandResult(args=argv, exit_code=0, stdout="", stderr="", elapsed_seconds=0.0)

    def calls_matching(self, needle: str) -> list[RecordedCall]:
        return [call for call in self.calls if needle in call.command]


class FakeDisplay:
    """Counts start/stop so tests can assert the display is released exactly once."""

    def __init__(self, needed: bool = True, fail_on_start: bool = False) -> None:
        self.needed = needed
        self.fail_on_start = fail_on_start
        self.starts = 0
        self.stops = 0

    def is_needed(self) -> bool:
        return self.needed

    def start(self) -> None:
        self.starts += 1
        if self.fail_on_start:
            raise RuntimeError("Xvfb exited with 1 during start-up")

    def stop(self) -> None:
        self.stops += 1

    @property
    def env(self) -> dict[str, str]:
        return {"DISPLAY": ":99"}


@pytest.fixture()
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture()
def fake_display() -> FakeDisplay:
    return FakeDisplay()


def _write_json(path: Path, data: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")


@pytest.fixture()
def workspace(tmp_path: Path) -> Path:
    """
    A small yarn workspace, as it looks after `build-prod` has run.

        package.json          workspaces + dev fields
        yarn.lock
        node_modules/electron Electron 10.1.5
        packages/server       depends on https-proxy and npm/used
        packages/https-proxy
        packages/cli          excluded from staging
        npm/used              local package referenced by server
        npm/unused            local package nobody references
    """
    root = tmp_path / "repo"
    _write_json(
        root / "package.json",
        {
            "name": "monorepo",
            "version": "0.0.0-development",
            "description": "Desktop test runner",
            "private": True,
            "workspaces": ["packages/*", "npm/*"],
            "scripts": {"build": "lerna run build"},
            "devDependencies": {"lerna": "3.0.0"},
            "lint-staged": {"*.js": "eslint"},
            "engines": {"node": ">=12"},
            "dependencies": {"@packages/server": "0.0.0-development"},
        },
    )
    (root / "yarn.lock").write_text("# yarn lockfile v1\n", encoding="utf-8")

    _write_json(root / "node_modules" / "electron" / "package.json", {"version": "10.1.5"})
    (root / "node_modules" / "electron" / "path.txt").write_text("electron", encoding="utf-8")

    server = root / "packages" / "server"
    _write_json(
        server / "package.json",
        {
            "name": "@packages/server",
            "version": "0.0.0-development",
            "main": "index.js",
            "files": ["lib", "!lib/**/*.spec.js"],
            "dependencies": {
                "@packages/https-proxy": "0.0.0-development",
                "@cypress/used": "0.0.0-development",
                "express": "4.17.1",
            },
            "devDependencies": {"mocha": "8.0.0"},
        },
    )
    (server / "index.js").write_text("module.exports = require('./lib/app')\n", encoding="utf-8")
    (server / "lib").mkdir()
    (server / "lib" / "app.js").write_text(
        "const proxy = require('@packages/https-proxy/lib/proxy')\n", encoding="utf-8"
    )
    (server / "lib" / "types.ts").write_text("export type Port = number\n", encoding="utf-8")
    (server / "test").mkdir()
    (server / "test" / "app.spec.js").write_text("it('works')\n", encoding="utf-8")

    proxy = root / "packages" / "https-proxy"
    _write_json(
        proxy / "package.json",
        {"name": "@packages/https-proxy", "version": "0.0.0-development", "main": "index.js"},
    )
    (proxy / "index.js").write_text("module.exports = require('./lib/proxy')\n", encoding="utf-8")
    (proxy / "dist").mkdir()
    (proxy / "dist" / "bundle.js").write_text("// built\n", encoding="utf-8")

    _write_json(
        root / "packages" / "cli" / "package.json",
        {"name": "cypress", "version": "0.0.0-development"},
    )
    _write_json(root / "npm" / "used" / "package.json", {"name": "@cypress/used", "version": "1.2.3"})
    _write_json(
        root / "npm" / "unused" / "package.json", {"name": "@cypress/unused", "version": "4.5.6"}
    )
    return root


@pytest.fixture()
def tmp_config_file(tmp_path: Path) -> Path:
    """The smallest config that passes schema validation, plus a couple of build overrides."""
    config_content = textwrap.dedent("""\
        global:
          config_version: "1.0.0"
          project_name: "shipwright-test"
          log_level: "DEBUG"
        build:
          product_name: "Cypress"
          package_name: "cypress"
          strict_packaging: true
          timeouts:
            pack: 600
    """)
    config_file = tmp_path / "test_config.yaml"
    config_file.write_text(config_content, encoding="utf-8")
    return config_file


@pytest.fixture()
def invalid_config_file(tmp_path: Path) -> Path:
    """A config file that's valid YAML but fails schema validation (missing required field)."""
    config_content = textwrap.dedent("""\
        global:
          project_name: "shipwright-test"
    """)
    config_file = tmp_path / "invalid_config.yaml"
    config_file.write_text(config_content, encoding="utf-8")
    return config_file


@pytest.fixture()
def broken_yaml_file(tmp_path: Path) -> Path:
    """A file that isn't valid YAML at all."""
    config_file = tmp_path / "broken.yaml"
    config_file.write_text("{{not: yaml: at: all:::", encoding="utf-8")
    return config_file

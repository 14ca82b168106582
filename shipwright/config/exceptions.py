# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Custom exceptions for the configuration system.

Kept separate so the CLI and the pipeline driver can catch configuration
failures without importing the config machinery. Platform problems are
configuration problems too: a build asked for a platform that does not
exist, or for one the host cannot produce.
"""


class ConfigError(Exception):
    """Base for all configuration errors."""


class ConfigLoadError(ConfigError):
    """Raised when a config file cannot be read from disk or parsed as YAML."""


class ConfigValidationError(ConfigError):
    """
    Raised when a config file parses fine but fails schema validation.
    This covers missing required fields, type mismatches, out-of-range values,
    and any other structural problem.
    """


class ConfigurationError(ConfigError):
    """Raised when the requested build platform is unusable (unknown or not the host)."""


class UnknownPlatformError(ConfigurationError):
    """Raised when a platform identifier is not one of the supported set."""

    def __init__(self, value: object, valid: tuple[str, ...]) -> None:
        self.value = value
        self.valid = valid
        super().__init__(
            f"invalid build platform {value!r}, valid choices: {', '.join(valid)}"
        )


class PlatformMismatchError(ConfigurationError):
    """Raised when the requested platform is not the platform we are running on."""

    def __init__(self, requested: str, host: str) -> None:
        self.requested = requested
        self.host = host
        super().__init__(
            f"Platform mismatch: asked to build {requested!r} on a {host!r} host. "
            f"Native artifacts can only be built on their own platform."
        )

# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Errors raised by release stages.

Every stage error names the stage that failed, the platform being built and
the underlying cause (a subprocess summary or a filesystem message), so the
last line of a failed CI log is enough to start debugging.

PackagingFailure is the odd one out: the packager never raises it. It is
returned inside PackagedWithWarning and only the pipeline driver decides
whether to raise it (strict mode) or log it and carry on.
"""


class ReleaseStageError(Exception):
    """Base for all release stage failures."""

    def __init__(self, stage: str, platform: str, cause: str) -> None:
        self.stage = stage
        self.platform = platform
        self.cause = cause
        super().__init__(f"[{stage}] ({platform}) {cause}")


class StagingError(ReleaseStageError):
    """Assembling the staging tree failed; nothing may be packaged."""


class PackagingFailure(ReleaseStageError):
    """The bundler exited non-zero, timed out, or could not be started."""


class VersionMismatchError(ReleaseStageError):
    """The built app reported no version or a different one."""


class StaticAssetError(ReleaseStageError):
    """Expected static files are missing from the app directory."""


class IntegrityError(ReleaseStageError):
    """The code signature / gatekeeper assessment rejected the app bundle."""


class SmokeTestFailure(ReleaseStageError):
    """The packed app did not start and exit cleanly."""

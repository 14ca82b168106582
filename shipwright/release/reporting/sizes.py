# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Package size report.

Runs `du -k -d 1` over the staged packages folder and turns its
tab-separated `size<TAB>path` rows into {package name: KiB}, smallest
first. du also prints a row for the folder itself; that aggregate row is
dropped by its basename.
"""

from dataclasses import dataclass
from pathlib import Path, PurePath

from shipwright.config.schema import BuildConfig
from shipwright.logging.logger import get_logger
from shipwright.release.exceptions import ReleaseStageError
from shipwright.release.platforms.registry import BuildContext
from shipwright.utils.process import CommandRunner, run_command

_logger = get_logger(__name__)

_STAGE = "printPackageSizes"


class SizeReportError(ReleaseStageError):
    """The disk usage tool failed or produced unparseable output."""


@dataclass(frozen=True)
class DiskUsageReport:
    """Package sizes in KiB, ordered ascending by size."""

    sizes: dict[str, float]

    def names(self) -> list[str]:
        return list(self.sizes)

    def total_kib(self) -> float:
        return sum(self.sizes.values())


def parse_disk_usage(output: str, aggregate_name: str = "packages") -> DiskUsageReport:
    """
    Parse du output into a DiskUsageReport.

    Raises:
        ValueError: If a non-empty row is not `<number>\\t<path>`.
    """
    data: dict[str, float] = {}
    for line in output.splitlines():
        if not line.strip():
            continue
        size_text, separator, folder = line.partition("\t")
        if not separator:
            raise ValueError(f"unexpected du row (no tab): {line!r}")
        name = PurePath(folder.rstrip("/\\")).name
        if name == aggregate_name:
            continue
        size = float(size_text)
        data[name] = int(size) if size.is_integer() else size

    ordered = dict(sorted(data.items(), key=lambda item: item[1]))
    return DiskUsageReport(sizes=ordered)


def report_sizes(
    app_dir: Path,
    context: BuildContext,
    config: BuildConfig,
    runner: CommandRunner = run_command,
) -> DiskUsageReport:
    """
    Measure and log the size of every package under `app_dir`.

    Raises:
        SizeReportError: If du fails or its output cannot be parsed.
    """
    platform = context.platform.value
    result = runner(
        [*config.disk_usage_command, str(app_dir)],
        timeout=config.timeouts.disk_usage,
    )
    if not result.ok:
        raise SizeReportError(_STAGE, platform, result.describe())

    try:
        report = parse_disk_usage(result.stdout, aggregate_name=app_dir.name)
    except ValueError as err:
        raise SizeReportError(_STAGE, platform, str(err)) from err

    _logger.info(
        "Package sizes",
        extra={
            "stage": _STAGE,
            "platform": platform,
            "app_dir": str(app_dir),
            "sizes_kib": report.sizes,
        },
    )
    return report

"""
Toolchain executable version query.

Runs ``<exe> <version_arg>`` (``zig version``) and parses the semantic
version printed on standard output.
"""

import logging
import subprocess
from pathlib import Path
from typing import Union

from zigkit.core.exceptions import InvalidVersionError, ZigkitError
from zigkit.toolchain.versions import parse_version

logger = logging.getLogger(__name__)


class VersionQueryError(ZigkitError):
    """Executable could not be run or printed no parseable version."""

    pass


def query_version(
    exe_path: Union[str, Path], version_arg: str = "version", timeout: float = 10
) -> str:
    """
    Ask an executable for its version.

    Args:
        exe_path: Executable to run
        version_arg: Argument that makes it print its version
        timeout: Seconds before the process is killed

    Returns:
        The version string exactly as printed (first line, stripped)

    Raises:
        VersionQueryError: If the process fails to run, exits non-zero, times
            out, or prints something that is not a version
    """
    exe_path = Path(exe_path)
    try:
        result = subprocess.run(
            [str(exe_path), version_arg],
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        raise VersionQueryError(f"'{exe_path} {version_arg}' timed out") from e
    except OSError as e:
        raise VersionQueryError(f"Could not run {exe_path}: {e}") from e

    if result.returncode != 0:
        stderr = result.stderr.strip()[:200]
        raise VersionQueryError(
            f"'{exe_path} {version_arg}' exited with code {result.returncode}: {stderr}"
        )

    lines = result.stdout.strip().splitlines()
    output = lines[0].strip() if lines else ""
    try:
        parse_version(output)
    except InvalidVersionError as e:
        raise VersionQueryError(
            f"'{exe_path} {version_arg}' printed no version: {output[:100]!r}"
        ) from e

    logger.debug(f"{exe_path} reports version {output}")
    return output


__all__ = ["VersionQueryError", "query_version"]

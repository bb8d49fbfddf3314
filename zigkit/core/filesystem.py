"""
File system utilities for zigkit.

This module provides the filesystem operations the installer relies on:
- Archive extraction (tar.xz, tar.gz, zip) with traversal protection
- Atomic file writes (temp file + rename)
- Guarded recursive deletion
- Unique scratch directories next to their final destination
"""

import os
import shutil
import tarfile
import tempfile
import zipfile
from pathlib import Path
from typing import Optional, Union

IS_WINDOWS = os.name == "nt"


# ============================================================================
# Errors
# ============================================================================


class FilesystemError(Exception):
    """Base exception for filesystem operations."""

    pass


class ArchiveExtractionError(FilesystemError):
    """Failed to extract an archive."""

    pass


class UnsupportedArchiveFormat(ArchiveExtractionError):
    """Archive format is not recognized."""

    pass


class InsecureArchiveError(ArchiveExtractionError):
    """Archive member would be written outside the destination."""

    pass


# ============================================================================
# Path Utilities
# ============================================================================


def is_relative_to(path: Path, parent: Path) -> bool:
    """
    Check whether ``path`` is ``parent`` or lies below it.

    Example:
        >>> is_relative_to(Path('/a/b/c'), Path('/a'))
        True
        >>> is_relative_to(Path('/a/b'), Path('/c'))
        False
    """
    try:
        path.relative_to(parent)
        return True
    except ValueError:
        return False


def make_unique_directory(parent: Union[str, Path], prefix: str) -> Path:
    """
    Create a fresh, uniquely-named directory under ``parent``.

    The directory lives on the same filesystem as ``parent`` so it can later
    be renamed into place atomically.
    """
    parent = Path(parent)
    parent.mkdir(parents=True, exist_ok=True)
    return Path(tempfile.mkdtemp(prefix=prefix, dir=parent))


# ============================================================================
# Archive Extraction
# ============================================================================


def _validate_archive_path(path: str, destination: Path) -> None:
    """
    Validate that an archive member path is safe to extract.

    Raises:
        InsecureArchiveError: If path attempts directory traversal
    """
    member_path = (destination / path).resolve()

    if not is_relative_to(member_path, destination.resolve()):
        raise InsecureArchiveError(
            f"Archive member '{path}' attempts directory traversal. "
            "This is a security risk and extraction has been blocked."
        )


def detect_archive_format(archive_path: Union[str, Path]) -> Optional[str]:
    """
    Detect archive format from the file name.

    Returns:
        'zip', 'tar.xz', 'tar.gz', 'tar.bz2', or None when unrecognized
    """
    name = Path(archive_path).name.lower()
    if name.endswith(".zip"):
        return "zip"
    if name.endswith((".tar.xz", ".txz")):
        return "tar.xz"
    if name.endswith((".tar.gz", ".tgz")):
        return "tar.gz"
    if name.endswith((".tar.bz2", ".tbz2")):
        return "tar.bz2"
    return None


def extract_archive(
    archive_path: Union[str, Path],
    destination: Union[str, Path],
    archive_format: Optional[str] = None,
) -> None:
    """
    Extract an archive to a destination directory.

    Validates all member paths before writing anything.

    Args:
        archive_path: Path to the archive file
        destination: Directory to extract to
        archive_format: 'zip', 'tar.xz', 'tar.gz' or 'tar.bz2'; detected from
            the file name when None

    Raises:
        UnsupportedArchiveFormat: If archive format is not recognized
        ArchiveExtractionError: If extraction fails
        InsecureArchiveError: If archive contains malicious paths
    """
    archive_path = Path(archive_path)
    destination = Path(destination)

    if not archive_path.exists():
        raise ArchiveExtractionError(f"Archive not found: {archive_path}")

    destination.mkdir(parents=True, exist_ok=True)

    archive_format = archive_format or detect_archive_format(archive_path)
    tar_modes = {"tar.xz": "r:xz", "tar.gz": "r:gz", "tar.bz2": "r:bz2"}

    try:
        if archive_format == "zip":
            _extract_zip(archive_path, destination)
        elif archive_format in tar_modes:
            _extract_tar(archive_path, destination, tar_modes[archive_format])
        else:
            raise UnsupportedArchiveFormat(
                f"Unsupported archive format for {archive_path.name}. "
                "Supported: .zip, .tar.xz, .tar.gz, .tar.bz2"
            )
    except (InsecureArchiveError, UnsupportedArchiveFormat):
        raise
    except Exception as e:
        raise ArchiveExtractionError(f"Failed to extract {archive_path}: {e}") from e


def _extract_zip(archive_path: Path, destination: Path) -> None:
    with zipfile.ZipFile(archive_path, "r") as zf:
        members = zf.infolist()

        for member in members:
            _validate_archive_path(member.filename, destination)

        for member in members:
            extracted = Path(zf.extract(member, destination))
            # Keep the executable bits zip archives built on Unix carry
            mode = (member.external_attr >> 16) & 0o777
            if mode and not member.is_dir():
                os.chmod(extracted, mode)


def _extract_tar(archive_path: Path, destination: Path, mode: str) -> None:
    with tarfile.open(archive_path, mode) as tar:
        members = tar.getmembers()

        for member in members:
            _validate_archive_path(member.name, destination)
            if member.issym():
                # Symlink targets are relative to the link's own directory
                link_parent = os.path.dirname(member.name)
                _validate_archive_path(os.path.join(link_parent, member.linkname), destination)
            elif member.islnk():
                _validate_archive_path(member.linkname, destination)

        # Extraction filters exist on 3.12+ and on patched 3.9-3.11 releases
        if hasattr(tarfile, "data_filter"):
            tar.extractall(destination, filter="data")
        else:
            tar.extractall(destination)


# ============================================================================
# Safe File Operations
# ============================================================================


def atomic_write(
    file_path: Union[str, Path], content: Union[str, bytes], encoding: str = "utf-8"
) -> None:
    """
    Write file atomically using temp file + rename.

    The file is never in a partially-written state. If the write fails, the
    original file (if any) remains unchanged.

    Example:
        >>> atomic_write('settings.yaml', 'version: 0.13.0\\n')
    """
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    temp_fd, temp_path_str = tempfile.mkstemp(
        dir=file_path.parent, prefix=f".{file_path.name}.", suffix=".tmp"
    )
    temp_path = Path(temp_path_str)

    try:
        if isinstance(content, str):
            with open(temp_fd, "w", encoding=encoding) as f:
                f.write(content)
        else:
            with open(temp_fd, "wb") as f:
                f.write(content)

        temp_path.replace(file_path)

    except Exception:
        temp_path.unlink(missing_ok=True)
        raise


def safe_rmtree(
    path: Union[str, Path], require_prefix: Optional[Union[str, Path]] = None
) -> None:
    """
    Safely remove a directory tree with safeguards.

    Args:
        path: Directory to remove
        require_prefix: If specified, path must be under this directory

    Raises:
        ValueError: If path is not under require_prefix
        FilesystemError: If deletion fails

    Example:
        >>> safe_rmtree('/home/me/.zigkit/versions/0.12.0', require_prefix='/home/me/.zigkit')
    """
    path = Path(path).absolute()

    if require_prefix is not None:
        require_prefix = Path(require_prefix).absolute()
        if not is_relative_to(path, require_prefix) or path == require_prefix:
            raise ValueError(
                f"Refusing to delete '{path}': not under required prefix '{require_prefix}'"
            )

    if not path.exists() and not path.is_symlink():
        return

    if path.is_symlink() or not path.is_dir():
        raise FilesystemError(f"Path is not a directory: {path}")

    try:
        if IS_WINDOWS:

            def handle_remove_readonly(func, path, exc):
                """Error handler for Windows read-only files."""
                if not os.access(path, os.W_OK):
                    os.chmod(path, 0o777)
                    func(path)
                else:
                    raise

            shutil.rmtree(path, onerror=handle_remove_readonly)
        else:
            shutil.rmtree(path)

    except Exception as e:
        raise FilesystemError(f"Failed to remove directory '{path}': {e}") from e


__all__ = [
    "FilesystemError",
    "ArchiveExtractionError",
    "UnsupportedArchiveFormat",
    "InsecureArchiveError",
    "is_relative_to",
    "make_unique_directory",
    "detect_archive_format",
    "extract_archive",
    "atomic_write",
    "safe_rmtree",
]

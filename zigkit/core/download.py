"""
HTTP download helpers with progress tracking, retry logic, and checksum verification.

This module provides the two network primitives the pipeline needs:
- ``fetch_bytes`` for small documents (release index, detached signatures),
  a single attempt with its own timeout
- ``download_file`` for archives: streaming to disk, retry with exponential
  backoff, SHA256 verification while streaming, progress reporting
"""

import hashlib
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

import requests
from requests.exceptions import RequestException

logger = logging.getLogger(__name__)

USER_AGENT = "zigkit"


@dataclass
class DownloadProgress:
    """Progress information for a download."""

    bytes_downloaded: int
    total_bytes: int
    percentage: float
    speed_bps: float  # bytes per second
    eta_seconds: float  # estimated time remaining

    def __str__(self) -> str:
        return format_progress(self)


class DownloadError(Exception):
    """Exception raised when download fails."""

    pass


class ChecksumError(Exception):
    """Exception raised when checksum verification fails."""

    pass


class StreamingHasher:
    """Compute hash incrementally for streaming downloads."""

    def __init__(self, algorithm: str = "sha256"):
        """
        Initialize streaming hasher.

        Args:
            algorithm: Hash algorithm ('sha256', 'sha512')

        Raises:
            ValueError: If algorithm is not supported
        """
        self.algorithm = algorithm.lower()

        if self.algorithm == "sha256":
            self.hasher = hashlib.sha256()
        elif self.algorithm == "sha512":
            self.hasher = hashlib.sha512()
        else:
            raise ValueError(f"Unsupported hash algorithm: {algorithm}")

    def update(self, data: bytes):
        self.hasher.update(data)

    def finalize(self) -> str:
        """Get final hash value as hex string."""
        return self.hasher.hexdigest()

    def verify(self, expected_hash: str) -> bool:
        """Check if computed hash matches expected value (case-insensitive)."""
        return self.finalize().lower() == expected_hash.lower()


def fetch_bytes(url: str, timeout: float = 30) -> bytes:
    """
    Fetch a small document in a single attempt.

    Args:
        url: URL to fetch
        timeout: Connect/read timeout in seconds for this attempt

    Returns:
        Response body

    Raises:
        DownloadError: On network error or non-2xx status
    """
    logger.debug(f"Fetching {url}")
    try:
        response = requests.get(
            url, timeout=timeout, headers={"User-Agent": USER_AGENT}
        )
        response.raise_for_status()
    except RequestException as e:
        raise DownloadError(f"Failed to fetch {url}: {e}") from e
    return response.content


def download_file(
    url: str,
    destination: Path,
    expected_sha256: Optional[str] = None,
    progress_callback: Optional[Callable[[DownloadProgress], None]] = None,
    timeout: float = 60,
    max_retries: int = 3,
) -> Path:
    """
    Download file from URL to destination with retry logic and checksum verification.

    A failed attempt removes whatever was partially written before retrying,
    so ``destination`` only exists on success.

    Args:
        url: URL to download from
        destination: Local path to save file
        expected_sha256: Expected SHA256 hash (verified during download)
        progress_callback: Optional callback for progress updates
        timeout: Request timeout in seconds
        max_retries: Maximum number of attempts

    Returns:
        Path to downloaded file

    Raises:
        DownloadError: If download fails after retries
        ChecksumError: If checksum doesn't match expected value
        ValueError: If URL or destination is invalid

    Example:
        >>> download_file(
        ...     "https://ziglang.org/download/0.13.0/zig-linux-x86_64-0.13.0.tar.xz",
        ...     Path("staging/zig.tar.xz"),
        ... )
    """
    if not url:
        raise ValueError("URL cannot be empty")

    if not destination:
        raise ValueError("Destination path cannot be empty")

    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)

    for attempt in range(max_retries):
        try:
            return _download_with_progress(
                url=url,
                destination=destination,
                expected_sha256=expected_sha256,
                progress_callback=progress_callback,
                timeout=timeout,
            )
        except RequestException as e:
            destination.unlink(missing_ok=True)
            if attempt == max_retries - 1:
                raise DownloadError(
                    f"Download failed after {max_retries} attempts: {e}"
                ) from e

            backoff_seconds = 2**attempt
            logger.warning(
                f"Download attempt {attempt + 1} failed: {e}. "
                f"Retrying in {backoff_seconds}s..."
            )
            time.sleep(backoff_seconds)

    raise DownloadError(f"Download failed for {url}: no attempts were made")


def _download_with_progress(
    url: str,
    destination: Path,
    expected_sha256: Optional[str],
    progress_callback: Optional[Callable[[DownloadProgress], None]],
    timeout: float,
) -> Path:
    """
    Perform one streaming download attempt.

    Raises:
        ChecksumError: If checksum doesn't match
        RequestException: If HTTP request fails
    """
    logger.info(f"Downloading from {url}")

    response = requests.get(
        url,
        stream=True,
        timeout=timeout,
        allow_redirects=True,
        headers={"User-Agent": USER_AGENT},
    )
    response.raise_for_status()

    content_length = response.headers.get("content-length")
    total_size = int(content_length) if content_length else 0

    hasher = StreamingHasher("sha256") if expected_sha256 else None

    downloaded = 0
    start_time = time.time()
    last_progress_time = start_time

    with open(destination, "wb") as f:
        for chunk in response.iter_content(chunk_size=65536):
            if not chunk:
                continue
            f.write(chunk)
            downloaded += len(chunk)

            if hasher:
                hasher.update(chunk)

            # Report progress at most twice per second
            current_time = time.time()
            if progress_callback and (
                current_time - last_progress_time >= 0.5 or downloaded == total_size
            ):
                elapsed = current_time - start_time
                speed = downloaded / elapsed if elapsed > 0 else 0
                remaining = total_size - downloaded if total_size > 0 else 0
                progress_callback(
                    DownloadProgress(
                        bytes_downloaded=downloaded,
                        total_bytes=total_size if total_size > 0 else downloaded,
                        percentage=(downloaded / total_size * 100)
                        if total_size > 0
                        else 0,
                        speed_bps=speed,
                        eta_seconds=remaining / speed if speed > 0 else 0,
                    )
                )
                last_progress_time = current_time

    if expected_sha256 and hasher:
        if not hasher.verify(expected_sha256):
            actual_hash = hasher.finalize()
            destination.unlink()
            raise ChecksumError(
                f"Checksum mismatch for {destination.name}: "
                f"expected {expected_sha256}, got {actual_hash}"
            )
        logger.debug("Checksum verified successfully")

    logger.info(f"Download complete: {destination}")
    return destination


def format_progress(progress: DownloadProgress) -> str:
    """
    Format progress for display.

    Example:
        >>> progress = DownloadProgress(52428800, 104857600, 50.0, 1048576, 50)
        >>> print(format_progress(progress))
        50.0/100.0 MB (50.0%) at 1.0 MB/s ETA: 50s
    """
    mb_downloaded = progress.bytes_downloaded / 1024 / 1024
    mb_total = progress.total_bytes / 1024 / 1024
    speed_mbps = progress.speed_bps / 1024 / 1024

    if progress.total_bytes > 0:
        return (
            f"{mb_downloaded:.1f}/{mb_total:.1f} MB "
            f"({progress.percentage:.1f}%) "
            f"at {speed_mbps:.1f} MB/s "
            f"ETA: {progress.eta_seconds:.0f}s"
        )
    return f"{mb_downloaded:.1f} MB at {speed_mbps:.1f} MB/s"

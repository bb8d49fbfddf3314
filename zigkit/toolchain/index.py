"""
Release index retrieval and parsing.

A release index is a JSON document mapping version to per-host artifacts::

    {
      "0.13.0": {
        "date": "2024-06-07",
        "x86_64-linux": {
          "tarball": "https://ziglang.org/download/0.13.0/zig-linux-x86_64-0.13.0.tar.xz",
          "shasum": "d45312e6...",
          "size": "47082308"
        }
      },
      "master": {"version": "0.14.0-dev.3028+cdc9d65b0", ...}
    }

The fetcher tries the channel's canonical URL and then each mirror in order,
returning the first index that downloads and parses. Parsing is strict: any
deviation from the expected shape fails that source as a whole.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Union

from zigkit.core.download import DownloadError, fetch_bytes
from zigkit.core.exceptions import IndexParseError, IndexUnavailable, InvalidVersionError
from zigkit.toolchain.versions import Channel, parse_version, version_channel

logger = logging.getLogger(__name__)

NIGHTLY_KEY = "master"


@dataclass(frozen=True)
class HostArtifact:
    """Downloadable archive for one host."""

    url: str
    shasum: Optional[str] = None
    size: Optional[int] = None
    """Advisory archive size in bytes"""

    signature: Optional[Union[bytes, str]] = None
    """Embedded minisign signature (bytes) or URL to fetch it from"""

    @property
    def filename(self) -> str:
        return self.url.split("?", 1)[0].rstrip("/").rsplit("/", 1)[-1]

    def embedded_signature(self) -> Optional[bytes]:
        return self.signature if isinstance(self.signature, bytes) else None

    def signature_url(self, archive_url: str) -> str:
        """URL of the detached signature for an archive downloaded from ``archive_url``."""
        if isinstance(self.signature, str) and archive_url == self.url:
            return self.signature
        return f"{archive_url}.minisig"


@dataclass(frozen=True)
class ReleaseEntry:
    """One released version and its per-host artifacts."""

    version: str
    artifacts: Mapping[str, HostArtifact] = field(default_factory=dict)
    date: Optional[str] = None

    def artifact_for(self, host_triple: str) -> Optional[HostArtifact]:
        return self.artifacts.get(host_triple)

    def hosts(self) -> List[str]:
        return sorted(self.artifacts)


class ReleaseIndex:
    """
    Versions of one channel, ordered ascending.

    Example:
        >>> index = fetcher.fetch_index(Channel.STABLE)
        >>> index.latest().version
        '0.13.0'
    """

    def __init__(
        self,
        channel: Channel,
        entries: Iterable[ReleaseEntry],
        source_url: str = "",
    ):
        self.channel = Channel(channel)
        self.source_url = source_url
        self._entries = sorted(entries, key=lambda e: parse_version(e.version))

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ReleaseEntry]:
        return iter(self._entries)

    def __contains__(self, version: str) -> bool:
        return self.get(version) is not None

    def versions(self) -> List[str]:
        return [entry.version for entry in self._entries]

    def get(self, version: str) -> Optional[ReleaseEntry]:
        """Look up an entry by version, comparing semantically."""
        wanted = parse_version(version)
        for entry in self._entries:
            if parse_version(entry.version) == wanted:
                return entry
        return None

    def latest(self) -> Optional[ReleaseEntry]:
        return self._entries[-1] if self._entries else None

    def __repr__(self) -> str:
        return f"ReleaseIndex({self.channel.value}, {len(self)} versions, {self.source_url!r})"


def parse_index(
    data, channel: Union[Channel, str], source_url: str = ""
) -> ReleaseIndex:
    """
    Parse a decoded index document, keeping the entries of ``channel``.

    Raises:
        IndexParseError: If the document does not have the expected shape
    """
    channel = Channel(channel)

    if not isinstance(data, dict):
        raise IndexParseError("Index must be a JSON object of versions")

    entries = []
    for key, body in data.items():
        if not isinstance(body, dict):
            raise IndexParseError(f"Entry '{key}' must be an object")

        version = body.get("version") if key == NIGHTLY_KEY else key
        if not isinstance(version, str):
            raise IndexParseError(f"Entry '{key}' has no usable version")
        try:
            entry_channel = version_channel(version)
        except InvalidVersionError as e:
            raise IndexParseError(f"Entry '{key}': {e}") from e

        entry = _parse_entry(key, version, body)
        if entry_channel == channel:
            entries.append(entry)

    return ReleaseIndex(channel, entries, source_url)


def _parse_entry(key: str, version: str, body: dict) -> ReleaseEntry:
    artifacts: Dict[str, HostArtifact] = {}
    for name, value in body.items():
        if isinstance(value, str):
            continue  # date, docs, notes, version
        if not isinstance(value, dict):
            raise IndexParseError(f"Entry '{key}' field '{name}' has unexpected type")
        artifacts[name] = _parse_artifact(key, name, value)

    date = body.get("date")
    return ReleaseEntry(version=version, artifacts=artifacts, date=date)


def _parse_artifact(key: str, host: str, value: dict) -> HostArtifact:
    where = f"'{key}' host '{host}'"

    url = value.get("tarball")
    if not isinstance(url, str) or not url:
        raise IndexParseError(f"{where} has no tarball URL")

    shasum = value.get("shasum")
    if shasum is not None and not isinstance(shasum, str):
        raise IndexParseError(f"{where} shasum must be a string")

    size = value.get("size")
    if size is not None:
        # ziglang.org publishes sizes as decimal strings
        if isinstance(size, str) and size.isdigit():
            size = int(size)
        elif isinstance(size, bool) or not isinstance(size, int):
            raise IndexParseError(f"{where} size must be an integer")

    signature = value.get("signature")
    if signature is not None:
        if not isinstance(signature, str) or not signature:
            raise IndexParseError(f"{where} signature must be a string")
        if not signature.startswith(("http://", "https://")):
            signature = signature.encode("utf-8")

    return HostArtifact(url=url, shasum=shasum, size=size, signature=signature)


class ReleaseIndexFetcher:
    """
    Fetches release indexes from a canonical source with mirror fallback.

    Each source gets exactly one attempt with its own timeout, so the number
    of requests is bounded by the number of configured sources.
    """

    def __init__(
        self,
        index_urls: Mapping[str, str],
        mirrors: Iterable[str] = (),
        timeout: float = 15,
    ):
        """
        Initialize fetcher.

        Args:
            index_urls: Canonical index URL per channel ('stable', 'nightly')
            mirrors: Mirror base URLs, tried in order; each serves <base>/index.json
            timeout: Per-attempt timeout in seconds
        """
        self.index_urls = {Channel(k): v for k, v in index_urls.items()}
        self.mirrors = [m.rstrip("/") for m in mirrors]
        self.timeout = timeout

    def sources(self, channel: Union[Channel, str]) -> List[str]:
        channel = Channel(channel)
        sources = []
        if channel in self.index_urls:
            sources.append(self.index_urls[channel])
        sources.extend(f"{mirror}/index.json" for mirror in self.mirrors)
        return sources

    def fetch_index(self, channel: Union[Channel, str]) -> ReleaseIndex:
        """
        Fetch and parse the index for a channel.

        Raises:
            IndexUnavailable: If every source failed
        """
        channel = Channel(channel)
        failures = []

        for url in self.sources(channel):
            try:
                body = fetch_bytes(url, timeout=self.timeout)
            except DownloadError as e:
                logger.warning(f"Release index source failed: {e}")
                failures.append((url, str(e)))
                continue

            try:
                index = parse_index(json.loads(body), channel, source_url=url)
            except (ValueError, IndexParseError) as e:
                logger.warning(f"Malformed release index from {url}: {e}")
                failures.append((url, f"malformed index: {e}"))
                continue

            logger.info(f"Fetched {channel.value} index from {url} ({len(index)} versions)")
            return index

        raise IndexUnavailable(channel.value, failures)


class MemoizedIndexFetcher:
    """
    Wraps a fetcher so each channel is fetched at most once.

    The provider creates one per pipeline run; nothing is reused across runs.
    """

    def __init__(self, fetcher: ReleaseIndexFetcher):
        self._fetcher = fetcher
        self._indexes: Dict[Channel, ReleaseIndex] = {}

    def fetch_index(self, channel: Union[Channel, str]) -> ReleaseIndex:
        channel = Channel(channel)
        if channel not in self._indexes:
            self._indexes[channel] = self._fetcher.fetch_index(channel)
        return self._indexes[channel]


__all__ = [
    "HostArtifact",
    "ReleaseEntry",
    "ReleaseIndex",
    "ReleaseIndexFetcher",
    "MemoizedIndexFetcher",
    "parse_index",
]

"""
Fake release server for tests.

Builds a release index with real archives and minisign signatures and
registers everything with ``responses`` so the whole pipeline runs without
network access.
"""

import hashlib
from typing import Dict, List, Optional

import responses

from tests.fixtures.archives import archive_root_name, build_zig_archive
from tests.fixtures.signing import MinisignSigner, corrupt_signature

INDEX_URL = "https://ziglang.test/download/index.json"
DOWNLOAD_BASE = "https://ziglang.test/download"
MIRROR_BASE = "https://mirror.test/zig"
HOST_TRIPLE = "x86_64-linux"


class FakeRelease:
    """One version published by the fake server."""

    def __init__(self, version: str, archive: bytes, signature: bytes, url: str):
        self.version = version
        self.archive = archive
        self.signature = signature
        self.url = url

    @property
    def filename(self) -> str:
        return self.url.rsplit("/", 1)[-1]

    @property
    def signature_url(self) -> str:
        return f"{self.url}.minisig"


class FakeReleaseServer:
    """
    Holds published versions and serves them through ``responses``.

    Example:
        >>> server = FakeReleaseServer(signer)
        >>> server.publish("0.13.0")
        >>> server.register(rsps)
    """

    def __init__(self, signer: MinisignSigner, host: str = HOST_TRIPLE):
        self.signer = signer
        self.host = host
        self.releases: Dict[str, FakeRelease] = {}
        self.nightly: Optional[FakeRelease] = None

    def publish(
        self,
        version: str,
        reported_version: Optional[str] = None,
        corrupt: bool = False,
        nested: bool = True,
    ) -> FakeRelease:
        """Add a version whose archive prints ``reported_version``."""
        archive = build_zig_archive(version, reported_version, nested=nested)
        signature = self.signer.sign(archive)
        if corrupt:
            signature = corrupt_signature(signature)

        url = f"{DOWNLOAD_BASE}/{version}/{archive_root_name(version)}.tar.xz"
        release = FakeRelease(version, archive, signature, url)
        if "-dev." in version:
            self.nightly = release
        else:
            self.releases[version] = release
        return release

    def _artifact(self, release: FakeRelease) -> dict:
        return {
            "tarball": release.url,
            "shasum": hashlib.sha256(release.archive).hexdigest(),
            "size": str(len(release.archive)),
        }

    def index_document(self) -> dict:
        document = {}
        if self.nightly is not None:
            document["master"] = {
                "version": self.nightly.version,
                "date": "2024-12-01",
                self.host: self._artifact(self.nightly),
            }
        for version, release in self.releases.items():
            document[version] = {
                "date": "2024-06-07",
                "docs": f"https://ziglang.test/documentation/{version}/",
                "src": {"tarball": f"{DOWNLOAD_BASE}/{version}/zig-{version}.tar.xz"},
                self.host: self._artifact(release),
            }
        return document

    def all_releases(self) -> List[FakeRelease]:
        releases = list(self.releases.values())
        if self.nightly is not None:
            releases.append(self.nightly)
        return releases

    def register(self, rsps=responses, index_url: str = INDEX_URL) -> None:
        """Register the index, archives and signatures."""
        rsps.add(responses.GET, index_url, json=self.index_document(), status=200)
        for release in self.all_releases():
            rsps.add(responses.GET, release.url, body=release.archive, status=200)
            rsps.add(
                responses.GET, release.signature_url, body=release.signature, status=200
            )


def settings_data(install_dir, **overrides) -> dict:
    """Engine settings pointing at the fake server."""
    data = {
        "install_dir": str(install_dir),
        "index_urls": {"stable": INDEX_URL, "nightly": INDEX_URL},
        "mirrors": [],
        "download_retries": 1,
        "debounce_seconds": 0.05,
    }
    data.update(overrides)
    return data

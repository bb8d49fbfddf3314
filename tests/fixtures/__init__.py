"""Test fixtures for zigkit tests.

Helpers are organized by type:

- signing: A real minisign signer (Ed25519 via cryptography)
- archives: Fake toolchain archives and executables
- releases: A fake release server (index, archives, signatures) for responses

Import helpers in your tests using:
    from tests.fixtures.signing import MinisignSigner
    from tests.fixtures.archives import build_zig_archive
    from tests.fixtures.releases import FakeReleaseServer
"""

__all__ = [
    "signing",
    "archives",
    "releases",
]

"""
Pytest configuration and shared fixtures for zigkit tests.
"""

import sys
import tempfile
from pathlib import Path
from typing import Generator

import pytest

from zigkit.core.platform import PlatformInfo
from zigkit.toolchain.installer import Installer
from tests.fixtures.releases import FakeReleaseServer
from tests.fixtures.signing import MinisignSigner


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "posix: needs a POSIX shell to run fake toolchain executables"
    )


def pytest_collection_modifyitems(config, items):
    """Skip tests that run shell-script executables on Windows."""
    if sys.platform != "win32":
        return
    skip_posix = pytest.mark.skip(reason="fake toolchains are shell scripts")
    for item in items:
        if "posix" in item.keywords:
            item.add_marker(skip_posix)


# ============================================================================
# Shared Test Fixtures
# ============================================================================


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create temporary directory for test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def isolated_home(temp_dir: Path, monkeypatch) -> Path:
    """Point the zigkit data directory at a temporary location."""
    home = temp_dir / "zigkit-home"
    home.mkdir()
    monkeypatch.setenv("ZIGKIT_HOME", str(home))
    return home


@pytest.fixture
def linux_platform() -> PlatformInfo:
    return PlatformInfo("linux", "x64")


@pytest.fixture
def signer() -> MinisignSigner:
    return MinisignSigner(key_id=bytes.fromhex("8f3ad6a0c3f6e2d1"))


@pytest.fixture
def release_server(signer) -> FakeReleaseServer:
    return FakeReleaseServer(signer)


@pytest.fixture
def install_dir(temp_dir: Path) -> Path:
    return temp_dir / "toolchains"


@pytest.fixture
def make_installer(install_dir, signer, linux_platform):
    """Factory for installers that trust the test signer."""

    def factory(**overrides) -> Installer:
        options = dict(
            install_dir=install_dir,
            public_key=signer.public_key_text,
            mirrors=[],
            platform=linux_platform,
            download_retries=1,
        )
        options.update(overrides)
        return Installer(**options)

    return factory

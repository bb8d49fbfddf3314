"""
Unit tests for filesystem utilities.
"""

import io
import tarfile
import zipfile

import pytest

from zigkit.core.filesystem import (
    ArchiveExtractionError,
    FilesystemError,
    InsecureArchiveError,
    UnsupportedArchiveFormat,
    atomic_write,
    detect_archive_format,
    extract_archive,
    is_relative_to,
    make_unique_directory,
    safe_rmtree,
)
from tests.fixtures.archives import build_malicious_archive, build_zig_archive, build_zig_zip


class TestPathUtilities:
    """Test path helpers."""

    def test_is_relative_to(self, temp_dir):
        assert is_relative_to(temp_dir / "a" / "b", temp_dir)
        assert is_relative_to(temp_dir, temp_dir)
        assert not is_relative_to(temp_dir, temp_dir / "a")

    def test_make_unique_directory(self, temp_dir):
        """Test each call creates a distinct directory under the parent."""
        first = make_unique_directory(temp_dir / "staging", prefix="0.13.0-")
        second = make_unique_directory(temp_dir / "staging", prefix="0.13.0-")

        assert first != second
        assert first.is_dir() and second.is_dir()
        assert first.parent == temp_dir / "staging"
        assert first.name.startswith("0.13.0-")


class TestDetectArchiveFormat:
    """Test detect_archive_format function."""

    @pytest.mark.parametrize(
        "name, expected",
        [
            ("zig-linux-x86_64-0.13.0.tar.xz", "tar.xz"),
            ("zig.TXZ", "tar.xz"),
            ("zig-windows-x86_64-0.13.0.zip", "zip"),
            ("zig.tgz", "tar.gz"),
            ("zig.tar.bz2", "tar.bz2"),
            ("zig.7z", None),
        ],
    )
    def test_formats(self, name, expected):
        assert detect_archive_format(name) == expected


class TestExtractArchive:
    """Test extract_archive function."""

    def test_extract_tar_xz(self, temp_dir):
        """Test tar.xz extraction keeps the executable bit."""
        archive = temp_dir / "zig.tar.xz"
        archive.write_bytes(build_zig_archive("0.13.0"))

        extract_archive(archive, temp_dir / "out")

        exe = temp_dir / "out" / "zig-linux-x86_64-0.13.0" / "zig"
        assert exe.is_file()
        assert exe.stat().st_mode & 0o100

    def test_extract_zip(self, temp_dir):
        """Test zip extraction."""
        archive = temp_dir / "zig.zip"
        archive.write_bytes(build_zig_zip("0.13.0"))

        extract_archive(archive, temp_dir / "out")

        assert (temp_dir / "out" / "zig-windows-x86_64-0.13.0" / "zig.exe").is_file()

    def test_explicit_format_overrides_name(self, temp_dir):
        archive = temp_dir / "download.bin"
        archive.write_bytes(build_zig_archive("0.13.0", nested=False))

        extract_archive(archive, temp_dir / "out", archive_format="tar.xz")

        assert (temp_dir / "out" / "zig").is_file()

    def test_traversal_blocked(self, temp_dir):
        """Test members escaping the destination are rejected before writing."""
        archive = temp_dir / "evil.tar.xz"
        archive.write_bytes(build_malicious_archive())
        destination = temp_dir / "a" / "b" / "out"

        with pytest.raises(InsecureArchiveError):
            extract_archive(archive, destination)

        assert not (temp_dir / "a" / "evil.txt").exists()

    @staticmethod
    def _tar_with_link(temp_dir, name, target, link_type=tarfile.SYMTYPE):
        buffer = io.BytesIO()
        with tarfile.open(fileobj=buffer, mode="w:xz") as tar:
            info = tarfile.TarInfo(name)
            info.type = link_type
            info.linkname = target
            tar.addfile(info)
        archive = temp_dir / "links.tar.xz"
        archive.write_bytes(buffer.getvalue())
        return archive

    @pytest.mark.parametrize(
        "target", ["../../../outside.txt", "/etc/passwd", "lib/../../../../outside.txt"]
    )
    def test_escaping_symlink_blocked(self, temp_dir, target):
        """Test symlinks pointing outside the destination are rejected."""
        archive = self._tar_with_link(temp_dir, "zig-linux/lib/escape", target)

        with pytest.raises(InsecureArchiveError):
            extract_archive(archive, temp_dir / "out")

        assert not (temp_dir / "out" / "zig-linux").exists()

    def test_escaping_hardlink_blocked(self, temp_dir):
        archive = self._tar_with_link(
            temp_dir, "zig-linux/passwd", "../../etc/passwd", link_type=tarfile.LNKTYPE
        )
        with pytest.raises(InsecureArchiveError):
            extract_archive(archive, temp_dir / "out")

    @pytest.mark.posix
    def test_internal_symlink_allowed(self, temp_dir):
        """Test a symlink to a sibling inside the archive still extracts."""
        buffer = io.BytesIO()
        with tarfile.open(fileobj=buffer, mode="w:xz") as tar:
            info = tarfile.TarInfo("zig-linux/lib/real.txt")
            info.size = 4
            tar.addfile(info, io.BytesIO(b"real"))
            link = tarfile.TarInfo("zig-linux/lib/alias.txt")
            link.type = tarfile.SYMTYPE
            link.linkname = "real.txt"
            tar.addfile(link)
        archive = temp_dir / "ok.tar.xz"
        archive.write_bytes(buffer.getvalue())

        extract_archive(archive, temp_dir / "out")

        alias = temp_dir / "out" / "zig-linux" / "lib" / "alias.txt"
        assert alias.is_symlink()
        assert alias.read_text() == "real"

    def test_zip_traversal_blocked(self, temp_dir):
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as zf:
            zf.writestr("../escape.txt", "x")
        archive = temp_dir / "evil.zip"
        archive.write_bytes(buffer.getvalue())

        with pytest.raises(InsecureArchiveError):
            extract_archive(archive, temp_dir / "out")

    def test_unsupported_format(self, temp_dir):
        archive = temp_dir / "zig.7z"
        archive.write_bytes(b"7z")
        with pytest.raises(UnsupportedArchiveFormat):
            extract_archive(archive, temp_dir / "out")

    def test_corrupt_archive(self, temp_dir):
        """Test a damaged archive raises ArchiveExtractionError."""
        archive = temp_dir / "zig.tar.xz"
        archive.write_bytes(b"definitely not xz")
        with pytest.raises(ArchiveExtractionError):
            extract_archive(archive, temp_dir / "out")

    def test_missing_archive(self, temp_dir):
        with pytest.raises(ArchiveExtractionError, match="not found"):
            extract_archive(temp_dir / "missing.tar.xz", temp_dir / "out")

    def test_tar_gz(self, temp_dir):
        buffer = io.BytesIO()
        with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
            info = tarfile.TarInfo("hello.txt")
            info.size = 5
            tar.addfile(info, io.BytesIO(b"hello"))
        archive = temp_dir / "x.tar.gz"
        archive.write_bytes(buffer.getvalue())

        extract_archive(archive, temp_dir / "out")

        assert (temp_dir / "out" / "hello.txt").read_text() == "hello"


class TestAtomicWrite:
    """Test atomic_write function."""

    def test_write_text_and_bytes(self, temp_dir):
        path = temp_dir / "sub" / "settings.yaml"
        atomic_write(path, "version: 0.13.0\n")
        assert path.read_text() == "version: 0.13.0\n"

        atomic_write(path, b"\x00\x01")
        assert path.read_bytes() == b"\x00\x01"

    def test_no_temp_files_left(self, temp_dir):
        atomic_write(temp_dir / "a.txt", "x")
        assert [p.name for p in temp_dir.iterdir()] == ["a.txt"]

    def test_failure_keeps_original(self, temp_dir):
        """Test a failed write leaves the previous content."""
        path = temp_dir / "a.txt"
        path.write_text("original")

        with pytest.raises(TypeError):
            atomic_write(path, 42)

        assert path.read_text() == "original"
        assert [p.name for p in temp_dir.iterdir()] == ["a.txt"]


class TestSafeRmtree:
    """Test safe_rmtree function."""

    def test_remove_tree(self, temp_dir):
        target = temp_dir / "versions" / "0.12.0"
        (target / "lib").mkdir(parents=True)
        (target / "zig").write_text("x")

        safe_rmtree(target, require_prefix=temp_dir / "versions")

        assert not target.exists()

    def test_missing_is_noop(self, temp_dir):
        safe_rmtree(temp_dir / "missing")

    def test_outside_prefix_refused(self, temp_dir):
        """Test paths outside the required prefix are never deleted."""
        target = temp_dir / "other"
        target.mkdir()

        with pytest.raises(ValueError, match="Refusing"):
            safe_rmtree(target, require_prefix=temp_dir / "versions")

        assert target.exists()

    def test_prefix_itself_refused(self, temp_dir):
        with pytest.raises(ValueError):
            safe_rmtree(temp_dir, require_prefix=temp_dir)

    def test_file_refused(self, temp_dir):
        path = temp_dir / "file.txt"
        path.write_text("x")
        with pytest.raises(FilesystemError):
            safe_rmtree(path)

"""
Tests for CLI commands.

Each test runs the real command against an isolated zigkit home and a fake
release server.
"""

from unittest.mock import patch

import pytest
import responses
import yaml

from zigkit.cli.parser import CLI
from tests.fixtures.archives import make_fake_zig
from tests.fixtures.releases import INDEX_URL, settings_data


@pytest.fixture
def project(temp_dir):
    root = temp_dir / "project"
    root.mkdir()
    return root


@pytest.fixture
def cli_env(isolated_home, install_dir, signer, linux_platform):
    """Engine config trusting the test signer, with a fixed host platform."""
    config = settings_data(install_dir, public_key=signer.public_key_text)
    (isolated_home / "config.yaml").write_text(yaml.safe_dump(config))
    with patch(
        "zigkit.toolchain.installer.detect_platform", return_value=linux_platform
    ):
        yield isolated_home


@pytest.fixture
def run_cli(project):
    def run(*argv):
        return CLI().run(["--project-root", str(project)] + list(argv))

    return run


def _settings_store(home):
    path = home / "settings.yaml"
    return yaml.safe_load(path.read_text()) if path.exists() else {}


class TestPinCommand:
    """Test pin command."""

    def test_pin_to_file(self, cli_env, run_cli, project, capsys):
        assert run_cli("pin", "0.13.0") == 0
        assert (project / ".zigversion").read_text() == "0.13.0\n"
        assert "pinned-file" in capsys.readouterr().out

    def test_pin_to_config(self, cli_env, run_cli):
        """Test --to config-option writes the configuration store."""
        assert run_cli("pin", "master", "--to", "config-option") == 0
        assert _settings_store(cli_env)["version"] == "master"

    def test_pin_to_missing_manifest(self, cli_env, run_cli, capsys):
        assert run_cli("pin", "0.13.0", "--to", "manifest-minimum") == 1
        assert "ERROR" in capsys.readouterr().err

    def test_pin_invalid(self, cli_env, run_cli, project):
        assert run_cli("pin", "soon") == 1
        assert not (project / ".zigversion").exists()


@pytest.mark.posix
class TestInstallCommand:
    """Test install command."""

    @responses.activate
    def test_install_version(self, cli_env, run_cli, release_server, install_dir, capsys):
        """Test installing a named version."""
        release_server.publish("0.13.0")
        release_server.register()

        assert run_cli("install", "0.13.0") == 0

        assert (install_dir / "versions" / "0.13.0" / "zig").is_file()
        assert "Installed 0.13.0" in capsys.readouterr().out

    @responses.activate
    def test_install_and_save(self, cli_env, run_cli, release_server, project):
        release_server.publish("0.13.0")
        release_server.register()

        assert run_cli("install", "latest", "--save") == 0

        assert (project / ".zigversion").read_text().strip() == "latest"

    @responses.activate
    def test_install_wanted_version(self, cli_env, run_cli, release_server, project, capsys):
        """Test install without a version uses the project's pin file."""
        release_server.publish("0.12.0")
        release_server.publish("0.13.0")
        release_server.register()
        (project / ".zigversion").write_text("0.12.0\n")

        assert run_cli("install") == 0

        out = capsys.readouterr().out
        assert "Ready: 0.12.0" in out
        assert "pinned-file" in out

    @responses.activate
    def test_install_bad_signature(self, cli_env, run_cli, release_server, install_dir, capsys):
        """Test a signature failure is reported and nothing is installed."""
        release_server.publish("0.13.0", corrupt=True)
        release_server.register()

        assert run_cli("install", "0.13.0") == 1

        assert "does not verify" in capsys.readouterr().err
        assert not (install_dir / "versions" / "0.13.0").exists()

    def test_install_invalid_version(self, cli_env, run_cli):
        assert run_cli("install", "soon") == 1

    def test_save_requires_version(self, cli_env, run_cli):
        assert run_cli("install", "--save") == 1


@pytest.mark.posix
class TestStatusAndListCommands:
    """Test status and list commands."""

    @pytest.fixture
    def installed(self, install_dir):
        make_fake_zig(install_dir / "versions" / "0.12.0", "0.12.0")
        make_fake_zig(install_dir / "versions" / "0.13.0", "0.13.0")
        return install_dir

    def test_status(self, cli_env, run_cli, project, installed, capsys):
        """Test status shows the wanted version and installed versions."""
        (project / ".zigversion").write_text("0.13.0\n")
        assert run_cli("status") == 0

        out = capsys.readouterr().out
        assert "Wanted version:   0.13.0 (from pinned-file)" in out
        assert "Current version:  none" in out
        assert "0.12.0" in out and "0.13.0" in out

    def test_status_empty(self, cli_env, run_cli, capsys):
        assert run_cli("status") == 0
        out = capsys.readouterr().out
        assert "(from latest-stable)" in out
        assert "Installed versions: none" in out

    @responses.activate
    def test_list(self, cli_env, run_cli, release_server, installed, capsys):
        """Test list marks installed versions, newest first."""
        release_server.publish("0.11.0")
        release_server.publish("0.12.0")
        release_server.publish("0.13.0")
        release_server.register()

        assert run_cli("list") == 0

        lines = capsys.readouterr().out.splitlines()
        assert lines[0].startswith("+ 0.13.0")
        assert lines[2].startswith("  0.11.0")

    def test_list_installed(self, cli_env, run_cli, installed, capsys):
        assert run_cli("list", "--installed") == 0
        assert capsys.readouterr().out.splitlines() == ["+ 0.12.0", "+ 0.13.0"]

    @responses.activate
    def test_list_index_unavailable(self, cli_env, run_cli, capsys):
        responses.add(responses.GET, INDEX_URL, status=500)
        assert run_cli("list") == 1
        assert "unavailable" in capsys.readouterr().err


@pytest.mark.posix
class TestUsePathCommand:
    """Test use-path command."""

    def test_use_path(self, cli_env, run_cli, temp_dir, capsys):
        """Test a valid executable is stored as the explicit path."""
        exe = make_fake_zig(temp_dir / "custom", "0.14.0-dev.1+abc")

        assert run_cli("use-path", str(exe)) == 0

        assert _settings_store(cli_env)["path"] == str(exe.absolute())
        assert "0.14.0-dev.1+abc" in capsys.readouterr().out

    def test_use_invalid_path(self, cli_env, run_cli, temp_dir):
        assert run_cli("use-path", str(temp_dir / "nope")) == 1
        assert "path" not in _settings_store(cli_env)

    def test_clear(self, cli_env, run_cli, temp_dir):
        exe = make_fake_zig(temp_dir / "custom", "0.13.0")
        run_cli("use-path", str(exe))

        assert run_cli("use-path", "--clear") == 0
        assert "path" not in _settings_store(cli_env)

    def test_requires_path_or_clear(self, cli_env, run_cli):
        assert run_cli("use-path") == 1


class TestVerifyCommand:
    """Test verify command."""

    def test_verify_ok(self, cli_env, run_cli, signer, temp_dir, capsys):
        """Test a good signature with the configured key."""
        data = temp_dir / "zig.tar.xz"
        data.write_bytes(b"archive")
        (temp_dir / "zig.tar.xz.minisig").write_bytes(signer.sign(b"archive"))

        assert run_cli("verify", str(data)) == 0

        out = capsys.readouterr().out
        assert "Signature OK" in out
        assert "Trusted comment: timestamp:" in out

    def test_verify_tampered(self, cli_env, run_cli, signer, temp_dir):
        data = temp_dir / "zig.tar.xz"
        data.write_bytes(b"archive!")
        (temp_dir / "zig.tar.xz.minisig").write_bytes(signer.sign(b"archive"))

        assert run_cli("verify", str(data)) == 1

    def test_verify_with_key_file(self, isolated_home, run_cli, signer, temp_dir):
        """Test --public-key accepts a .pub file."""
        data = temp_dir / "blob"
        data.write_bytes(b"blob")
        signature = temp_dir / "blob.sig"
        signature.write_bytes(signer.sign(b"blob", prehashed=False))
        key_file = temp_dir / "minisign.pub"
        key_file.write_text(signer.public_key_text)

        assert (
            run_cli(
                "verify", str(data), "--signature", str(signature),
                "--public-key", str(key_file),
            )
            == 0
        )

    def test_missing_signature(self, cli_env, run_cli, temp_dir, capsys):
        data = temp_dir / "zig.tar.xz"
        data.write_bytes(b"archive")
        assert run_cli("verify", str(data)) == 1
        assert "not found" in capsys.readouterr().err


@pytest.mark.posix
class TestCleanupCommand:
    """Test cleanup command."""

    @pytest.fixture
    def installed(self, install_dir, make_installer):
        make_fake_zig(install_dir / "versions" / "0.11.0", "0.11.0")
        make_fake_zig(install_dir / "versions" / "0.12.0", "0.12.0")
        make_fake_zig(install_dir / "versions" / "0.13.0", "0.13.0")
        make_installer().activate("0.13.0")
        (install_dir / "staging" / "0.14.0-xyz").mkdir(parents=True)
        return install_dir

    def test_dry_run(self, cli_env, run_cli, installed, capsys):
        assert run_cli("cleanup", "--unused", "--dry-run") == 0

        out = capsys.readouterr().out
        assert "Would uninstall 0.11.0" in out
        assert "Would uninstall 0.12.0" in out
        assert (installed / "versions" / "0.11.0").is_dir()
        assert (installed / "staging" / "0.14.0-xyz").is_dir()

    def test_unused(self, cli_env, run_cli, installed):
        """Test every version except the current one is removed."""
        assert run_cli("cleanup", "--unused") == 0

        assert sorted(p.name for p in (installed / "versions").iterdir()) == ["0.13.0"]
        assert list((installed / "staging").iterdir()) == []

    def test_current_version_refused(self, cli_env, run_cli, installed, capsys):
        assert run_cli("cleanup", "--version", "0.13.0") == 1
        assert "current version" in capsys.readouterr().err
        assert (installed / "versions" / "0.13.0").is_dir()

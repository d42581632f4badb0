"""
Tests for the tzdata-update command line.
"""

import json
import pytest

from conftest import NEWER_RULES_VERSION, OLDER_RULES_VERSION, SYSTEM_RULES_VERSION, make_tzdata


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv("TZUPDATE_SYSTEM_TZDATA", raising=False)
    monkeypatch.delenv("TZUPDATE_INSTALL_DIR", raising=False)


@pytest.fixture
def run(system_tzdata, install_dir):
    """Run main() against the temporary system file and install dir."""
    from tzdata_update.cli import main

    def run_cli(*args):
        return main([
            "--system-tzdata", str(system_tzdata),
            "--install-dir", str(install_dir),
            *args,
        ])
    return run_cli


@pytest.fixture
def bundle_file(tmp_path, bundle_factory):
    def write(**kwargs):
        path = tmp_path / "bundle.zip"
        path.write_bytes(bundle_factory(**kwargs))
        return path
    return write


class TestInstallCommand:

    @pytest.mark.unit
    def test_install(self, run, bundle_file, install_dir, capsys):
        assert run("install", str(bundle_file())) == 0
        assert (install_dir / "active" / "tzdata").exists()
        assert "installed" in capsys.readouterr().out

    def test_install_rejected_exit_code_is_outcome(self, run, bundle_file, install_dir, capsys):
        from tzdata_update.installer import InstallOutcome

        code = run("install", str(bundle_file(rules_version=OLDER_RULES_VERSION)))

        assert code == int(InstallOutcome.RULES_REGRESSION)
        assert not (install_dir / "active").exists()
        assert "older than the system" in capsys.readouterr().out

    def test_install_missing_bundle_file(self, run, tmp_path):
        from tzdata_update.cli import EXIT_FATAL

        assert run("install", str(tmp_path / "absent.zip")) == EXIT_FATAL

    def test_install_without_system_tzdata(self, run, bundle_file, system_tzdata, install_dir):
        from tzdata_update.cli import EXIT_FATAL

        system_tzdata.unlink()

        assert run("install", str(bundle_file())) == EXIT_FATAL
        assert not (install_dir / "staging").exists()
        assert not (install_dir / "active").exists()


class TestUninstallCommand:

    def test_uninstall_installed(self, run, bundle_file, install_dir):
        run("install", str(bundle_file()))

        assert run("uninstall") == 0
        assert not (install_dir / "active").exists()

    def test_uninstall_nothing_installed(self, run, capsys):
        assert run("uninstall") == 1
        assert "No time zone update installed" in capsys.readouterr().out


class TestStatusCommand:

    def test_status_without_bundle(self, run, capsys):
        assert run("status") == 0

        out = capsys.readouterr().out
        assert f"System rules version: {SYSTEM_RULES_VERSION}" in out
        assert "Installed bundle: none" in out

    def test_status_with_bundle(self, run, bundle_file, capsys):
        run("install", str(bundle_file(revision=7)))
        capsys.readouterr()

        assert run() == 0

        out = capsys.readouterr().out
        assert f"Installed bundle: 001.001|{NEWER_RULES_VERSION}|007" in out
        assert "Revision: 7" in out


class TestBuildCommand:

    def _inputs(self, tmp_path):
        tzdata = tmp_path / "tzdata.in"
        tzdata.write_bytes(make_tzdata(rules_version=NEWER_RULES_VERSION))
        icu = tmp_path / "icu_tzdata.dat"
        icu.write_bytes(b"icu data")
        return tzdata, icu

    def test_build_then_install(self, run, tmp_path, install_dir):
        tzdata, icu = self._inputs(tmp_path)
        output = tmp_path / "built.zip"

        assert run(
            "build", "-o", str(output), "--tzdata", str(tzdata), "--icu", str(icu),
            "--rules-version", NEWER_RULES_VERSION, "--revision", "3",
        ) == 0
        assert run("install", str(output)) == 0
        assert (install_dir / "active" / "bundle_version").read_bytes() == (
            f"001.001|{NEWER_RULES_VERSION}|003".encode("ascii")
        )

    def test_build_bad_format_version(self, run, tmp_path):
        tzdata, icu = self._inputs(tmp_path)

        assert run(
            "build", "-o", str(tmp_path / "built.zip"), "--tzdata", str(tzdata),
            "--icu", str(icu), "--rules-version", NEWER_RULES_VERSION,
            "--format-version", "one",
        ) == 1
        assert not (tmp_path / "built.zip").exists()

    def test_build_bad_rules_version(self, run, tmp_path, capsys):
        tzdata, icu = self._inputs(tmp_path)

        assert run(
            "build", "-o", str(tmp_path / "built.zip"), "--tzdata", str(tzdata),
            "--icu", str(icu), "--rules-version", "latest",
        ) == 1
        assert "Invalid bundle version" in capsys.readouterr().out
        assert not (tmp_path / "built.zip").exists()


class TestErrorReporting:

    def test_json_log_carries_error_details(self, run, system_tzdata, tmp_path):
        from tzdata_update.cli import EXIT_FATAL

        system_tzdata.write_bytes(b"notzdata\0\0\0\0")
        log_file = tmp_path / "tzupdate.log"

        assert run("--log-file", str(log_file), "--json-logs", "status") == EXIT_FATAL

        records = [json.loads(line) for line in log_file.read_text().splitlines()]
        errors = [r for r in records if r["level"] == "ERROR"]
        assert errors[-1]["data"]["error"] == "TZDATA_INVALID"
        assert errors[-1]["data"]["recoverable"] is False

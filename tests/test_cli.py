"""Tests for the command line interface."""

import json
import logging
from unittest.mock import patch

import pytest

from conftest import export_archive, make_zip
from linkedin_vault import cli
from linkedin_vault.common import ConfigLoader


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Point every store at tmp_path and ignore machine-wide config."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("LINKEDIN_VAULT__STORAGE__DATABASE_PATH", str(tmp_path / "vault.db"))
    monkeypatch.setenv("LINKEDIN_VAULT__STORAGE__OBJECT_STORE_PATH", str(tmp_path / "objects"))
    monkeypatch.setenv("LINKEDIN_VAULT__LOGGING__LEVEL", "WARNING")
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    with patch.object(ConfigLoader, "_load_system_config", return_value=None), \
            patch.object(ConfigLoader, "_load_user_config", return_value=None):
        yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def archive(tmp_path):
    path = tmp_path / "export.zip"
    path.write_bytes(export_archive())
    return path


def run(capsys, *argv):
    code = cli.main(list(argv))
    return code, capsys.readouterr().out


class TestCli:
    """Tests for cli.main."""

    def test_analyze(self, capsys, archive):
        """Test analyzing a local archive prints stats and a report."""
        code, out = run(capsys, "analyze", str(archive))

        assert code == 0
        document = json.loads(out)
        assert document["stats"]["counts"]["connections"] == 3
        assert document["report"]["tier"] == "deterministic"
        assert document["export_version"] == "known"

    def test_analyze_rejected(self, capsys, tmp_path):
        """Test that an unsafe archive fails with exit code 1."""
        path = tmp_path / "bad.zip"
        path.write_bytes(make_zip({"../evil.csv": "x"}))

        code, out = run(capsys, "analyze", str(path))

        assert code == 1
        assert out == ""

    def test_analyze_missing_file(self, capsys, tmp_path):
        """Test a missing archive path."""
        assert run(capsys, "analyze", str(tmp_path / "nope.zip"))[0] == 1

    def test_submit_process_status(self, capsys, archive):
        """Test the stored backup workflow."""
        code, out = run(capsys, "submit", str(archive), "--user", "u1")
        assert code == 0
        backup_id = json.loads(out)["backup_id"]

        code, out = run(capsys, "process", backup_id, "--user", "u1")
        assert code == 0
        assert json.loads(out)["backup"]["status"] == "ready"

        code, out = run(capsys, "status", backup_id, "--user", "u1")
        assert json.loads(out)["status"] == "ready"

        code, out = run(capsys, "status", "--user", "u1")
        assert [b["backup_id"] for b in json.loads(out)] == [backup_id]

    def test_process_other_user(self, capsys, archive):
        """Test that ownership is enforced from the CLI too."""
        backup_id = json.loads(run(capsys, "submit", str(archive), "--user", "u1")[1])["backup_id"]
        assert run(capsys, "process", backup_id, "--user", "u2")[0] == 1

    def test_sweep(self, capsys):
        """Test a sweep over an empty store."""
        code, out = run(capsys, "sweep")

        assert code == 0
        assert json.loads(out)["records_deleted"] == 0

    def test_serve(self):
        """Test that serve hands the app to uvicorn with configured address."""
        with patch("uvicorn.run") as mock_run:
            assert cli.main(["serve", "--port", "9001"]) == 0

        _, kwargs = mock_run.call_args
        assert kwargs["host"] == "127.0.0.1"
        assert kwargs["port"] == 9001

    def test_requires_command(self):
        """Test that a subcommand is mandatory."""
        with pytest.raises(SystemExit):
            cli.main([])

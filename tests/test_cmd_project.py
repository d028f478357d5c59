"""Unit tests for compass project subcommands."""

import argparse
import json
from unittest.mock import patch

import pytest

from compass.cli import (
    cmd_project_create,
    cmd_project_delete,
    cmd_project_list,
    cmd_project_set_default,
    cmd_project_show,
)
from compass.config import get_default_project
from compass.store import Store


def _make_args(**kwargs) -> argparse.Namespace:
    return argparse.Namespace(**kwargs)


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    return tmp_path


class TestProjectCreate:
    def test_creates_project_files(self, workdir, capsys):
        cmd_project_create(_make_args(name="Authentication", key=None, body=None))

        assert (workdir / ".compass" / "projects" / "AUTH" / "project.json").exists()
        assert "Created project AUTH" in capsys.readouterr().out

    def test_first_project_becomes_default(self, workdir):
        cmd_project_create(_make_args(name="Authentication", key=None, body=None))
        cmd_project_create(_make_args(name="Billing", key=None, body=None))
        assert get_default_project() == "AUTH"

    def test_duplicate_exits_with_error(self, workdir, capsys):
        cmd_project_create(_make_args(name="Authentication", key=None, body=None))
        with pytest.raises(SystemExit) as exc:
            cmd_project_create(_make_args(name="Authority", key=None, body=None))
        assert exc.value.code == 1
        assert "[compass] Error: project AUTH already exists" in capsys.readouterr().err

    def test_bad_name_exits_with_error(self, workdir, capsys):
        with pytest.raises(SystemExit):
            cmd_project_create(_make_args(name="1", key=None, body=None))
        assert "need at least 2 alpha characters" in capsys.readouterr().err

    def test_writes_settings_defaults(self, workdir):
        cmd_project_create(_make_args(name="Authentication", key=None, body=None))
        settings = json.loads((workdir / ".compass" / "settings.json").read_text())
        assert settings == {"verbose": False, "default_project": "AUTH"}

    def test_keeps_existing_settings(self, workdir):
        (workdir / ".compass").mkdir()
        (workdir / ".compass" / "settings.json").write_text(json.dumps({"verbose": True}))
        cmd_project_create(_make_args(name="Authentication", key=None, body=None))
        settings = json.loads((workdir / ".compass" / "settings.json").read_text())
        assert settings["verbose"] is True

    def test_body_is_shown(self, workdir, capsys):
        cmd_project_create(_make_args(name="Authentication", key=None, body="Login and sessions."))
        capsys.readouterr()
        cmd_project_show(_make_args(id="AUTH"))
        assert "Login and sessions." in capsys.readouterr().out


class TestProjectListShow:
    def test_list_empty(self, workdir, capsys):
        cmd_project_list(_make_args())
        assert capsys.readouterr().out.strip() == "No projects."

    def test_list_marks_default(self, workdir, capsys):
        cmd_project_create(_make_args(name="Authentication", key=None, body=None))
        cmd_project_create(_make_args(name="Billing", key=None, body=None))
        capsys.readouterr()

        cmd_project_list(_make_args())

        out = capsys.readouterr().out.splitlines()
        assert out == ["AUTH  Authentication (default)", "BILL  Billing"]

    def test_show_lists_tasks(self, workdir, capsys):
        Store().create_project("Authentication", key="AUTH")
        task = Store().create_task("Login form", "AUTH")

        cmd_project_show(_make_args(id="AUTH"))

        out = capsys.readouterr().out
        assert "# Authentication" in out
        assert task["id"] in out
        assert "Login form" in out

    def test_show_missing(self, workdir, capsys):
        with pytest.raises(SystemExit):
            cmd_project_show(_make_args(id="NOPE"))
        assert "project NOPE not found" in capsys.readouterr().err


class TestProjectSetDefault:
    def test_sets_default(self, workdir):
        Store().create_project("Authentication", key="AUTH")
        cmd_project_set_default(_make_args(id="AUTH"))
        assert get_default_project() == "AUTH"

    def test_unknown_project(self, workdir):
        with pytest.raises(SystemExit):
            cmd_project_set_default(_make_args(id="NOPE"))
        assert get_default_project() == ""


class TestProjectDelete:
    def test_force_skips_prompt(self, workdir):
        cmd_project_create(_make_args(name="Authentication", key=None, body=None))
        with patch("builtins.input") as mock_input:
            cmd_project_delete(_make_args(id="AUTH", force=True))
        mock_input.assert_not_called()
        assert Store().list_projects() == []
        assert get_default_project() == ""

    def test_confirmation_declined(self, workdir, capsys):
        cmd_project_create(_make_args(name="Authentication", key=None, body=None))
        with patch("builtins.input", return_value="n"):
            cmd_project_delete(_make_args(id="AUTH", force=False))
        assert [p["id"] for p in Store().list_projects()] == ["AUTH"]
        assert "Delete cancelled" in capsys.readouterr().out

    def test_reprompts_until_valid_answer(self, workdir):
        cmd_project_create(_make_args(name="Authentication", key=None, body=None))
        with patch("builtins.input", side_effect=["maybe", "yes"]) as mock_input:
            cmd_project_delete(_make_args(id="AUTH", force=False))
        assert mock_input.call_count == 2
        assert Store().list_projects() == []

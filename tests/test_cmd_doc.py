"""Unit tests for compass doc subcommands."""

import argparse
from unittest.mock import patch

import pytest

from compass.cli import cmd_doc_create, cmd_doc_delete, cmd_doc_list, cmd_doc_show, cmd_doc_update
from compass.config import set_default_project
from compass.store import Store


@pytest.fixture
def store(tmp_path, monkeypatch):
    """A store in a fresh working directory with AUTH as the default project."""
    monkeypatch.chdir(tmp_path)
    s = Store()
    s.create_project("Authentication", key="AUTH")
    set_default_project("AUTH")
    return s


class TestDocCreate:
    def test_creates_in_default_project(self, store, capsys):
        cmd_doc_create(argparse.Namespace(title="Design notes", project=None, body="Tokens live 1h."))
        [doc] = store.list_documents("AUTH")
        assert doc["title"] == "Design notes"
        assert doc["body"] == "Tokens live 1h."
        assert f"Created document {doc['id']}" in capsys.readouterr().out

    def test_unknown_project_exits(self, store, capsys):
        with pytest.raises(SystemExit) as exc:
            cmd_doc_create(argparse.Namespace(title="x", project="NOPE", body=None))
        assert exc.value.code == 1
        assert "project NOPE not found" in capsys.readouterr().err


class TestDocListShow:
    def test_list_empty(self, store, capsys):
        cmd_doc_list(argparse.Namespace(project=None))
        assert capsys.readouterr().out.strip() == "No documents."

    def test_list_table(self, store, capsys):
        doc = store.create_document("Design notes", "AUTH")
        cmd_doc_list(argparse.Namespace(project=None))
        lines = capsys.readouterr().out.splitlines()
        assert lines[0].split() == ["ID", "PROJECT", "TITLE"]
        assert lines[1].split() == [doc["id"], "AUTH", "Design", "notes"]

    def test_list_unknown_project_exits(self, store, capsys):
        with pytest.raises(SystemExit):
            cmd_doc_list(argparse.Namespace(project="NOPE"))
        assert "project NOPE not found" in capsys.readouterr().err

    def test_show(self, store, capsys):
        doc = store.create_document("Design notes", "AUTH", body="Tokens live 1h.")
        cmd_doc_show(argparse.Namespace(id=doc["id"]))
        out = capsys.readouterr().out
        assert "# Design notes" in out
        assert f"ID:          {doc['id']}" in out
        assert "Project:     AUTH" in out
        assert out.rstrip().endswith("Tokens live 1h.")

    def test_show_unknown(self, store, capsys):
        with pytest.raises(SystemExit):
            cmd_doc_show(argparse.Namespace(id="AUTH-D22222"))
        assert "AUTH-D22222 not found" in capsys.readouterr().err


class TestDocUpdateDelete:
    def test_update(self, store, capsys):
        doc = store.create_document("Old", "AUTH")
        cmd_doc_update(argparse.Namespace(id=doc["id"], title="New", body="Body"))
        updated = store.get_document(doc["id"])
        assert (updated["title"], updated["body"]) == ("New", "Body")
        assert f"Updated document {doc['id']}" in capsys.readouterr().out

    def test_nothing_to_update_exits(self, store, capsys):
        doc = store.create_document("Old", "AUTH")
        with pytest.raises(SystemExit):
            cmd_doc_update(argparse.Namespace(id=doc["id"], title=None, body=None))
        assert "nothing to update" in capsys.readouterr().err

    def test_force_delete(self, store):
        doc = store.create_document("x", "AUTH")
        with patch("builtins.input") as mock_input:
            cmd_doc_delete(argparse.Namespace(id=doc["id"], force=True))
        mock_input.assert_not_called()
        assert store.list_documents("AUTH") == []

    def test_delete_declined(self, store, capsys):
        doc = store.create_document("x", "AUTH")
        with patch("builtins.input", return_value="n"):
            cmd_doc_delete(argparse.Namespace(id=doc["id"], force=False))
        assert "Delete cancelled" in capsys.readouterr().out
        assert len(store.list_documents("AUTH")) == 1

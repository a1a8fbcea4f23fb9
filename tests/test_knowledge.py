"""Tests for abap_refactor.utils.knowledge.load_knowledge."""

from unittest.mock import patch

from abap_refactor.utils.knowledge import load_knowledge


class TestLoadKnowledge:
    def test_reads_given_file(self, tmp_path):
        path = tmp_path / "index.txt"
        path.write_text("BSEG -> ACDOCA", encoding="utf-8")
        assert load_knowledge(path) == "BSEG -> ACDOCA"

    def test_missing_file_returns_empty(self, tmp_path, caplog):
        assert load_knowledge(tmp_path / "missing.txt") == ""
        assert "continuing without it" in caplog.text

    def test_returns_empty_when_no_path_configured(self):
        with patch("abap_refactor.config._config", {"knowledge_path": ""}):
            assert load_knowledge() == ""

    def test_returns_empty_when_key_missing(self):
        with patch("abap_refactor.config._config", {}):
            assert load_knowledge() == ""

    def test_configured_relative_path_resolves_from_project_root(self, tmp_path):
        (tmp_path / "docs").mkdir()
        (tmp_path / "docs" / "index.txt").write_text("excerpt", encoding="utf-8")
        with patch("abap_refactor.config._config", {"knowledge_path": "./docs/index.txt"}), \
                patch("abap_refactor.config._PROJECT_ROOT", tmp_path):
            assert load_knowledge() == "excerpt"

"""Tests for the CLI entry point: source collection, output writing, exit codes."""

from unittest.mock import patch

import pytest

import abap_refactor.main as main_module
from abap_refactor.main import collect_sources, main, run
from abap_refactor.results import OrchestratorResult

pytestmark = pytest.mark.usefixtures("mock_config")


def _completed(code="REPORT znew.", warning=None):
    return OrchestratorResult(
        status="completed_with_warning" if warning else "completed",
        final_code=code,
        final_review="Needs Correction: NO",
        specification="spec",
        warning=warning,
    )


class TestCollectSources:
    def test_filters_by_extension(self, tmp_path):
        (tmp_path / "a.abap").write_text("REPORT za.", encoding="utf-8")
        (tmp_path / "b.PROG").write_text("REPORT zb.", encoding="utf-8")
        (tmp_path / "notes.md").write_text("ignore", encoding="utf-8")
        (tmp_path / "sub.abap").mkdir()

        sources = collect_sources(tmp_path, [".abap", ".prog"])

        assert sources == {"a.abap": "REPORT za.", "b.PROG": "REPORT zb."}

    def test_non_utf8_file_is_read_with_replacement(self, tmp_path):
        (tmp_path / "legacy.abap").write_bytes("* Änderung\nREPORT zl.".encode("latin-1"))

        sources = collect_sources(tmp_path, [".abap"])

        assert sources == {"legacy.abap": "* \ufffdnderung\nREPORT zl."}

    def test_unreadable_file_is_skipped_and_reported(self, tmp_path):
        (tmp_path / "a.abap").write_text("REPORT za.", encoding="utf-8")
        (tmp_path / "b.abap").write_text("REPORT zb.", encoding="utf-8")
        real_read = main_module.read_source

        def flaky_read(path):
            if path.name == "a.abap":
                raise PermissionError("permission denied")
            return real_read(path)

        unreadable = {}
        with patch("abap_refactor.main.read_source", flaky_read):
            sources = collect_sources(tmp_path, [".abap"], unreadable)

        assert sources == {"b.abap": "REPORT zb."}
        assert unreadable == {"a.abap": "permission denied"}


class TestRun:
    def test_not_a_directory_raises(self, tmp_path):
        with pytest.raises(ValueError, match="not a directory"):
            run(tmp_path / "missing")

    def test_no_sources_returns_zero(self, tmp_path, capsys):
        assert run(tmp_path) == 0
        assert "No source files found" in capsys.readouterr().out

    def test_writes_outputs_and_counts_failures(self, tmp_path, capsys):
        (tmp_path / "good.abap").write_text("REPORT zgood.", encoding="utf-8")
        (tmp_path / "bad.abap").write_text("REPORT zbad.", encoding="utf-8")
        results = {
            "bad.abap": OrchestratorResult(status="failed", error="Review phase failed: boom"),
            "good.abap": _completed(warning="Maximum review iterations (3) reached"),
        }

        async def fake_convert_folder(sources, requirements, max_iterations, concurrency):
            assert set(sources) == {"good.abap", "bad.abap"}
            return results

        out = tmp_path / "out"
        with patch("abap_refactor.main.convert_folder", fake_convert_folder):
            failed = run(tmp_path, out, "Use CDS views.")

        assert failed == 1
        assert (out / "good_S4.abap").read_text(encoding="utf-8") == "REPORT znew."
        assert not (out / "bad_S4.abap").exists()
        captured = capsys.readouterr()
        assert "Failed to convert bad.abap: Review phase failed: boom" in captured.err
        assert "Warning for good.abap" in captured.err

    def test_default_output_folder(self, tmp_path):
        (tmp_path / "z.abap").write_text("REPORT z.", encoding="utf-8")

        async def fake_convert_folder(*args):
            return {"z.abap": _completed()}

        with patch("abap_refactor.main.convert_folder", fake_convert_folder):
            run(tmp_path)

        assert (tmp_path / "s4_converted_code" / "z_S4.abap").exists()

    def test_non_utf8_file_does_not_abort_siblings(self, tmp_path):
        (tmp_path / "a.abap").write_bytes("* Änderung".encode("latin-1"))
        (tmp_path / "b.abap").write_text("REPORT zb.", encoding="utf-8")
        seen = {}

        async def fake_convert_folder(sources, *args):
            seen.update(sources)
            return {name: _completed() for name in sources}

        with patch("abap_refactor.main.convert_folder", fake_convert_folder):
            failed = run(tmp_path, tmp_path / "out")

        assert failed == 0
        assert seen == {"a.abap": "* \ufffdnderung", "b.abap": "REPORT zb."}
        assert (tmp_path / "out" / "b_S4.abap").exists()

    def test_write_error_counts_as_failure_and_continues(self, tmp_path, capsys):
        (tmp_path / "a.abap").write_text("REPORT za.", encoding="utf-8")
        (tmp_path / "b.abap").write_text("REPORT zb.", encoding="utf-8")
        real_write = main_module.write_outputs

        async def fake_convert_folder(sources, *args):
            return {name: _completed() for name in sources}

        def failing_write(output_dir, name, *args):
            if name == "a.abap":
                raise OSError("disk full")
            return real_write(output_dir, name, *args)

        out = tmp_path / "out"
        with patch("abap_refactor.main.convert_folder", fake_convert_folder), \
                patch("abap_refactor.main.write_outputs", failing_write):
            failed = run(tmp_path, out)

        assert failed == 1
        assert (out / "b_S4.abap").read_text(encoding="utf-8") == "REPORT znew."
        captured = capsys.readouterr()
        assert "Failed to write outputs for a.abap: disk full" in captured.err
        assert "1 converted, 1 failed" in captured.out


class TestMain:
    def test_exit_code_reflects_failures(self, tmp_path):
        with patch("abap_refactor.main.run", return_value=2) as mock_run:
            with pytest.raises(SystemExit) as exc:
                main([str(tmp_path), "-r", "  keep ALV  ", "--max-iterations", "2"])
        assert exc.value.code == 1
        args = mock_run.call_args.args
        assert args[2] == "keep ALV"
        assert args[3] == 2

    def test_invalid_folder_exits_2(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as exc:
            main([str(tmp_path / "missing")])
        assert exc.value.code == 2
        assert "not a directory" in capsys.readouterr().err

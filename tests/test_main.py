"""コマンドラインインターフェースのテスト。"""

import json
import logging
from pathlib import Path
from tempfile import TemporaryDirectory
from textwrap import dedent

import pytest
import yaml
from openpyxl import load_workbook

from factory_audit.main import EXIT_ERROR, EXIT_OK, EXIT_VIOLATIONS, main


COMPLIANT = """\
    package app

    type Pool struct {
    	size int
    }

    func NewPool(size int) *Pool {
    	return &Pool{size: size}
    }

    // coverage:ignore
    func NewPoolForProduction(cfg Config) *Pool {
    	return NewPool(cfg.Size)
    }
    """

NO_MARKER = COMPLIANT.replace("    // coverage:ignore\n", "")

WITH_LOGIC = COMPLIANT.replace(
    "    \treturn NewPool(cfg.Size)\n",
    "    \tif cfg.Large {\n    \t\treturn NewPool(64)\n    \t}\n    \treturn NewPool(cfg.Size)\n"
)


def write_project(root: Path, source: str) -> str:
    (root / "pool.go").write_text(dedent(source), encoding="utf-8")
    return str(root)


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    logging.getLogger().handlers.clear()


class TestAnalyzeCommand:
    """analyzeサブコマンドのテスト。"""

    def test_compliant_project(self, capsys):
        """違反がない場合は終了コード0でJSONを出力するテスト。"""
        with TemporaryDirectory() as tmpdir:
            code = main(["analyze", write_project(Path(tmpdir), COMPLIANT)])

        assert code == EXIT_OK
        data = json.loads(capsys.readouterr().out)
        assert data["score"] == 100.0
        assert data["factories_compliant"] == 1

    def test_critical_violation(self, capsys):
        """重大な違反がある場合は終了コード1になることのテスト。"""
        with TemporaryDirectory() as tmpdir:
            code = main(["analyze", write_project(Path(tmpdir), WITH_LOGIC)])

        assert code == EXIT_VIOLATIONS
        data = json.loads(capsys.readouterr().out)
        assert data["severity_counts"]["critical"] == 1

    def test_fail_under(self, capsys):
        """スコアが閾値未満の場合は終了コード1になることのテスト。"""
        with TemporaryDirectory() as tmpdir:
            root = write_project(Path(tmpdir), NO_MARKER)
            assert main(["analyze", root]) == EXIT_OK
            assert main(["analyze", root, "--fail-under", "90"]) == EXIT_VIOLATIONS

    def test_narrative_output_file(self, capsys):
        """テキスト形式でファイルに出力するテスト。"""
        with TemporaryDirectory() as tmpdir:
            root = Path(tmpdir) / "src"
            root.mkdir()
            output = Path(tmpdir) / "report.txt"
            code = main([
                "analyze", write_project(root, COMPLIANT),
                "--format", "narrative",
                "--output", str(output),
            ])

            assert code == EXIT_OK
            assert "スコア: 100.00 / 100" in output.read_text(encoding="utf-8")
        assert capsys.readouterr().out == ""

    def test_xlsx_export(self, capsys):
        """Excelチェックリストを出力するテスト。"""
        with TemporaryDirectory() as tmpdir:
            root = Path(tmpdir) / "src"
            root.mkdir()
            xlsx = Path(tmpdir) / "checklist.xlsx"
            code = main(["analyze", write_project(root, WITH_LOGIC), "--xlsx", str(xlsx)])

            assert code == EXIT_VIOLATIONS
            ws = load_workbook(xlsx)["Checklist"]
            rule_ids = [row[3] for row in ws.iter_rows(min_row=2, values_only=True)]
            assert rule_ids == ["FAC001"]

    def test_missing_path(self, capsys):
        """存在しないパスは終了コード2になることのテスト。"""
        assert main(["analyze", "/nonexistent/project"]) == EXIT_ERROR

    def test_malformed_config(self, capsys):
        """不正な設定ファイルは終了コード2になることのテスト。"""
        with TemporaryDirectory() as tmpdir:
            root = write_project(Path(tmpdir), COMPLIANT)
            config = Path(tmpdir) / "bad.yaml"
            config.write_text("concurrency_limit: [1\n", encoding="utf-8")
            assert main(["analyze", root, "--config", str(config)]) == EXIT_ERROR

    def test_invalid_config_value(self, capsys):
        """検証エラーのある設定は終了コード2になることのテスト。"""
        with TemporaryDirectory() as tmpdir:
            root = write_project(Path(tmpdir), COMPLIANT)
            config = Path(tmpdir) / "factory_audit.yaml"
            config.write_text("concurrency_limit: 0\n", encoding="utf-8")
            assert main(["analyze", root, "--config", str(config)]) == EXIT_ERROR

    def test_unknown_rule_override(self, capsys):
        """未知のルールIDの上書きは終了コード2になることのテスト。"""
        with TemporaryDirectory() as tmpdir:
            root = write_project(Path(tmpdir), COMPLIANT)
            config = Path(tmpdir) / "factory_audit.yaml"
            config.write_text("rules:\n  FAC999:\n    enabled: false\n", encoding="utf-8")
            assert main(["analyze", root, "--config", str(config)]) == EXIT_ERROR

    def test_disabled_rule_via_config(self, capsys):
        """設定でルールを無効化できることのテスト。"""
        with TemporaryDirectory() as tmpdir:
            root = write_project(Path(tmpdir), WITH_LOGIC)
            config = Path(tmpdir) / "factory_audit.yaml"
            config.write_text("rules:\n  FAC001:\n    enabled: false\n", encoding="utf-8")
            assert main(["analyze", root, "--config", str(config)]) == EXIT_OK

    @pytest.mark.parametrize("arguments", [
        ["--timeout", "0"],
        ["--fail-under", "150"],
    ])
    def test_invalid_arguments(self, capsys, arguments):
        """不正な引数は終了コード2になることのテスト。"""
        with TemporaryDirectory() as tmpdir:
            root = write_project(Path(tmpdir), COMPLIANT)
            try:
                code = main(["analyze", root] + arguments)
            except SystemExit as e:
                code = e.code
        assert code == EXIT_ERROR


class TestInitConfigCommand:
    """init-configサブコマンドのテスト。"""

    def test_writes_default_config(self, capsys):
        """既定値の設定ファイルを生成するテスト。"""
        with TemporaryDirectory() as tmpdir:
            output = Path(tmpdir) / "factory_audit.yaml"
            assert main(["init-config", "--output", str(output)]) == EXIT_OK
            data = yaml.safe_load(output.read_text(encoding="utf-8"))

        assert data["factory_suffix"] == "ForProduction"
        assert data["coverage_marker_text"] == "coverage:ignore"
        assert data["severity_weights"]["critical"] == 3.0

    def test_refuses_to_overwrite(self, capsys):
        """既存のファイルは--forceなしでは上書きしないことのテスト。"""
        with TemporaryDirectory() as tmpdir:
            output = Path(tmpdir) / "factory_audit.yaml"
            output.write_text("factory_suffix: Custom\n", encoding="utf-8")

            assert main(["init-config", "--output", str(output)]) == EXIT_ERROR
            assert "Custom" in output.read_text(encoding="utf-8")

            assert main(["init-config", "--output", str(output), "--force"]) == EXIT_OK
            assert "ForProduction" in output.read_text(encoding="utf-8")

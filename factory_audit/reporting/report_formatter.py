"""ComplianceReportの出力整形。"""

from pathlib import Path
from typing import List, Optional
import logging

from ..models.report import ComplianceReport, FunctionEntry
from ..models.role import Role
from ..models.violation import Severity
from .schema import ReportModel

logger = logging.getLogger(__name__)


class ReportFormatter:
    """集計済みのレポートを構造化形式またはテキスト形式で出力する。

    出力はレポートの内容だけで決まる（実行日時などは含めない）。
    """

    FORMATS = ("structured", "narrative")

    def __init__(self, output_format: str = "structured"):
        """フォーマッターを初期化する。

        Args:
            output_format: "structured"（JSON）または "narrative"（テキスト）

        Raises:
            ValueError: 未知の出力形式の場合
        """
        if output_format not in self.FORMATS:
            raise ValueError(f"Unknown output format: {output_format}")
        self.output_format = output_format

    def render(self, report: ComplianceReport) -> str:
        """レポートを文字列に変換する。"""
        if self.output_format == "structured":
            return self.render_structured(report)
        return self.render_narrative(report)

    def write(self, report: ComplianceReport, output_file: Optional[str] = None) -> str:
        """レポートを出力する。

        Args:
            report: 出力するレポート
            output_file: 出力先ファイル（Noneの場合は書き込まない）

        Returns:
            整形済みのレポート文字列
        """
        text = self.render(report)
        if output_file:
            output_path = Path(output_file)
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_text(text, encoding="utf-8")
            logger.info(f"Report written to {output_file}")
        return text

    def render_structured(self, report: ComplianceReport) -> str:
        return ReportModel.from_report(report).model_dump_json(indent=2) + "\n"

    def render_narrative(self, report: ComplianceReport) -> str:
        lines: List[str] = [
            "DIコンプライアンスレポート",
            "=" * 40,
            f"スコア: {report.score:.2f} / 100",
            f"解析ファイル数: {report.files_analyzed}",
            f"パース失敗: {len(report.parse_failures)}",
            f"部分的な結果: {'はい' if report.partial else 'いいえ'}",
            f"準拠ファクトリ: {report.factories_compliant}/{report.factories_total}",
            "",
            "重大度別の違反数:",
        ]
        for severity in Severity:
            lines.append(f"  {severity.value}: {report.severity_counts.get(severity, 0)}")

        lines.append("")
        lines.append("役割別の関数数:")
        for role in Role:
            count = sum(1 for entry in report.functions if entry.role is role)
            lines.append(f"  {role.value}: {count}")

        lines.append("")
        lines.append("ファクトリチェックリスト:")
        if not report.factories:
            lines.append("  (ProductionFactoryは見つかりませんでした)")
        for entry in report.factories:
            lines.extend(self._factory_lines(entry))

        if report.parse_failures:
            lines.append("")
            lines.append("パース失敗:")
            for failure in report.parse_failures:
                lines.append(f"  - {failure.path}: {failure.message}")

        return "\n".join(lines) + "\n"

    def _factory_lines(self, entry: FunctionEntry) -> List[str]:
        mark = "OK" if entry.compliant else "NG"
        lines = [
            f"  [{mark}] {entry.name} ({entry.path}:{entry.line})",
            f"       プライマリコンストラクタ: {entry.primary_constructor or 'なし'}",
        ]
        for v in entry.violations:
            lines.append(f"       - [{v.rule_id}] {v.severity.value} {v.path}:{v.line}: {v.message}")
            lines.append(f"         修正案: {v.fix}")
        return lines

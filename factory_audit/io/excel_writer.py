"""チェックリストのExcel出力モジュール。"""

from typing import Dict, Optional
from pathlib import Path
import logging

from openpyxl import Workbook
from openpyxl.styles import PatternFill, Font, Alignment, Border, Side

from ..models.report import ComplianceReport, FunctionEntry
from ..models.role import Role
from ..models.violation import Severity, Violation

logger = logging.getLogger(__name__)


class ChecklistWorkbookWriter:
    """ComplianceReportをExcelのチェックリストとして書き出す。"""

    # 各重大度の色（RGB hex、#なし）
    SEVERITY_COLORS: Dict[Severity, str] = {
        Severity.CRITICAL: "FFC7CE",    # 赤 - 修正必要
        Severity.WARNING: "FFEB9C",     # 黄 - レビュー必要
        Severity.SUGGESTION: "DDEBF7",  # 青 - 改善提案
    }
    COMPLIANT_COLOR = "C6EFCE"  # 緑 - 問題なし

    CHECKLIST_HEADERS = [
        "ファクトリ", "ファイル", "行", "ルール", "重大度", "内容", "修正案", "準拠",
    ]
    CHECKLIST_WIDTHS = [36, 40, 8, 10, 12, 60, 60, 8]

    def __init__(self, output_file: str):
        """Excelライターを初期化する。

        Args:
            output_file: 出力Excelファイルのパス
        """
        self.output_file = Path(output_file)
        self.thin_border = Border(
            left=Side(style="thin"),
            right=Side(style="thin"),
            top=Side(style="thin"),
            bottom=Side(style="thin")
        )

    def write(self, report: ComplianceReport) -> None:
        """ChecklistシートとSummaryシートを作成して保存する。

        違反1件につき1行、違反のないファクトリは1行で出力する。

        Args:
            report: 出力するレポート
        """
        wb = Workbook()
        ws = wb.active
        ws.title = "Checklist"

        self._add_headers(ws)
        row = 2
        for entry in report.factories:
            if entry.violations:
                for violation in entry.violations:
                    self._write_violation_row(ws, row, entry, violation)
                    row += 1
            else:
                self._write_compliant_row(ws, row, entry)
                row += 1

        for i, width in enumerate(self.CHECKLIST_WIDTHS, 1):
            col_letter = ws.cell(row=1, column=i).column_letter
            ws.column_dimensions[col_letter].width = width
        ws.freeze_panes = "A2"

        self._write_summary(wb.create_sheet("Summary"), report)

        self.output_file.parent.mkdir(parents=True, exist_ok=True)
        wb.save(self.output_file)
        logger.info(f"Checklist written to {self.output_file}")

    def _add_headers(self, ws) -> None:
        """チェックリストのヘッダーを追加する。

        Args:
            ws: ワークシートオブジェクト
        """
        header_alignment = Alignment(horizontal="center", vertical="center")
        header_fill = PatternFill(
            start_color="4472C4",
            end_color="4472C4",
            fill_type="solid"
        )
        white_font = Font(bold=True, color="FFFFFF")

        for i, header in enumerate(self.CHECKLIST_HEADERS, 1):
            cell = ws.cell(row=1, column=i)
            cell.value = header
            cell.font = white_font
            cell.alignment = header_alignment
            cell.fill = header_fill
            cell.border = self.thin_border

    def _write_row(self, ws, row_num: int, values: list, color: Optional[str]) -> None:
        for i, value in enumerate(values, 1):
            cell = ws.cell(row=row_num, column=i)
            cell.value = value
            cell.border = self.thin_border
            cell.alignment = Alignment(wrap_text=True, vertical="top")

        if color:
            # 重大度列を色分け
            severity_cell = ws.cell(row=row_num, column=5)
            severity_cell.fill = PatternFill(
                start_color=color,
                end_color=color,
                fill_type="solid"
            )
            severity_cell.alignment = Alignment(horizontal="center", vertical="top")

    def _write_violation_row(
        self,
        ws,
        row_num: int,
        entry: FunctionEntry,
        violation: Violation
    ) -> None:
        """1件の違反を書き込む。

        Args:
            ws: ワークシートオブジェクト
            row_num: 書き込む行番号
            entry: 違反が属するファクトリ
            violation: 書き込む違反
        """
        self._write_row(
            ws,
            row_num,
            [
                entry.name,
                violation.path,
                violation.line,
                violation.rule_id,
                violation.severity.value,
                violation.message,
                violation.fix,
                "○" if entry.compliant else "×",
            ],
            self.SEVERITY_COLORS[violation.severity]
        )

    def _write_compliant_row(self, ws, row_num: int, entry: FunctionEntry) -> None:
        self._write_row(
            ws,
            row_num,
            [entry.name, entry.path, entry.line, "", "", "", "", "○"],
            self.COMPLIANT_COLOR
        )

    def _write_summary(self, ws, report: ComplianceReport) -> None:
        """統計情報を含むサマリーシートを書き込む。

        Args:
            ws: ワークシートオブジェクト
            report: 出力するレポート
        """
        ws["A1"] = "コンプライアンスサマリー"
        ws["A1"].font = Font(bold=True, size=14)
        ws.merge_cells("A1:B1")

        rows = [
            ("スコア", report.score),
            ("解析ファイル数", report.files_analyzed),
            ("パース失敗", len(report.parse_failures)),
            ("部分的な結果", "はい" if report.partial else "いいえ"),
            ("ファクトリ数", report.factories_total),
            ("準拠ファクトリ数", report.factories_compliant),
        ]
        rows.extend(
            (f"違反 ({severity.value})", report.severity_counts.get(severity, 0))
            for severity in Severity
        )
        rows.extend(
            (f"関数 ({role.value})", sum(1 for e in report.functions if e.role is role))
            for role in Role
        )

        row = 3
        for label, value in rows:
            cell_label = ws.cell(row=row, column=1)
            cell_label.value = label
            cell_label.font = Font(bold=True)
            cell_label.border = self.thin_border

            cell_value = ws.cell(row=row, column=2)
            cell_value.value = value
            cell_value.alignment = Alignment(horizontal="right")
            cell_value.border = self.thin_border
            row += 1

        ws.column_dimensions["A"].width = 28
        ws.column_dimensions["B"].width = 14

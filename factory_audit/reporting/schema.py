"""構造化レポートのスキーマ。

フィールドの宣言順がそのままJSONの出力順になる。
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from ..models.report import ComplianceReport, FunctionEntry
from ..models.violation import Violation


class ViolationModel(BaseModel):
    """1件の違反。"""
    rule_id: str
    severity: str
    path: str
    line: int = Field(ge=1)
    message: str
    fix: str

    @classmethod
    def from_violation(cls, violation: Violation) -> "ViolationModel":
        return cls(
            rule_id=violation.rule_id,
            severity=violation.severity.value,
            path=violation.path,
            line=violation.line,
            message=violation.message,
            fix=violation.fix
        )


class FunctionModel(BaseModel):
    """チェックリストの1項目。"""
    name: str
    path: str
    line: int = Field(ge=1)
    role: str
    compliant: Optional[bool] = None
    primary_constructor: Optional[str] = None
    violations: List[ViolationModel] = Field(default_factory=list)

    @classmethod
    def from_entry(cls, entry: FunctionEntry) -> "FunctionModel":
        return cls(
            name=entry.name,
            path=entry.path,
            line=entry.line,
            role=entry.role.value,
            compliant=entry.compliant,
            primary_constructor=entry.primary_constructor,
            violations=[ViolationModel.from_violation(v) for v in entry.violations]
        )


class ParseFailureModel(BaseModel):
    path: str
    message: str


class ReportModel(BaseModel):
    """ComplianceReportのJSON表現。"""
    files_analyzed: int = Field(ge=0)
    partial: bool
    parse_failures: List[ParseFailureModel] = Field(default_factory=list)
    functions: List[FunctionModel] = Field(default_factory=list)
    score: float = Field(ge=0.0, le=100.0)
    severity_counts: Dict[str, int] = Field(default_factory=dict)
    factories_total: int = Field(ge=0)
    factories_compliant: int = Field(ge=0)

    @classmethod
    def from_report(cls, report: ComplianceReport) -> "ReportModel":
        """ComplianceReportからモデルを作成する。

        Args:
            report: 集計済みのレポート

        Returns:
            ReportModelインスタンス
        """
        return cls(
            files_analyzed=report.files_analyzed,
            partial=report.partial,
            parse_failures=[
                ParseFailureModel(path=f.path, message=f.message)
                for f in report.parse_failures
            ],
            functions=[FunctionModel.from_entry(e) for e in report.functions],
            score=report.score,
            severity_counts={
                severity.value: count
                for severity, count in report.severity_counts.items()
            },
            factories_total=report.factories_total,
            factories_compliant=report.factories_compliant
        )

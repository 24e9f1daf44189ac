"""コンプライアンスレポートモデル。"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .role import Role
from .source import ParseFailure
from .violation import Severity, Violation


@dataclass(frozen=True)
class FunctionEntry:
    """関数ごとのチェックリスト項目。"""
    name: str
    path: str
    line: int
    role: Role
    violations: List[Violation] = field(default_factory=list)
    compliant: Optional[bool] = None  # ProductionFactoryのみ
    primary_constructor: Optional[str] = None


@dataclass(frozen=True)
class ComplianceReport:
    """1回の実行の集計結果。"""
    files_analyzed: int
    parse_failures: List[ParseFailure]
    functions: List[FunctionEntry]
    score: float
    severity_counts: Dict[Severity, int]
    factories_total: int = 0
    factories_compliant: int = 0
    partial: bool = False

    @property
    def violations(self) -> List[Violation]:
        """全違反をチェックリスト順に取得する。"""
        return [v for entry in self.functions for v in entry.violations]

    @property
    def factories(self) -> List[FunctionEntry]:
        return [
            entry for entry in self.functions
            if entry.role is Role.PRODUCTION_FACTORY
        ]

    def has_critical(self) -> bool:
        """重大な違反が存在するかを確認する。"""
        return self.severity_counts.get(Severity.CRITICAL, 0) > 0

    def __str__(self) -> str:
        return (
            f"score={self.score:.2f} files={self.files_analyzed} "
            f"failures={len(self.parse_failures)} partial={self.partial}"
        )

"""違反とロール分類からスコアとチェックリストを集計する。"""

from typing import Dict, Iterable, List
import logging

from ..config import Config
from ..models.report import ComplianceReport, FunctionEntry
from ..models.role import Role
from ..models.source import FunctionDeclaration, LoadResult
from ..models.violation import Severity, Violation
from ..detection.violation_detector import DetectionResult

logger = logging.getLogger(__name__)


class ScoreAggregator:
    """全ファイル処理後に1回だけ実行される集計器。"""

    def __init__(self, config: Config):
        """集計器を初期化する。

        Args:
            config: 重大度の重みを含むアプリケーション設定
        """
        self.config = config

    def aggregate(
        self,
        load_result: LoadResult,
        functions: Iterable[FunctionDeclaration],
        roles: Dict[str, Role],
        detection: DetectionResult
    ) -> ComplianceReport:
        """ComplianceReportを作成する。

        Args:
            load_result: ファイル読み込み結果
            functions: 全関数宣言
            roles: 関数キーから役割へのマッピング
            detection: 違反検出結果

        Returns:
            関数が (path, line, name) 順に並んだComplianceReport
        """
        by_function: Dict[str, List[Violation]] = {}
        for violation in detection.violations:
            by_function.setdefault(violation.function_key, []).append(violation)

        entries = []
        for func in functions:
            role = roles.get(func.key, Role.UNCLASSIFIED)
            violations = by_function.get(func.key, [])
            compliant = None
            constructor = None
            if role is Role.PRODUCTION_FACTORY:
                constructor = detection.primary_constructors.get(func.key)
                compliant = constructor is not None and not any(
                    v.severity is Severity.CRITICAL for v in violations
                )
            entries.append(FunctionEntry(
                name=func.qualified_name,
                path=func.path,
                line=func.start_line,
                role=role,
                violations=list(violations),
                compliant=compliant,
                primary_constructor=constructor
            ))
        entries.sort(key=lambda e: (e.path, e.line, e.name))

        severity_counts = self.count_severities(detection.violations)
        factories = [e for e in entries if e.role is Role.PRODUCTION_FACTORY]
        score = self.compute_score(detection.violations, len(factories))

        report = ComplianceReport(
            files_analyzed=len(load_result.units),
            parse_failures=sorted(load_result.failures, key=lambda f: f.path),
            functions=entries,
            score=score,
            severity_counts=severity_counts,
            factories_total=len(factories),
            factories_compliant=sum(1 for e in factories if e.compliant),
            partial=load_result.partial
        )
        logger.info(f"Aggregated report: {report}")
        return report

    def compute_score(self, violations: List[Violation], factories_total: int) -> float:
        """重み付き違反数からスコアを計算する。

        ``100 * (1 - weighted / max(1, factories * critical_weight))`` を
        [0, 100] に丸め、小数点以下2桁に四捨五入する。

        Args:
            violations: 全違反
            factories_total: ProductionFactoryの数

        Returns:
            コンプライアンススコア
        """
        weighted = sum(self.config.weight(v.severity.value) for v in violations)
        max_weight = self.config.weight(Severity.CRITICAL.value)
        denominator = max(1.0, factories_total * max_weight)

        score = 100.0 * (1.0 - weighted / denominator)
        return round(min(100.0, max(0.0, score)), 2)

    @staticmethod
    def count_severities(violations: Iterable[Violation]) -> Dict[Severity, int]:
        counts = {severity: 0 for severity in Severity}
        for violation in violations:
            counts[violation.severity] += 1
        return counts

"""スコア集計とレポート出力モジュール。"""

from .score_aggregator import ScoreAggregator
from .report_formatter import ReportFormatter
from .schema import ReportModel

__all__ = ["ScoreAggregator", "ReportFormatter", "ReportModel"]

"""DIコンプライアンス解析ツールのメインエントリーポイント。"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional
import logging

from .config import Config, ConfigError
from .io.excel_writer import ChecklistWorkbookWriter
from .io.rules_loader import RulesLoader
from .analyzer.function_index import FunctionIndex
from .analyzer.source_loader import SourceLoader
from .classifier.role_classifier import RoleClassifier
from .detection.violation_detector import ViolationDetector
from .models.report import ComplianceReport
from .models.violation import Severity
from .reporting.report_formatter import ReportFormatter
from .reporting.score_aggregator import ScoreAggregator
from .utils.logger import setup_logging

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_VIOLATIONS = 1
EXIT_ERROR = 2

DEFAULT_CONFIG_FILE = "factory_audit.yaml"


class ComplianceAnalyzer:
    """解析パイプライン全体を実行するメインクラス。

    読み込み → 役割分類 → 違反検出 → 集計 の順に処理する。
    実行ごとにモデルを作り直すため、同じ入力からは同じレポートが得られる。
    """

    def __init__(self, config: Config):
        """解析器を初期化する。

        Args:
            config: アプリケーション設定

        Raises:
            ConfigError: ルール設定が不正な場合
        """
        self.config = config

        # コンポーネントを初期化
        self._init_components()

    def _init_components(self) -> None:
        """すべてのコンポーネントを初期化する。"""
        # ルールを読み込み
        rules_loader = RulesLoader()
        self.rules = rules_loader.load(self.config)
        active = ", ".join(rule.rule_id for rule in rules_loader.active_rules)
        logger.info(f"Active rules: {active}")

        self.source_loader = SourceLoader(self.config)
        self.aggregator = ScoreAggregator(self.config)

    def analyze(self, root: str, deadline_ms: Optional[int] = None) -> ComplianceReport:
        """ソースツリーを解析する。

        Args:
            root: 解析対象のディレクトリまたはファイル
            deadline_ms: 実行全体の期限（ミリ秒）

        Returns:
            ComplianceReport

        Raises:
            ConfigError: 解析対象パスが存在しない場合
        """
        logger.info(f"Analyzing {root}")

        load_result = self.source_loader.load(root, deadline_ms)

        # 全ファイルのパース完了後に索引を構築
        index = FunctionIndex(load_result.units)
        functions = index.functions

        classifier = RoleClassifier(self.config, index)
        roles = classifier.classify_all(functions)

        detector = ViolationDetector(self.config, index, roles, self.rules)
        detection = detector.detect()

        report = self.aggregator.aggregate(load_result, functions, roles, detection)
        self._log_statistics(report)
        return report

    def _log_statistics(self, report: ComplianceReport) -> None:
        """処理統計をログ出力する。"""
        logger.info("=" * 50)
        logger.info("Analysis Statistics:")
        logger.info(f"  Files analyzed: {report.files_analyzed}")
        logger.info(f"  Parse failures: {len(report.parse_failures)}")
        logger.info(f"  Functions: {len(report.functions)}")
        logger.info(f"  Factories: {report.factories_compliant}/{report.factories_total} compliant")
        for severity in Severity:
            logger.info(f"  {severity.value}: {report.severity_counts.get(severity, 0)}")
        logger.info(f"  Score: {report.score:.2f}")
        if report.partial:
            logger.info("  Partial: run deadline exceeded")
        logger.info("=" * 50)


def build_parser() -> argparse.ArgumentParser:
    """コマンドライン引数パーサーを作成する。"""
    parser = argparse.ArgumentParser(
        prog="factory-audit",
        description="DIコンプライアンス違反検出ツール"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze = subparsers.add_parser(
        "analyze",
        help="Goソースツリーを解析してレポートを出力する"
    )
    analyze.add_argument(
        "path",
        help="解析対象のディレクトリまたはファイル"
    )
    analyze.add_argument(
        "-c", "--config",
        help="設定ファイルパス（省略時は既定値）"
    )
    analyze.add_argument(
        "-f", "--format",
        choices=ReportFormatter.FORMATS,
        default="structured",
        help="出力形式"
    )
    analyze.add_argument(
        "--fail-under",
        type=float,
        metavar="SCORE",
        help="スコアがこの値未満の場合は終了コード1を返す"
    )
    analyze.add_argument(
        "--timeout",
        type=_positive_int,
        metavar="MS",
        help="実行全体の期限（ミリ秒）。超過した場合は部分的なレポートを出力する"
    )
    analyze.add_argument(
        "-o", "--output",
        help="レポートの出力先ファイル（省略時は標準出力）"
    )
    analyze.add_argument(
        "--xlsx",
        metavar="FILE",
        help="チェックリストをExcelファイルにも出力する"
    )
    analyze.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="詳細ログを有効にする"
    )

    init_config = subparsers.add_parser(
        "init-config",
        help="既定値の設定ファイルを生成する"
    )
    init_config.add_argument(
        "-o", "--output",
        default=DEFAULT_CONFIG_FILE,
        help="出力設定ファイルパス"
    )
    init_config.add_argument(
        "--force",
        action="store_true",
        help="既存のファイルを上書きする"
    )

    return parser


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"整数ではありません: {value}")
    if number <= 0:
        raise argparse.ArgumentTypeError(f"正の整数である必要があります: {value}")
    return number


def main(argv: Optional[List[str]] = None) -> int:
    """メインエントリーポイント。

    Args:
        argv: コマンドライン引数（省略時はsys.argv）

    Returns:
        終了コード（0: 合格, 1: 違反あり, 2: 設定・入力エラー）
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "init-config":
        return _init_config(args.output, args.force)
    return _analyze(args)


def _analyze(args: argparse.Namespace) -> int:
    """analyzeサブコマンドを実行する。"""
    # 設定を読み込み
    try:
        config = Config.from_yaml(args.config) if args.config else Config()
    except ConfigError as e:
        setup_logging(level="INFO")
        logger.error(f"Configuration error: {e}")
        return EXIT_ERROR

    # 詳細ログが指定された場合はログレベルを上書き
    if args.verbose:
        config.log_level = "DEBUG"

    # ロギングをセットアップ
    setup_logging(level=str(config.log_level), log_file=config.log_file)

    # 設定を検証
    errors = config.validate()
    if args.fail_under is not None and not 0 <= args.fail_under <= 100:
        errors.append(f"--fail-underは0から100の範囲である必要があります: {args.fail_under}")
    if errors:
        for error in errors:
            logger.error(f"Configuration error: {error}")
        return EXIT_ERROR

    try:
        analyzer = ComplianceAnalyzer(config)
        report = analyzer.analyze(args.path, args.timeout)
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_ERROR
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        return EXIT_ERROR

    formatter = ReportFormatter(args.format)
    try:
        text = formatter.write(report, args.output)
        if args.xlsx:
            ChecklistWorkbookWriter(args.xlsx).write(report)
    except OSError as e:
        logger.error(f"Cannot write output: {e}")
        return EXIT_ERROR

    if not args.output:
        sys.stdout.write(text)

    if report.has_critical():
        logger.info("Critical violations found")
        return EXIT_VIOLATIONS
    if args.fail_under is not None and report.score < args.fail_under:
        logger.info(f"Score {report.score:.2f} is below {args.fail_under:.2f}")
        return EXIT_VIOLATIONS
    return EXIT_OK


def _init_config(output_config: str, force: bool) -> int:
    """既定値の設定ファイルを生成する。

    Args:
        output_config: 出力設定ファイルパス
        force: 既存ファイルを上書きするかどうか

    Returns:
        終了コード
    """
    setup_logging(level="INFO")

    if Path(output_config).exists() and not force:
        print(f"Error: 設定ファイルは既に存在します: {output_config}（--forceで上書き）", file=sys.stderr)
        return EXIT_ERROR

    try:
        Config().save_yaml(output_config)
    except OSError as e:
        print(f"Error: 設定ファイルを書き込めません: {e}", file=sys.stderr)
        return EXIT_ERROR

    print(f"設定ファイルを生成しました: {output_config}", file=sys.stderr)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())

"""ロギング設定モジュール。

標準出力はレポート専用のため、ログは常に標準エラー出力（と任意のファイル）に出す。
"""

import logging
import sys
from pathlib import Path
from typing import Optional, TextIO

CONSOLE_FORMAT = "%(levelname)s %(name)s: %(message)s"
FILE_FORMAT = "%(asctime)s - %(threadName)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    stream: Optional[TextIO] = None
) -> logging.Logger:
    """ロギング設定をセットアップする。

    Args:
        level: ログレベル（DEBUG, INFO, WARNING, ERROR, CRITICAL）
        log_file: ログファイルへのパス（省略可）
        stream: コンソール出力先（省略時は標準エラー出力）

    Returns:
        ルートロガー
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(stream or sys.stderr)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    root_logger.addHandler(console_handler)

    # ワーカースレッド名付きの詳細ログ
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(log_level)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        root_logger.addHandler(file_handler)

    return root_logger


class ParseProgress:
    """ファイル解析の進捗を集計してログ出力するヘルパークラス。"""

    def __init__(
        self,
        total: int,
        logger: Optional[logging.Logger] = None,
        log_interval: int = 10
    ):
        """進捗を初期化する。

        Args:
            total: 解析対象ファイル数
            logger: 使用するロガー
            log_interval: 進捗ログを出す間隔（ファイル数）
        """
        self.total = total
        self.parsed = 0
        self.failed = 0
        self.logger = logger or logging.getLogger(__name__)
        self.log_interval = log_interval

    @property
    def done(self) -> int:
        return self.parsed + self.failed

    def update(self, path: str, failed: bool = False) -> None:
        """1ファイル分の完了を記録する。

        Args:
            path: 完了したファイルの相対パス
            failed: パースに失敗した場合True
        """
        if failed:
            self.failed += 1
            self.logger.debug(f"Parse failure recorded: {path}")
        else:
            self.parsed += 1

        if self.done % self.log_interval == 0 or self.done == self.total:
            percent = self.done / self.total * 100 if self.total else 100.0
            self.logger.info(f"Progress: {self.done}/{self.total} ({percent:.1f}%) - {path}")

    def complete(self, partial: bool = False) -> None:
        """解析結果のサマリーをログ出力する。

        Args:
            partial: 実行期限で打ち切られた場合True
        """
        skipped = self.total - self.done
        summary = f"Parsing complete: {self.parsed} parsed, {self.failed} failed"
        if partial:
            self.logger.warning(f"{summary}, {skipped} cancelled by run deadline")
        else:
            self.logger.info(summary)

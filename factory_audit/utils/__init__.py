"""ユーティリティモジュール。"""

from .logger import setup_logging, ParseProgress

__all__ = ["setup_logging", "ParseProgress"]

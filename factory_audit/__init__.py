"""Goコードベースのファクトリ/コンストラクタ規約違反を検出する静的解析ツール。"""

__version__ = "0.1.0"

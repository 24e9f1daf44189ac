"""ルール読み込みとExcel出力モジュール。"""

from .excel_writer import ChecklistWorkbookWriter
from .rules_loader import RulesLoader

__all__ = ["ChecklistWorkbookWriter", "RulesLoader"]

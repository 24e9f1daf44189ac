"""ルール違反モデル。"""

from dataclasses import dataclass
from typing import Tuple
from enum import Enum

from .source import NodeKind


class Severity(Enum):
    """違反の重大度。"""
    CRITICAL = "critical"
    WARNING = "warning"
    SUGGESTION = "suggestion"

    @classmethod
    def parse(cls, value) -> "Severity":
        """文字列から重大度をパースする。

        Args:
            value: 重大度の文字列

        Returns:
            Severity列挙値

        Raises:
            ValueError: 未知の重大度の場合
        """
        value_str = str(value).lower().strip()
        for severity in cls:
            if severity.value == value_str:
                return severity
        raise ValueError(f"Unknown severity: {value}")


@dataclass(frozen=True)
class ViolationRule:
    """宣言的な違反ルール。

    fixテンプレートでは {factory}, {target}, {construct}, {marker}
    のプレースホルダーが使える。
    """
    rule_id: str
    severity: Severity
    title: str
    fix: str
    forbidden_kinds: Tuple[NodeKind, ...] = ()
    enabled: bool = True

    def render_fix(self, **values: str) -> str:
        """修正案テンプレートを展開する。"""
        defaults = {"factory": "", "target": "", "construct": "", "marker": ""}
        defaults.update(values)
        return self.fix.format(**defaults)


@dataclass(frozen=True)
class Violation:
    """検出された1件のルール違反。"""
    rule_id: str
    severity: Severity
    path: str
    line: int
    message: str
    fix: str
    function_key: str  # 違反が属するProductionFactory

    def __str__(self) -> str:
        return f"[{self.rule_id}] {self.path}:{self.line}: {self.message}"

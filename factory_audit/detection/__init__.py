"""ファクトリのルール違反検出モジュール。"""

from .catalog import DEFAULT_RULES, default_rules
from .violation_detector import DetectionResult, FactoryScope, ViolationDetector

__all__ = [
    "DEFAULT_RULES",
    "default_rules",
    "DetectionResult",
    "FactoryScope",
    "ViolationDetector",
]

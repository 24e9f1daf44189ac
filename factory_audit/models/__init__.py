"""コンプライアンス解析のデータモデル。"""

from .source import (
    BodyNode,
    FunctionDeclaration,
    LoadResult,
    NodeKind,
    Parameter,
    ParseFailure,
    SourceUnit,
    StructType,
)
from .role import Role
from .violation import Severity, Violation, ViolationRule
from .report import ComplianceReport, FunctionEntry

__all__ = [
    "BodyNode",
    "FunctionDeclaration",
    "LoadResult",
    "NodeKind",
    "Parameter",
    "ParseFailure",
    "SourceUnit",
    "StructType",
    "Role",
    "Severity",
    "Violation",
    "ViolationRule",
    "ComplianceReport",
    "FunctionEntry",
]

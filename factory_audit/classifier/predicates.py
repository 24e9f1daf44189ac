"""役割分類のための述語関数群。

各述語は (関数宣言, 分類コンテキスト) を受け取り真偽値を返す純粋関数。
新しいヒューリスティックは述語を追加してRoleClassifierのルール列に
登録するだけで既存の述語に手を入れずに拡張できる。
"""

from collections import Counter
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from ..analyzer.function_index import FunctionIndex, call_name, type_key
from ..analyzer.source_model_builder import base_type_name
from ..config import Config
from ..models.source import FunctionDeclaration, NodeKind


@dataclass(frozen=True)
class ClassificationContext:
    """分類時に参照する読み取り専用の情報。"""
    config: Config
    index: FunctionIndex


RolePredicate = Callable[[FunctionDeclaration, ClassificationContext], bool]


def matches_factory_name(func: FunctionDeclaration, context: ClassificationContext) -> bool:
    """関数名がプロダクションファクトリの命名規約に一致するか。"""
    suffix = context.config.factory_suffix
    return len(func.name) > len(suffix) and func.name.endswith(suffix)


def is_strict_superset(larger: Sequence[str], smaller: Sequence[str]) -> bool:
    """型名の多重集合としてlargerがsmallerの真の上位集合か。"""
    larger_count = Counter(larger)
    smaller_count = Counter(smaller)
    if any(larger_count[t] < n for t, n in smaller_count.items()):
        return False
    return len(larger) > len(smaller)


def delegated_constructor(
    func: FunctionDeclaration,
    context: ClassificationContext
) -> Optional[FunctionDeclaration]:
    """構造的にファクトリとみなせる場合、その委譲先の関数を返す。

    本体がCallとAssignmentのみで終端のReturnが同じ戻り値型の関数を
    呼び出し、かつその関数のパラメータ型が真の上位集合である場合に限る。

    Args:
        func: 対象の関数宣言
        context: 分類コンテキスト

    Returns:
        委譲先の関数宣言、該当しない場合はNone
    """
    statements = func.top_level()
    if not statements or statements[-1].kind is not NodeKind.RETURN:
        return None
    if any(s.kind not in (NodeKind.CALL, NodeKind.ASSIGNMENT) for s in statements[:-1]):
        return None

    terminal = statements[-1]
    called = {
        call_name(func.nodes[i].target or "")
        for i in terminal.children
        if func.nodes[i].kind is NodeKind.CALL
    }

    for other in context.index.returning(func.return_types):
        if other.key == func.key or other.name not in called:
            continue
        if is_strict_superset(type_key(other.parameter_types), type_key(func.parameter_types)):
            return other
    return None


def is_structural_factory(func: FunctionDeclaration, context: ClassificationContext) -> bool:
    """命名規約なしでも構造的にファクトリの形をしているか。"""
    return delegated_constructor(func, context) is not None


def is_primary_constructor(func: FunctionDeclaration, context: ClassificationContext) -> bool:
    """パラメータを1対1でフィールドに渡して型を構築するだけの関数か。"""
    statements = func.top_level()
    if len(statements) != 1 or statements[0].kind is not NodeKind.RETURN:
        return False
    if not func.return_types:
        return False

    terminal = statements[0]
    if not terminal.args or any(value != "nil" for value in terminal.args[1:]):
        return False
    if len(terminal.children) != 1:
        return False

    composite = func.nodes[terminal.children[0]]
    if composite.kind is not NodeKind.COMPOSITE or composite.children:
        return False

    type_name = base_type_name(composite.target or "")
    if type_name != base_type_name(func.return_types[0]):
        return False

    names = [p.name for p in func.parameters]
    values = [value for _, value in composite.fields]
    if sorted(values) != sorted(names):
        return False

    struct = context.index.struct(type_name)
    if struct is None:
        return True

    keys = [key for key, _ in composite.fields]
    if all(keys):
        return sorted(keys) == sorted(struct.fields)
    # 位置指定の複合リテラル
    return not any(keys) and len(values) == len(struct.fields)


def is_decision_function(func: FunctionDeclaration, context: ClassificationContext) -> bool:
    """判断ロジックを持つ、単体テスト対象のヘルパー関数か。"""
    if not func.name.startswith(context.config.decision_prefix):
        return False
    return func.contains(NodeKind.CONDITIONAL, NodeKind.LOOP)

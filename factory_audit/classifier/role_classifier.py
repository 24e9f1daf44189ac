"""関数宣言の役割分類器。"""

from typing import Dict, Iterable, Optional, Sequence, Tuple
import logging

from ..analyzer.function_index import FunctionIndex
from ..config import Config
from ..models.role import Role
from ..models.source import FunctionDeclaration
from .predicates import (
    ClassificationContext,
    RolePredicate,
    is_decision_function,
    is_primary_constructor,
    is_structural_factory,
    matches_factory_name,
)

logger = logging.getLogger(__name__)


class RoleClassifier:
    """関数宣言に役割を1つだけ割り当てる。

    ルールは順に評価され、最初に一致したものが採用される。
    命名規約（明示的な意図）は構造的な一致より優先する。
    """

    DEFAULT_RULES: Tuple[Tuple[Role, RolePredicate], ...] = (
        (Role.PRODUCTION_FACTORY, matches_factory_name),
        (Role.PRODUCTION_FACTORY, is_structural_factory),
        (Role.PRIMARY_CONSTRUCTOR, is_primary_constructor),
        (Role.DECISION_FUNCTION, is_decision_function),
    )

    def __init__(
        self,
        config: Config,
        index: FunctionIndex,
        rules: Optional[Sequence[Tuple[Role, RolePredicate]]] = None
    ):
        """分類器を初期化する。

        Args:
            config: アプリケーション設定
            index: ファイルセット全体の関数索引
            rules: (役割, 述語) の評価順リスト（省略時は既定ルール）
        """
        self.context = ClassificationContext(config=config, index=index)
        self.rules = tuple(rules) if rules is not None else self.DEFAULT_RULES

    def classify(self, func: FunctionDeclaration) -> Role:
        """単一の関数を分類する。

        Args:
            func: 分類する関数宣言

        Returns:
            割り当てられた役割
        """
        for role, predicate in self.rules:
            if predicate(func, self.context):
                return role
        return Role.UNCLASSIFIED

    def classify_all(self, functions: Iterable[FunctionDeclaration]) -> Dict[str, Role]:
        """複数の関数を分類する。

        Args:
            functions: 分類する関数宣言群

        Returns:
            関数キーから役割へのマッピング
        """
        roles: Dict[str, Role] = {}
        for func in functions:
            role = self.classify(func)
            roles[func.key] = role
            if role is not Role.UNCLASSIFIED:
                logger.debug(f"  {func.qualified_name}: {role.value}")

        counts = {role: 0 for role in Role}
        for role in roles.values():
            counts[role] += 1
        summary = ", ".join(f"{role.value}={count}" for role, count in counts.items())
        logger.info(f"Classified {len(roles)} functions: {summary}")
        return roles

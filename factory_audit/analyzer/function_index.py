"""ファイルセット全体の関数・型の名前解決。"""

from typing import Dict, Iterable, List, Optional, Tuple
import logging

from ..models.source import FunctionDeclaration, SourceUnit, StructType
from .source_model_builder import unqualified_type

logger = logging.getLogger(__name__)


def call_name(target: str) -> str:
    """呼び出し先の式から関数名部分を取り出す。

    ``persistence.NewUserRepository`` は ``NewUserRepository`` になる。

    Args:
        target: 呼び出し先の式テキスト

    Returns:
        関数名
    """
    return target.split("[", 1)[0].rsplit(".", 1)[-1].strip()


def type_key(types: Iterable[str]) -> Tuple[str, ...]:
    """パッケージ修飾を除いた型の並びを比較用のキーにする。"""
    return tuple(unqualified_type(t) for t in types)


class FunctionIndex:
    """解析済みSourceUnitから構築する読み取り専用の索引。

    意味解析は行わず、名前とパッケージ修飾を除いた型文字列の一致のみで解決する。
    """

    def __init__(self, units: Iterable[SourceUnit]):
        """索引を構築する。

        Args:
            units: パース済みのSourceUnit群
        """
        self._functions: List[FunctionDeclaration] = []
        self._by_name: Dict[str, List[FunctionDeclaration]] = {}
        self._by_return: Dict[Tuple[str, ...], List[FunctionDeclaration]] = {}
        self._structs: Dict[str, StructType] = {}

        for unit in sorted(units, key=lambda u: u.path):
            for func in unit.functions:
                self._functions.append(func)
                # メソッドはレシーバ経由でしか呼ばれないため名前解決から除外
                if func.receiver:
                    continue
                self._by_name.setdefault(func.name, []).append(func)
                if func.return_types:
                    self._by_return.setdefault(type_key(func.return_types), []).append(func)
            for struct in unit.structs:
                self._structs.setdefault(struct.name, struct)

        logger.debug(
            f"FunctionIndex built: {len(self._functions)} functions, "
            f"{len(self._structs)} structs"
        )

    @property
    def functions(self) -> List[FunctionDeclaration]:
        """全関数をパス順・ソース順で取得する。"""
        return list(self._functions)

    def lookup(self, target: str) -> List[FunctionDeclaration]:
        """呼び出し先の式にマッチするトップレベル関数を検索する。"""
        return list(self._by_name.get(call_name(target), []))

    def returning(self, return_types: Tuple[str, ...]) -> List[FunctionDeclaration]:
        """同じ戻り値型を宣言するトップレベル関数を検索する。

        ``*services.UserService`` と ``*UserService`` は同じ型とみなす。
        """
        if not return_types:
            return []
        return list(self._by_return.get(type_key(return_types), []))

    def struct(self, name: str) -> Optional[StructType]:
        """構造体宣言を名前で検索する。"""
        return self._structs.get(name)

    def __len__(self) -> int:
        return len(self._functions)

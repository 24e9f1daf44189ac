"""ソースコードの構造モデル。"""

from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple
from enum import Enum


class NodeKind(Enum):
    """関数本体の構文ノード種別。"""
    BLOCK = "Block"
    CALL = "Call"
    CONDITIONAL = "Conditional"
    LOOP = "Loop"
    ASSIGNMENT = "Assignment"
    RETURN = "Return"
    COMPOSITE = "Composite"    # 複合リテラル (&T{...})
    OPERATION = "Operation"    # 二項演算、++/--
    STATEMENT = "Statement"    # その他（go, defer, クロージャなど）


@dataclass(frozen=True)
class BodyNode:
    """関数本体内の1つの構文要素。

    childrenは所有する関数のノード配列へのインデックス。
    """
    kind: NodeKind
    line: int
    children: Tuple[int, ...] = ()
    target: Optional[str] = None  # Call: 呼び出し先, Composite: 型名
    args: Tuple[str, ...] = ()    # Call: 引数, Return: 戻り値, Assignment: 右辺
    lhs: Tuple[str, ...] = ()     # Assignment: 左辺
    variant: Optional[str] = None  # Loop/Conditional の種類、演算子
    fields: Tuple[Tuple[str, str], ...] = ()  # Composite: (キー, 値)


@dataclass(frozen=True)
class Parameter:
    """宣言されたパラメータ。"""
    name: str
    type_name: str

    def __str__(self) -> str:
        return f"{self.name} {self.type_name}".strip()


@dataclass(frozen=True)
class FunctionDeclaration:
    """ソースファイルから抽出した関数宣言。

    本体はインデックスで参照されるノード配列として保持する。
    ルートのBlockは常にインデックス0（本体がない場合は空）。
    """
    name: str
    path: str
    start_line: int
    end_line: int
    parameters: Tuple[Parameter, ...] = ()
    return_types: Tuple[str, ...] = ()
    nodes: Tuple[BodyNode, ...] = ()
    receiver: Optional[str] = None
    leading_comments: Tuple[str, ...] = ()

    @property
    def qualified_name(self) -> str:
        """メソッドの場合は「レシーバ型.名前」を返す。"""
        if self.receiver:
            return f"{self.receiver}.{self.name}"
        return self.name

    @property
    def key(self) -> str:
        """ファイルセット全体で一意な識別子。"""
        return f"{self.path}:{self.start_line}:{self.qualified_name}"

    @property
    def parameter_types(self) -> Tuple[str, ...]:
        return tuple(p.type_name for p in self.parameters)

    @property
    def root(self) -> Optional[BodyNode]:
        """本体のルートBlockを取得する。"""
        return self.nodes[0] if self.nodes else None

    def top_level(self) -> List[BodyNode]:
        """本体直下の文ノードを取得する。"""
        root = self.root
        if root is None:
            return []
        return [self.nodes[i] for i in root.children]

    def walk(self, index: int = 0) -> Iterator[BodyNode]:
        """指定ノード以下を深さ優先（ソース順）で走査する。"""
        if not self.nodes:
            return
        stack = [index]
        while stack:
            node = self.nodes[stack.pop()]
            yield node
            stack.extend(reversed(node.children))

    def contains(self, *kinds: NodeKind) -> bool:
        """本体に指定種別のノードが含まれるかを確認する。"""
        return any(node.kind in kinds for node in self.walk())

    def __str__(self) -> str:
        return f"{self.qualified_name} ({self.path}:{self.start_line}-{self.end_line})"


@dataclass(frozen=True)
class StructType:
    """構造体の型宣言。"""
    name: str
    fields: Tuple[str, ...]
    line: int


@dataclass(frozen=True)
class SourceUnit:
    """1ファイル分の解析結果。"""
    path: str
    byte_length: int
    functions: Tuple[FunctionDeclaration, ...] = ()
    structs: Tuple[StructType, ...] = ()

    def __str__(self) -> str:
        return f"{self.path} ({len(self.functions)} functions)"


@dataclass(frozen=True)
class ParseFailure:
    """解析できなかったファイル。"""
    path: str
    message: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"


@dataclass
class LoadResult:
    """ファイル群の読み込み結果。"""
    units: List[SourceUnit] = field(default_factory=list)
    failures: List[ParseFailure] = field(default_factory=list)
    partial: bool = False

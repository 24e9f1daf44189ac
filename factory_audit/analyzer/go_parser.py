"""tree-sitterを使用したGoソースコード解析のラッパー。"""

from typing import Iterator, List, Optional
import logging
import threading

import tree_sitter_go
from tree_sitter import Language, Node, Parser, Tree

logger = logging.getLogger(__name__)


class GoParserError(Exception):
    """tree-sitterの初期化・パース時のエラー。"""
    pass


class GoParser:
    """tree-sitterのGo文法をラップするクラス。

    Parserはスレッドセーフではないため、ワーカースレッドごとに
    1つのParserを生成して使い回す。
    """

    def __init__(self):
        """Goパーサーを初期化する。"""
        try:
            self._language = Language(tree_sitter_go.language())
        except Exception as e:
            raise GoParserError(
                f"Failed to load tree-sitter Go grammar: {e}. "
                "Please install it with 'pip install tree-sitter-go'."
            )
        self._local = threading.local()
        logger.debug("GoParser initialized")

    def _parser(self) -> Parser:
        """現在のスレッド用のParserを取得する。"""
        parser = getattr(self._local, "parser", None)
        if parser is None:
            parser = Parser(self._language)
            self._local.parser = parser
        return parser

    def parse(self, source: bytes) -> Tree:
        """Goソースコードをパースする。

        Args:
            source: UTF-8エンコードされたソースコード

        Returns:
            tree_sitter.Tree

        Raises:
            GoParserError: パースに失敗した場合
        """
        try:
            return self._parser().parse(source)
        except Exception as e:
            raise GoParserError(f"tree-sitter failed to parse source: {e}")


def node_text(node: Optional[Node]) -> str:
    """ノードのソーステキストを取得する。"""
    if node is None or node.text is None:
        return ""
    return node.text.decode("utf-8", errors="replace")


def node_line(node: Node) -> int:
    """ノードの開始行（1始まり）を取得する。"""
    return node.start_point[0] + 1


def named_children(node: Node) -> List[Node]:
    """コメントを除いた名前付き子ノードを取得する。"""
    return [child for child in node.named_children if child.type != "comment"]


def find_syntax_errors(root: Node) -> Iterator[Node]:
    """ERRORノードおよび欠落ノードをソース順に列挙する。"""
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "ERROR" or node.is_missing:
            yield node
            continue
        if node.has_error:
            stack.extend(reversed(node.children))

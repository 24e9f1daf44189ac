"""tree-sitterを使用したGoソースコード解析モジュール。"""

from .go_parser import GoParser, GoParserError
from .source_model_builder import (
    AnalysisCancelled,
    AnalysisTimeout,
    SourceModelBuilder,
    SourceParseError,
)
from .source_loader import SourceLoader
from .function_index import FunctionIndex, call_name

__all__ = [
    "GoParser",
    "GoParserError",
    "AnalysisCancelled",
    "AnalysisTimeout",
    "SourceModelBuilder",
    "SourceParseError",
    "SourceLoader",
    "FunctionIndex",
    "call_name",
]

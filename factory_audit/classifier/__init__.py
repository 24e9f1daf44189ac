"""関数の役割分類モジュール。"""

from .predicates import ClassificationContext, RolePredicate
from .role_classifier import RoleClassifier

__all__ = [
    "ClassificationContext",
    "RolePredicate",
    "RoleClassifier",
]

"""関数の役割分類モデル。"""

from enum import Enum


class Role(Enum):
    """関数のアーキテクチャ上の役割。"""
    UNCLASSIFIED = "Unclassified"
    PRIMARY_CONSTRUCTOR = "PrimaryConstructor"
    PRODUCTION_FACTORY = "ProductionFactory"
    DECISION_FUNCTION = "DecisionFunction"    # ルール適用除外

    @property
    def is_exempt(self) -> bool:
        """ファクトリルールの適用対象外かどうか。"""
        return self is not Role.PRODUCTION_FACTORY

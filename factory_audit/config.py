"""設定管理モジュール。"""

from dataclasses import dataclass, field
from typing import List, Dict, Optional, Any
from pathlib import Path
import fnmatch
import logging

import yaml

logger = logging.getLogger(__name__)

DEFAULT_SEVERITY_WEIGHTS: Dict[str, float] = {
    "critical": 3.0,
    "warning": 1.0,
    "suggestion": 0.25,
}

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigError(Exception):
    """設定ファイルまたは入力パスのエラー。"""
    pass


@dataclass
class Config:
    """アプリケーション設定。"""

    # 命名規約
    factory_suffix: str = "ForProduction"
    constructor_prefix: str = "New"
    decision_prefix: str = "build"
    coverage_marker_text: str = "coverage:ignore"

    # テストコードの判定
    test_path_glob: str = "*_test.go"
    test_function_prefix: str = "Test"

    # 配線とみなす組み込み関数
    wiring_builtins: List[str] = field(default_factory=lambda: ["make", "new", "append"])

    # スコア計算の重み
    severity_weights: Dict[str, float] = field(
        default_factory=lambda: dict(DEFAULT_SEVERITY_WEIGHTS)
    )

    # 処理設定
    concurrency_limit: int = 4
    per_file_timeout_ms: int = 5000
    exclude_dirs: List[str] = field(
        default_factory=lambda: ["vendor", "testdata", ".git"]
    )

    # ルール上書き設定
    rules: Dict[str, Any] = field(default_factory=dict)
    rules_file: Optional[str] = None

    # ロギング設定
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @classmethod
    def from_yaml(cls, file_path: str) -> "Config":
        """YAMLファイルから設定を読み込む。

        Args:
            file_path: YAML設定ファイルのパス

        Returns:
            Configインスタンス

        Raises:
            ConfigError: ファイルを読めない、またはYAMLとして不正な場合
        """
        try:
            with open(file_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise ConfigError(f"設定ファイルを読み込めません: {file_path}: {e}")
        except yaml.YAMLError as e:
            raise ConfigError(f"設定ファイルのYAMLが不正です: {file_path}: {e}")

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError(f"設定ファイルのトップレベルはマッピングである必要があります: {file_path}")

        config = cls.from_dict(data)

        # ルールファイルは設定ファイルからの相対パスとして解決
        if config.rules_file and not Path(config.rules_file).is_absolute():
            config.rules_file = str(Path(file_path).parent / config.rules_file)

        logger.info(f"Configuration loaded from {file_path}")
        return config

    @classmethod
    def from_dict(cls, data: dict) -> "Config":
        """辞書から設定を作成する。

        Args:
            data: 設定辞書

        Returns:
            Configインスタンス
        """
        config = cls()

        for key, value in data.items():
            if not hasattr(config, key):
                logger.warning(f"Unknown configuration option ignored: {key}")
                continue
            if key == "severity_weights" and isinstance(value, dict):
                weights = dict(DEFAULT_SEVERITY_WEIGHTS)
                weights.update(value)
                value = weights
            setattr(config, key, value)

        return config

    def validate(self) -> List[str]:
        """設定を検証する。

        Returns:
            検証エラーのリスト（有効な場合は空）
        """
        errors = []

        for name in (
            "factory_suffix",
            "constructor_prefix",
            "decision_prefix",
            "coverage_marker_text",
            "test_path_glob",
        ):
            value = getattr(self, name)
            if not isinstance(value, str) or not value:
                errors.append(f"{name}は空でない文字列である必要があります")

        if not isinstance(self.test_function_prefix, str):
            errors.append("test_function_prefixは文字列である必要があります")

        if not isinstance(self.severity_weights, dict):
            errors.append("severity_weightsはマッピングである必要があります")
        else:
            for severity, weight in self.severity_weights.items():
                if severity not in DEFAULT_SEVERITY_WEIGHTS:
                    errors.append(f"未知の重大度です: {severity}")
                elif isinstance(weight, bool) or not isinstance(weight, (int, float)):
                    errors.append(f"severity_weights.{severity}は数値である必要があります")
                elif weight < 0:
                    errors.append(f"severity_weights.{severity}は0以上である必要があります")

        if isinstance(self.concurrency_limit, bool) or not isinstance(self.concurrency_limit, int):
            errors.append("concurrency_limitは整数である必要があります")
        elif self.concurrency_limit < 1:
            errors.append("concurrency_limitは1以上である必要があります")

        if (
            isinstance(self.per_file_timeout_ms, bool)
            or not isinstance(self.per_file_timeout_ms, (int, float))
            or self.per_file_timeout_ms <= 0
        ):
            errors.append("per_file_timeout_msは正の数である必要があります")

        for name in ("wiring_builtins", "exclude_dirs"):
            value = getattr(self, name)
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                errors.append(f"{name}は文字列のリストである必要があります")

        if not isinstance(self.rules, dict):
            errors.append("rulesはマッピングである必要があります")

        if self.rules_file is not None and not Path(str(self.rules_file)).exists():
            errors.append(f"ルールファイルが存在しません: {self.rules_file}")

        if str(self.log_level).upper() not in LOG_LEVELS:
            errors.append(f"未知のログレベルです: {self.log_level}")

        return errors

    def weight(self, severity: str) -> float:
        """重大度の重みを取得する。"""
        return float(self.severity_weights.get(severity, DEFAULT_SEVERITY_WEIGHTS[severity]))

    def is_test_path(self, path: str) -> bool:
        """パスがテストファイルのパターンに一致するかを確認する。"""
        return fnmatch.fnmatch(path, self.test_path_glob)

    def to_dict(self) -> dict:
        """設定を辞書に変換する。

        Returns:
            辞書形式の設定
        """
        data: Dict[str, Any] = {
            "factory_suffix": self.factory_suffix,
            "constructor_prefix": self.constructor_prefix,
            "decision_prefix": self.decision_prefix,
            "coverage_marker_text": self.coverage_marker_text,
            "test_path_glob": self.test_path_glob,
            "test_function_prefix": self.test_function_prefix,
            "wiring_builtins": list(self.wiring_builtins),
            "severity_weights": dict(self.severity_weights),
            "concurrency_limit": self.concurrency_limit,
            "per_file_timeout_ms": self.per_file_timeout_ms,
            "exclude_dirs": list(self.exclude_dirs),
            "rules": dict(self.rules),
            "log_level": self.log_level,
        }
        if self.rules_file:
            data["rules_file"] = self.rules_file
        if self.log_file:
            data["log_file"] = self.log_file
        return data

    def get_source_files(self, root: str) -> List[Path]:
        """解析対象のGoソースファイルを取得する。

        Args:
            root: 解析ルート（ディレクトリまたは単一ファイル）

        Returns:
            ソースファイルパスのリスト（パス順）

        Raises:
            ConfigError: ルートパスが存在しない場合
        """
        path = Path(root)
        if not path.exists():
            raise ConfigError(f"解析対象パスが存在しません: {root}")
        if path.is_file():
            return [path]

        source_files = []
        excluded = set(self.exclude_dirs)
        try:
            for f in path.rglob("*.go"):
                relative = f.relative_to(path)
                if excluded.intersection(relative.parts[:-1]):
                    continue
                if f.is_file():
                    source_files.append(f)
        except OSError as e:
            raise ConfigError(f"解析対象パスを読み込めません: {root}: {e}")

        source_files.sort()
        logger.debug(f"Found {len(source_files)} source files")
        return source_files

    def save_yaml(self, file_path: str) -> None:
        """設定をYAMLファイルに保存。

        Args:
            file_path: 保存先パス
        """
        # 出力先ディレクトリが存在しない場合は作成
        output_path = Path(file_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(file_path, "w", encoding="utf-8") as f:
            yaml.dump(
                self.to_dict(),
                f,
                default_flow_style=False,
                allow_unicode=True,
                sort_keys=False
            )

        logger.info(f"Configuration saved to {file_path}")

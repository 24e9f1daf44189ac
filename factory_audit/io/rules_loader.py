"""Rule set loader: built-in catalog plus configured overrides."""

from dataclasses import replace
from typing import Dict, List, Any
from pathlib import Path
import logging

import yaml

from ..config import Config, ConfigError
from ..detection.catalog import default_rules
from ..models.violation import Severity, ViolationRule

logger = logging.getLogger(__name__)


class RulesLoader:
    """Build the active ViolationRule set from the catalog and configuration."""

    OVERRIDE_KEYS = ("severity", "enabled", "fix")

    def __init__(self):
        """Initialize the rules loader with the built-in catalog."""
        self._rules: Dict[str, ViolationRule] = default_rules()

    def load(self, config: Config) -> Dict[str, ViolationRule]:
        """Load rules based on configuration.

        Overrides from ``rules_file`` are applied first, then inline
        ``rules`` from the configuration document.

        Args:
            config: Analyzer configuration

        Returns:
            Dictionary mapping rule ID to ViolationRule, in evaluation order

        Raises:
            ConfigError: If an override is malformed or names an unknown rule
        """
        rules = default_rules()

        if config.rules_file:
            overrides = self.load_from_yaml(config.rules_file)
            rules = self.apply_overrides(rules, overrides, config.rules_file)

        if config.rules:
            rules = self.apply_overrides(rules, config.rules, "configuration")

        self._rules = rules
        disabled = [r.rule_id for r in rules.values() if not r.enabled]
        if disabled:
            logger.info(f"Disabled rules: {', '.join(disabled)}")
        return rules

    def load_from_yaml(self, path: str) -> Dict[str, Any]:
        """Load rule overrides from a YAML file.

        Expected YAML format:
        ```yaml
        rules:
          FAC004:
            severity: suggestion
          FAC006:
            enabled: false
        ```

        Args:
            path: Path to the YAML file

        Returns:
            Mapping of rule ID to override values

        Raises:
            ConfigError: If the file cannot be read or is malformed
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise ConfigError(f"Cannot read rules file {path}: {e}")
        except yaml.YAMLError as e:
            raise ConfigError(f"Malformed rules file {path}: {e}")

        if data is not None and not isinstance(data, dict):
            raise ConfigError(f"Rules file {path} must contain a mapping")

        if not data or "rules" not in data:
            logger.warning(f"No 'rules' key found in YAML: {path}")
            return {}

        if not isinstance(data["rules"], dict):
            raise ConfigError(f"'rules' must be a mapping in {path}")

        logger.info(f"Loaded {len(data['rules'])} rule overrides from YAML: {Path(path).name}")
        return data["rules"]

    def apply_overrides(
        self,
        rules: Dict[str, ViolationRule],
        overrides: Dict[str, Any],
        source: str
    ) -> Dict[str, ViolationRule]:
        """Apply override values to a rule set.

        Args:
            rules: Rules to start from
            overrides: Mapping of rule ID to override values
            source: Where the overrides came from (for error messages)

        Returns:
            New dictionary with the overrides applied
        """
        if not isinstance(overrides, dict):
            raise ConfigError(f"Rule overrides in {source} must be a mapping")

        result = dict(rules)
        for raw_id, values in overrides.items():
            rule_id = self._normalize_rule_id(raw_id)
            if rule_id not in result:
                raise ConfigError(f"Unknown rule id in {source}: {raw_id}")
            if not isinstance(values, dict):
                raise ConfigError(f"Override for {rule_id} in {source} must be a mapping")

            unknown = set(values) - set(self.OVERRIDE_KEYS)
            if unknown:
                raise ConfigError(
                    f"Unknown keys for {rule_id} in {source}: {', '.join(sorted(unknown))}"
                )

            changes: Dict[str, Any] = {}
            if "severity" in values:
                try:
                    changes["severity"] = Severity.parse(values["severity"])
                except ValueError as e:
                    raise ConfigError(f"{rule_id} in {source}: {e}")
            if "enabled" in values:
                if not isinstance(values["enabled"], bool):
                    raise ConfigError(f"{rule_id}.enabled in {source} must be true or false")
                changes["enabled"] = values["enabled"]
            if "fix" in values:
                if not isinstance(values["fix"], str) or not values["fix"].strip():
                    raise ConfigError(f"{rule_id}.fix in {source} must be a non-empty string")
                try:
                    values["fix"].format(factory="", target="", construct="", marker="")
                except (KeyError, IndexError, ValueError) as e:
                    raise ConfigError(f"{rule_id}.fix in {source} has an invalid placeholder: {e}")
                changes["fix"] = values["fix"]

            result[rule_id] = replace(result[rule_id], **changes)

        return result

    def _normalize_rule_id(self, rule_id: Any) -> str:
        """Normalize a rule ID for lookup.

        Args:
            rule_id: Original rule ID

        Returns:
            Normalized rule ID
        """
        return str(rule_id).strip().upper()

    @property
    def active_rules(self) -> List[ViolationRule]:
        """Get enabled rules in evaluation order."""
        return [rule for rule in self._rules.values() if rule.enabled]

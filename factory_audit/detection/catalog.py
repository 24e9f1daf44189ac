"""Built-in rule catalog for production factories."""

from typing import Dict, Tuple

from ..models.source import NodeKind
from ..models.violation import Severity, ViolationRule

BUSINESS_LOGIC = "FAC001"
NON_WIRING_CALL = "FAC002"
MISSING_PRIMARY_CONSTRUCTOR = "FAC003"
MISSING_COVERAGE_MARKER = "FAC004"
TEST_USES_FACTORY = "FAC005"
COMPUTATION = "FAC006"

# Evaluation order is the catalog order.
DEFAULT_RULES: Tuple[ViolationRule, ...] = (
    ViolationRule(
        rule_id=BUSINESS_LOGIC,
        severity=Severity.CRITICAL,
        title="business logic in factory",
        fix=(
            "Move the {construct} out of {factory}: compute the value in the "
            "config layer or a build* helper and pass the result in."
        ),
        forbidden_kinds=(NodeKind.CONDITIONAL, NodeKind.LOOP),
    ),
    ViolationRule(
        rule_id=NON_WIRING_CALL,
        severity=Severity.CRITICAL,
        title="non-wiring call",
        fix=(
            "Remove the call to {target} from {factory}; factories may only "
            "call constructors and other factories."
        ),
        forbidden_kinds=(NodeKind.CALL,),
    ),
    ViolationRule(
        rule_id=MISSING_PRIMARY_CONSTRUCTOR,
        severity=Severity.CRITICAL,
        title="missing primary constructor",
        fix=(
            "Add a primary constructor that takes every dependency of "
            "{target} as a parameter and have {factory} call it."
        ),
    ),
    ViolationRule(
        rule_id=MISSING_COVERAGE_MARKER,
        severity=Severity.WARNING,
        title="missing coverage-exclusion marker",
        fix="Add a '// {marker}' comment directly above {factory}.",
    ),
    ViolationRule(
        rule_id=TEST_USES_FACTORY,
        severity=Severity.CRITICAL,
        title="test uses production factory",
        fix=(
            "Build the object under test with the primary constructor and "
            "mocks instead of {factory}."
        ),
        forbidden_kinds=(NodeKind.CALL,),
    ),
    ViolationRule(
        rule_id=COMPUTATION,
        severity=Severity.SUGGESTION,
        title="computation in factory",
        fix=(
            "Pre-compute '{construct}' in the config layer and pass the value "
            "into {factory}."
        ),
        forbidden_kinds=(NodeKind.OPERATION, NodeKind.ASSIGNMENT),
    ),
)


def default_rules() -> Dict[str, ViolationRule]:
    """Return the built-in rules keyed by rule id, in evaluation order."""
    return {rule.rule_id: rule for rule in DEFAULT_RULES}

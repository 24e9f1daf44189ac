"""プロダクションファクトリのルール違反検出。"""

from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Optional, Tuple
import logging

from ..analyzer.function_index import FunctionIndex, call_name, type_key
from ..config import Config
from ..models.role import Role
from ..models.source import BodyNode, FunctionDeclaration, NodeKind
from ..models.violation import Violation, ViolationRule
from .catalog import (
    BUSINESS_LOGIC,
    COMPUTATION,
    MISSING_COVERAGE_MARKER,
    MISSING_PRIMARY_CONSTRUCTOR,
    NON_WIRING_CALL,
    TEST_USES_FACTORY,
)

logger = logging.getLogger(__name__)

# 呼び出してよい役割（ファクトリの合成も配線とみなす）
WIRING_ROLES = {
    Role.PRIMARY_CONSTRUCTOR,
    Role.PRODUCTION_FACTORY,
    Role.DECISION_FUNCTION,
}

ARITHMETIC_OPERATORS = {
    "+", "-", "*", "/", "%", "<<", ">>", "&", "|", "^", "&^", "++", "--",
}

COMPOUND_ASSIGNMENTS = {op + "=" for op in ARITHMETIC_OPERATORS if op not in ("++", "--")}

CONSTRUCT_NAMES = {
    "if": "if statement",
    "switch": "switch statement",
    "type_switch": "type switch",
    "select": "select statement",
    "for": "for loop",
    "range": "range loop",
    "while": "conditional loop",
    "infinite": "infinite loop",
}

# (呼び出し元の関数, 呼び出しノード)
CallSite = Tuple[FunctionDeclaration, BodyNode]


@dataclass
class FactoryScope:
    """1つのファクトリを検査するための情報。"""
    factory: FunctionDeclaration
    constructor: Optional[FunctionDeclaration] = None
    test_call_sites: List[CallSite] = field(default_factory=list)


@dataclass
class DetectionResult:
    """検出結果。"""
    violations: List[Violation] = field(default_factory=list)
    # ファクトリのキー → 対応するプライマリコンストラクタ名
    primary_constructors: Dict[str, Optional[str]] = field(default_factory=dict)


class ViolationDetector:
    """ProductionFactoryに分類された関数をルールセットで検査する。

    同じファクトリの違反はルールの評価順、次にソース順で出力する。
    """

    def __init__(
        self,
        config: Config,
        index: FunctionIndex,
        roles: Dict[str, Role],
        rules: Dict[str, ViolationRule]
    ):
        """検出器を初期化する。

        Args:
            config: アプリケーション設定
            index: ファイルセット全体の関数索引
            roles: 関数キーから役割へのマッピング
            rules: ルールIDからルールへのマッピング（評価順）
        """
        self.config = config
        self.index = index
        self.roles = roles
        self.rules = rules

        self._checks: Dict[str, Callable[[ViolationRule, FactoryScope], List[Violation]]] = {
            BUSINESS_LOGIC: self._check_business_logic,
            NON_WIRING_CALL: self._check_non_wiring_calls,
            MISSING_PRIMARY_CONSTRUCTOR: self._check_primary_constructor,
            MISSING_COVERAGE_MARKER: self._check_coverage_marker,
            TEST_USES_FACTORY: self._check_test_usage,
            COMPUTATION: self._check_computation,
        }

    def detect(self) -> DetectionResult:
        """全ファクトリを検査する。

        Returns:
            違反リストと対応コンストラクタを含むDetectionResult
        """
        result = DetectionResult()
        factories = [
            func for func in self.index.functions
            if not self.roles.get(func.key, Role.UNCLASSIFIED).is_exempt
        ]
        call_sites = self._test_call_sites()

        for factory in factories:
            scope = FactoryScope(
                factory=factory,
                constructor=self.find_primary_constructor(factory),
                test_call_sites=call_sites.get(factory.key, [])
            )
            result.primary_constructors[factory.key] = (
                scope.constructor.qualified_name if scope.constructor else None
            )
            result.violations.extend(self.detect_factory(scope))

        logger.info(
            f"Checked {len(factories)} production factories: "
            f"{len(result.violations)} violations"
        )
        return result

    def detect_factory(self, scope: FactoryScope) -> List[Violation]:
        """1つのファクトリを全ルールで検査する。

        Args:
            scope: 検査対象のファクトリ情報

        Returns:
            ルール評価順の違反リスト
        """
        violations: List[Violation] = []
        for rule in self.rules.values():
            if not rule.enabled:
                continue
            check = self._checks.get(rule.rule_id)
            if check is None:
                logger.warning(f"No check registered for rule {rule.rule_id}")
                continue
            violations.extend(check(rule, scope))
        return violations

    def find_primary_constructor(
        self,
        factory: FunctionDeclaration
    ) -> Optional[FunctionDeclaration]:
        """ファクトリと同じ型を返すプライマリコンストラクタを検索する。

        戻り値の先頭の型（生成物）が一致すればよい。``(*T, error)`` を返す
        ファクトリは ``*T`` を返すコンストラクタと対応する。
        ファクトリが実際に呼び出しているものを優先する。
        """
        if not factory.return_types:
            return None
        product = type_key(factory.return_types[:1])
        candidates = [
            func for func in self.index.functions
            if not func.receiver
            and type_key(func.return_types[:1]) == product
            and self.roles.get(func.key) is Role.PRIMARY_CONSTRUCTOR
        ]
        if not candidates:
            return None

        called = {
            call_name(node.target or "")
            for node in factory.walk()
            if node.kind is NodeKind.CALL
        }
        candidates.sort(key=lambda f: (f.name not in called, f.path, f.start_line))
        return candidates[0]

    # 走査

    def _walk(
        self,
        factory: FunctionDeclaration,
        stop_kinds: Tuple[NodeKind, ...] = ()
    ) -> Iterator[BodyNode]:
        """ルートBlockを除いて深さ優先で走査する。

        DecisionFunctionの呼び出しの引数には降りない。
        stop_kindsに含まれるノードは返すがその内側には降りない。
        """
        if factory.root is None:
            return
        stack = list(reversed(factory.root.children))
        while stack:
            node = factory.nodes[stack.pop()]
            yield node
            if node.kind in stop_kinds:
                continue
            if node.kind is NodeKind.CALL and self._resolves_to(node, Role.DECISION_FUNCTION):
                continue
            stack.extend(reversed(node.children))

    def _resolved_roles(self, node: BodyNode) -> List[Role]:
        return [
            self.roles.get(func.key, Role.UNCLASSIFIED)
            for func in self.index.lookup(node.target or "")
        ]

    def _resolves_to(self, node: BodyNode, role: Role) -> bool:
        return role in self._resolved_roles(node)

    def _violation(
        self,
        rule: ViolationRule,
        factory: FunctionDeclaration,
        line: int,
        detail: str,
        path: Optional[str] = None,
        **fix_values: str
    ) -> Violation:
        return Violation(
            rule_id=rule.rule_id,
            severity=rule.severity,
            path=path or factory.path,
            line=line,
            message=f"{rule.title}: {detail}",
            fix=rule.render_fix(
                factory=factory.qualified_name,
                marker=self.config.coverage_marker_text,
                **fix_values
            ),
            function_key=factory.key
        )

    # ルールごとの検査

    def _check_business_logic(self, rule: ViolationRule, scope: FactoryScope) -> List[Violation]:
        factory = scope.factory
        violations = []
        for node in self._walk(factory, stop_kinds=rule.forbidden_kinds):
            if node.kind not in rule.forbidden_kinds:
                continue
            construct = CONSTRUCT_NAMES.get(node.variant or "", node.kind.value.lower())
            violations.append(self._violation(
                rule,
                factory,
                node.line,
                f"{construct} in {factory.qualified_name}",
                construct=construct
            ))
        return violations

    def _check_non_wiring_calls(self, rule: ViolationRule, scope: FactoryScope) -> List[Violation]:
        factory = scope.factory
        violations = []
        for node in self._walk(factory):
            if node.kind is not NodeKind.CALL or self._is_wiring_call(factory, node):
                continue
            violations.append(self._violation(
                rule,
                factory,
                node.line,
                f"call to '{node.target}' in {factory.qualified_name}",
                target=node.target or ""
            ))
        return violations

    def _is_wiring_call(self, factory: FunctionDeclaration, node: BodyNode) -> bool:
        """コンストラクタ呼び出しなど、配線とみなせる呼び出しか。"""
        target = node.target or ""
        name = call_name(target)
        if name in self.config.wiring_builtins:
            return True

        candidates = self.index.lookup(target)
        if any(self.roles.get(c.key) in WIRING_ROLES for c in candidates):
            return True
        if name.startswith(self.config.constructor_prefix):
            return True

        # 共有依存（ファクトリのパラメータ型）を返すヘルパーは許可
        parameter_types = set(type_key(factory.parameter_types))
        return any(
            c.return_types and set(type_key(c.return_types)) <= parameter_types
            for c in candidates
        )

    def _check_primary_constructor(self, rule: ViolationRule, scope: FactoryScope) -> List[Violation]:
        if scope.constructor is not None:
            return []
        factory = scope.factory
        returned = ", ".join(factory.return_types) or "its product"
        return [self._violation(
            rule,
            factory,
            factory.start_line,
            f"no primary constructor returns {returned} for {factory.qualified_name}",
            target=returned
        )]

    def _check_coverage_marker(self, rule: ViolationRule, scope: FactoryScope) -> List[Violation]:
        factory = scope.factory
        marker = self.config.coverage_marker_text
        if any(marker in comment for comment in factory.leading_comments):
            return []
        return [self._violation(
            rule,
            factory,
            factory.start_line,
            f"'{marker}' not found above {factory.qualified_name}"
        )]

    def _check_test_usage(self, rule: ViolationRule, scope: FactoryScope) -> List[Violation]:
        factory = scope.factory
        violations = []
        for caller, node in sorted(scope.test_call_sites, key=lambda s: (s[0].path, s[1].line)):
            violations.append(self._violation(
                rule,
                factory,
                node.line,
                f"{caller.qualified_name} calls {factory.qualified_name}",
                path=caller.path,
                target=node.target or ""
            ))
        return violations

    def _check_computation(self, rule: ViolationRule, scope: FactoryScope) -> List[Violation]:
        factory = scope.factory
        business_logic = self.rules.get(BUSINESS_LOGIC)
        # 分岐・ループの内側は業務ロジック違反として報告済み
        stop_kinds = business_logic.forbidden_kinds if business_logic and business_logic.enabled else ()

        violations = []
        for node in self._walk(factory, stop_kinds=stop_kinds):
            if node.kind not in rule.forbidden_kinds:
                continue
            if node.kind is NodeKind.OPERATION and node.variant in ARITHMETIC_OPERATORS:
                construct = f"{node.variant} operation"
            elif node.kind is NodeKind.ASSIGNMENT and node.variant in COMPOUND_ASSIGNMENTS:
                construct = f"{', '.join(node.lhs)} {node.variant} {', '.join(node.args)}"
            else:
                continue
            violations.append(self._violation(
                rule,
                factory,
                node.line,
                f"{construct} in {factory.qualified_name}",
                construct=construct
            ))
        return violations

    def _test_call_sites(self) -> Dict[str, List[CallSite]]:
        """テスト関数からファクトリへの直接呼び出しを収集する。"""
        sites: Dict[str, List[CallSite]] = {}
        for func in self.index.functions:
            if not self.is_test_function(func):
                continue
            for node in func.walk():
                if node.kind is not NodeKind.CALL:
                    continue
                for candidate in self.index.lookup(node.target or ""):
                    if candidate.key == func.key:
                        continue
                    if self.roles.get(candidate.key) is Role.PRODUCTION_FACTORY:
                        sites.setdefault(candidate.key, []).append((func, node))
        return sites

    def is_test_function(self, func: FunctionDeclaration) -> bool:
        """テストファイル内の関数、またはtestingパラメータを持つTest関数か。"""
        if self.config.is_test_path(func.path):
            return True
        prefix = self.config.test_function_prefix
        if not prefix or not func.name.startswith(prefix):
            return False
        return any(
            p.type_name.lstrip("*").startswith("testing.")
            for p in func.parameters
        )

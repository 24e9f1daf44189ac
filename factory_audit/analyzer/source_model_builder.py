"""Build the structural source model of Go files from tree-sitter trees."""

from typing import List, Optional, Set, Tuple
import logging
import re
import threading
import time

from tree_sitter import Node

from ..models.source import (
    BodyNode,
    FunctionDeclaration,
    NodeKind,
    Parameter,
    SourceUnit,
    StructType,
)
from .go_parser import (
    GoParser,
    GoParserError,
    find_syntax_errors,
    named_children,
    node_line,
    node_text,
)

logger = logging.getLogger(__name__)


class SourceParseError(Exception):
    """Raised when a source file cannot be turned into a SourceUnit."""
    pass


class AnalysisTimeout(SourceParseError):
    """Raised when a file exceeds its per-file analysis budget."""
    pass


class AnalysisCancelled(Exception):
    """Raised when the run deadline cancels in-flight work."""
    pass


def clean_type(text: str) -> str:
    """Collapse whitespace inside a type expression."""
    return " ".join(text.split())


def base_type_name(type_name: str) -> str:
    """Strip pointers, package qualifiers and type arguments.

    ``*persistence.Repo[T]`` becomes ``Repo``.
    """
    name = type_name.strip().lstrip("*&")
    name = name.split("[", 1)[0]
    return name.rsplit(".", 1)[-1]


_QUALIFIER = re.compile(r"\b[A-Za-z_]\w*\.(?=[A-Za-z_])")


def unqualified_type(type_name: str) -> str:
    """Drop package qualifiers but keep pointer, slice and map structure.

    ``*services.UserService`` becomes ``*UserService`` and
    ``map[string]*store.Item`` becomes ``map[string]*Item``.
    """
    return _QUALIFIER.sub("", clean_type(type_name))


class _Budget:
    """Cooperative deadline and cancellation checks for one file."""

    CHECK_INTERVAL = 64

    def __init__(
        self,
        path: str,
        deadline: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None
    ):
        self.path = path
        self.deadline = deadline
        self.cancel_event = cancel_event
        self._count = 0

    def tick(self) -> None:
        self._count += 1
        if self._count % self.CHECK_INTERVAL != 1:
            return
        self.check()

    def check(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise AnalysisCancelled(self.path)
        if self.deadline is not None and time.monotonic() > self.deadline:
            raise AnalysisTimeout(f"analysis of {self.path} exceeded the per-file timeout")


class _BodyBuilder:
    """Translate one function body into an index-addressed node arena."""

    SWITCH_VARIANTS = {
        "expression_switch_statement": "switch",
        "type_switch_statement": "type_switch",
        "select_statement": "select",
    }

    CASE_TYPES: Set[str] = {
        "expression_case",
        "default_case",
        "type_case",
        "communication_case",
    }

    SIMPLE_STATEMENT_TYPES: Set[str] = {
        "expression_statement",
        "short_var_declaration",
        "assignment_statement",
        "inc_statement",
        "dec_statement",
        "send_statement",
    }

    def __init__(self, budget: _Budget):
        self._budget = budget
        self._nodes: List[Optional[BodyNode]] = []

    def build(self, block: Node) -> Tuple[BodyNode, ...]:
        self._block(block)
        return tuple(self._nodes)

    def _reserve(self) -> int:
        self._nodes.append(None)
        return len(self._nodes) - 1

    def _emit(
        self,
        index: int,
        kind: NodeKind,
        node: Node,
        children: List[int] = (),
        **attrs
    ) -> int:
        self._nodes[index] = BodyNode(
            kind=kind,
            line=node_line(node),
            children=tuple(children),
            **attrs
        )
        return index

    # Statements

    def _statements(self, node: Node) -> List[Node]:
        """Named statement children, with statement_list wrappers flattened."""
        result = []
        for child in named_children(node):
            if child.type == "statement_list":
                result.extend(self._statements(child))
            else:
                result.append(child)
        return result

    def _block(self, block: Node, variant: Optional[str] = None) -> int:
        index = self._reserve()
        children: List[int] = []
        for statement in self._statements(block):
            children.extend(self._statement(statement))
        return self._emit(index, NodeKind.BLOCK, block, children, variant=variant)

    def _statement(self, node: Node) -> List[int]:
        self._budget.tick()
        node_type = node.type

        if node_type == "block":
            return [self._block(node)]
        if node_type == "expression_statement":
            result: List[int] = []
            for child in named_children(node):
                result.extend(self._expression(child))
            return result
        if node_type in ("short_var_declaration", "assignment_statement"):
            return [self._assignment(node)]
        if node_type in ("var_declaration", "const_declaration"):
            return self._declaration(node)
        if node_type == "return_statement":
            return [self._return(node)]
        if node_type == "if_statement":
            return [self._if(node)]
        if node_type in self.SWITCH_VARIANTS:
            return [self._switch(node)]
        if node_type == "for_statement":
            return [self._for(node)]
        if node_type == "labeled_statement":
            result = []
            for child in named_children(node):
                if child.type != "label_name":
                    result.extend(self._statement(child))
            return result
        if node_type in ("inc_statement", "dec_statement"):
            index = self._reserve()
            children: List[int] = []
            for child in named_children(node):
                children.extend(self._expression(child))
            operator = "++" if node_type == "inc_statement" else "--"
            return [self._emit(index, NodeKind.OPERATION, node, children, variant=operator)]
        if node_type in ("type_declaration", "empty_statement"):
            return []

        # go, defer, send, break, continue, goto, fallthrough ...
        index = self._reserve()
        children = []
        for child in named_children(node):
            children.extend(self._expression(child))
        variant = node_type[:-len("_statement")] if node_type.endswith("_statement") else node_type
        return [self._emit(index, NodeKind.STATEMENT, node, children, variant=variant)]

    def _assignment(self, node: Node) -> int:
        index = self._reserve()
        left = node.child_by_field_name("left")
        right = node.child_by_field_name("right")
        children = self._expression(right) if right is not None else []
        if node.type == "short_var_declaration":
            operator = ":="
        else:
            operator = _operator(node) or "="
        return self._emit(
            index,
            NodeKind.ASSIGNMENT,
            node,
            children,
            lhs=_texts(left),
            args=_texts(right),
            variant=operator
        )

    def _declaration(self, node: Node) -> List[int]:
        variant = "var" if node.type == "var_declaration" else "const"
        result = []
        for spec in _specs(node):
            index = self._reserve()
            value = spec.child_by_field_name("value")
            children = self._expression(value) if value is not None else []
            names = tuple(node_text(n) for n in spec.children_by_field_name("name"))
            result.append(self._emit(
                index,
                NodeKind.ASSIGNMENT,
                spec,
                children,
                lhs=names,
                args=_texts(value),
                variant=variant
            ))
        return result

    def _return(self, node: Node) -> int:
        index = self._reserve()
        values: List[Node] = []
        for child in named_children(node):
            if child.type == "expression_list":
                values.extend(named_children(child))
            else:
                values.append(child)
        children: List[int] = []
        for value in values:
            children.extend(self._expression(value))
        return self._emit(
            index,
            NodeKind.RETURN,
            node,
            children,
            args=tuple(clean_type(node_text(v)) for v in values)
        )

    def _if(self, node: Node) -> int:
        index = self._reserve()
        children: List[int] = []

        initializer = node.child_by_field_name("initializer")
        if initializer is not None:
            children.extend(self._statement(initializer))
        condition = node.child_by_field_name("condition")
        if condition is not None:
            children.extend(self._expression(condition))
        consequence = node.child_by_field_name("consequence")
        if consequence is not None:
            children.append(self._block(consequence, variant="then"))

        alternative = node.child_by_field_name("alternative")
        if alternative is not None:
            if alternative.type == "if_statement":
                children.append(self._if(alternative))
            else:
                children.append(self._block(alternative, variant="else"))

        return self._emit(index, NodeKind.CONDITIONAL, node, children, variant="if")

    def _switch(self, node: Node) -> int:
        index = self._reserve()
        children: List[int] = []
        for child in named_children(node):
            if child.type in self.CASE_TYPES:
                children.append(self._case(child))
            elif child.type in self.SIMPLE_STATEMENT_TYPES:
                children.extend(self._statement(child))
            else:
                children.extend(self._expression(child))
        return self._emit(
            index,
            NodeKind.CONDITIONAL,
            node,
            children,
            variant=self.SWITCH_VARIANTS[node.type]
        )

    def _case(self, clause: Node) -> int:
        index = self._reserve()
        values = {n.id for n in clause.children_by_field_name("value")}
        types = {n.id for n in clause.children_by_field_name("type")}

        children: List[int] = []
        for child in self._statements(clause):
            if child.id in types:
                continue
            if child.id in values:
                children.extend(self._expression(child))
            else:
                children.extend(self._statement(child))

        variant = "default" if clause.type == "default_case" else "case"
        return self._emit(index, NodeKind.BLOCK, clause, children, variant=variant)

    def _for(self, node: Node) -> int:
        index = self._reserve()
        body = node.child_by_field_name("body")
        variant = "infinite"
        children: List[int] = []

        for child in named_children(node):
            if body is not None and child.id == body.id:
                continue
            if child.type == "range_clause":
                variant = "range"
                right = child.child_by_field_name("right")
                if right is not None:
                    children.extend(self._expression(right))
            elif child.type == "for_clause":
                variant = "for"
                for part in named_children(child):
                    if part.type in self.SIMPLE_STATEMENT_TYPES:
                        children.extend(self._statement(part))
                    else:
                        children.extend(self._expression(part))
            else:
                variant = "while"
                children.extend(self._expression(child))

        if body is not None:
            children.append(self._block(body))
        return self._emit(index, NodeKind.LOOP, node, children, variant=variant)

    # Expressions

    def _expression(self, node: Optional[Node]) -> List[int]:
        """Return the structural nodes found inside an expression."""
        if node is None:
            return []
        self._budget.tick()
        node_type = node.type

        if node_type == "call_expression":
            return [self._call(node)]
        if node_type == "composite_literal":
            return [self._composite(node)]
        if node_type == "func_literal":
            index = self._reserve()
            body = node.child_by_field_name("body")
            children = [self._block(body)] if body is not None else []
            return [self._emit(index, NodeKind.STATEMENT, node, children, variant="func_literal")]
        if node_type == "binary_expression":
            index = self._reserve()
            children = self._expression(node.child_by_field_name("left"))
            children += self._expression(node.child_by_field_name("right"))
            return [self._emit(index, NodeKind.OPERATION, node, children, variant=_operator(node))]

        result: List[int] = []
        for child in named_children(node):
            result.extend(self._expression(child))
        return result

    def _call(self, node: Node) -> int:
        index = self._reserve()
        function = node.child_by_field_name("function")
        arguments = node.child_by_field_name("arguments")

        children: List[int] = []
        if function is not None and function.type != "identifier":
            children.extend(self._expression(function))

        args: List[str] = []
        if arguments is not None:
            for argument in named_children(arguments):
                args.append(clean_type(node_text(argument)))
                children.extend(self._expression(argument))

        return self._emit(
            index,
            NodeKind.CALL,
            node,
            children,
            target=clean_type(node_text(function)),
            args=tuple(args)
        )

    def _composite(self, node: Node) -> int:
        index = self._reserve()
        type_node = node.child_by_field_name("type")
        body = node.child_by_field_name("body")

        fields: List[Tuple[str, str]] = []
        children: List[int] = []
        for element in named_children(body) if body is not None else []:
            if element.type == "keyed_element":
                parts = named_children(element)
                key = node_text(_unwrap(parts[0])) if parts else ""
                value = _unwrap(parts[-1]) if len(parts) > 1 else None
            else:
                key = ""
                value = _unwrap(element)
            fields.append((key, clean_type(node_text(value))))
            children.extend(self._expression(value))

        return self._emit(
            index,
            NodeKind.COMPOSITE,
            node,
            children,
            target=clean_type(node_text(type_node)),
            fields=tuple(fields)
        )


def _unwrap(node: Node) -> Node:
    while node.type == "literal_element":
        inner = named_children(node)
        if not inner:
            break
        node = inner[0]
    return node


def _texts(node: Optional[Node]) -> Tuple[str, ...]:
    if node is None:
        return ()
    if node.type == "expression_list":
        return tuple(clean_type(node_text(c)) for c in named_children(node))
    return (clean_type(node_text(node)),)


def _operator(node: Node) -> Optional[str]:
    operator = node.child_by_field_name("operator")
    if operator is not None:
        return operator.type
    for child in node.children:
        if not child.is_named:
            return child.type
    return None


def _specs(node: Node) -> List[Node]:
    specs = []
    for child in named_children(node):
        if child.type in ("var_spec", "const_spec"):
            specs.append(child)
        elif child.type in ("var_spec_list", "const_spec_list"):
            specs.extend(_specs(child))
    return specs


class SourceModelBuilder:
    """Parse Go source files into SourceUnit models."""

    FUNCTION_TYPES: Set[str] = {
        "function_declaration",
        "method_declaration",
    }

    def __init__(self, parser: Optional[GoParser] = None):
        """Initialize the builder.

        Args:
            parser: GoParser instance (created when omitted)
        """
        self.parser = parser or GoParser()

    def build(
        self,
        path: str,
        content: bytes,
        deadline: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None
    ) -> SourceUnit:
        """Build the source model of one file.

        Args:
            path: Path recorded in the model (relative to the analyzed root)
            content: Raw file content
            deadline: time.monotonic() value after which the file times out
            cancel_event: Event set when the whole run is cancelled

        Returns:
            SourceUnit for the file

        Raises:
            SourceParseError: If the file cannot be decoded or parsed
            AnalysisTimeout: If the per-file deadline is exceeded
            AnalysisCancelled: If the run is cancelled
        """
        budget = _Budget(path, deadline, cancel_event)
        budget.check()

        try:
            content.decode("utf-8")
        except UnicodeDecodeError as e:
            raise SourceParseError(f"{path} is not valid UTF-8: {e.reason}")

        try:
            tree = self.parser.parse(content)
        except GoParserError as e:
            raise SourceParseError(str(e))

        root = tree.root_node
        if root.has_error:
            first = next(find_syntax_errors(root), None)
            line = node_line(first) if first is not None else node_line(root)
            raise SourceParseError(f"syntax error at line {line}")

        try:
            unit = self._build_unit(path, root, len(content), budget)
        except RecursionError:
            raise SourceParseError(f"body nesting too deep in {path}")

        logger.debug(f"Built {unit}")
        return unit

    def build_string(self, path: str, source_code: str) -> SourceUnit:
        """Build the source model from a string."""
        return self.build(path, source_code.encode("utf-8"))

    def _build_unit(
        self,
        path: str,
        root: Node,
        byte_length: int,
        budget: _Budget
    ) -> SourceUnit:
        functions: List[FunctionDeclaration] = []
        structs: List[StructType] = []
        pending: List[Node] = []

        for child in root.named_children:
            if child.type == "comment":
                if pending and pending[-1].end_point[0] + 1 < child.start_point[0]:
                    pending = []
                pending.append(child)
                continue

            leading = _leading_comments(pending, child)
            pending = []

            if child.type in self.FUNCTION_TYPES:
                functions.append(self._function(path, child, leading, budget))
            elif child.type == "type_declaration":
                structs.extend(self._structs(child))

        return SourceUnit(
            path=path,
            byte_length=byte_length,
            functions=tuple(functions),
            structs=tuple(structs)
        )

    def _function(
        self,
        path: str,
        node: Node,
        leading: Tuple[str, ...],
        budget: _Budget
    ) -> FunctionDeclaration:
        receiver = None
        if node.type == "method_declaration":
            receiver_params = _parameters(node.child_by_field_name("receiver"))
            if receiver_params:
                receiver = base_type_name(receiver_params[0].type_name)

        body = node.child_by_field_name("body")
        nodes = _BodyBuilder(budget).build(body) if body is not None else ()

        return FunctionDeclaration(
            name=node_text(node.child_by_field_name("name")),
            path=path,
            start_line=node_line(node),
            end_line=node.end_point[0] + 1,
            parameters=_parameters(node.child_by_field_name("parameters")),
            return_types=_return_types(node.child_by_field_name("result")),
            nodes=nodes,
            receiver=receiver,
            leading_comments=leading
        )

    def _structs(self, node: Node) -> List[StructType]:
        structs = []
        for spec in named_children(node):
            if spec.type != "type_spec":
                continue
            type_node = spec.child_by_field_name("type")
            if type_node is None or type_node.type != "struct_type":
                continue

            fields: List[str] = []
            for field_list in named_children(type_node):
                for declaration in named_children(field_list):
                    if declaration.type != "field_declaration":
                        continue
                    names = declaration.children_by_field_name("name")
                    if names:
                        fields.extend(node_text(n) for n in names)
                    else:
                        # 埋め込みフィールド
                        embedded = declaration.child_by_field_name("type")
                        fields.append(base_type_name(node_text(embedded)))

            structs.append(StructType(
                name=node_text(spec.child_by_field_name("name")),
                fields=tuple(fields),
                line=node_line(spec)
            ))
        return structs


def _leading_comments(pending: List[Node], declaration: Node) -> Tuple[str, ...]:
    """Comment group that ends on the line right above the declaration."""
    if not pending:
        return ()
    if pending[-1].end_point[0] + 1 < declaration.start_point[0]:
        return ()
    return tuple(node_text(c) for c in pending)


def _parameters(parameter_list: Optional[Node]) -> Tuple[Parameter, ...]:
    if parameter_list is None:
        return ()
    parameters: List[Parameter] = []
    for declaration in named_children(parameter_list):
        if declaration.type not in ("parameter_declaration", "variadic_parameter_declaration"):
            continue
        type_name = clean_type(node_text(declaration.child_by_field_name("type")))
        if declaration.type == "variadic_parameter_declaration":
            type_name = "..." + type_name
        names = declaration.children_by_field_name("name")
        if names:
            parameters.extend(Parameter(node_text(n), type_name) for n in names)
        else:
            parameters.append(Parameter("", type_name))
    return tuple(parameters)


def _return_types(result: Optional[Node]) -> Tuple[str, ...]:
    if result is None:
        return ()
    if result.type == "parameter_list":
        return tuple(p.type_name for p in _parameters(result))
    return (clean_type(node_text(result)),)

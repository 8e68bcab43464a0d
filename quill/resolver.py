"""
Resolver pass: walks the concrete parse tree with a stack of lexical scopes,
enforces declaration-before-use and lowers each statement into the semantic
tree consumed by the code generator.

Each scope entry records the declared type and the value most recently
written to the variable. Only literals and bare variable names are tracked;
reading through a name is left to the generated code.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional

from .errors import ResolutionError
from .lexer import tokenize
from .nodes import (
    BinaryOp,
    Bool,
    Entry,
    Exit,
    Expr,
    Float,
    For,
    Ident,
    Int,
    Statement,
    VariableAssignment,
    VariableDeclaration,
)
from .parser import ParseNode, parse

TYPE_NAMES = {
    'I32': 'i32',
    'F32': 'f32',
    'BOOL_TYPE': 'bool',
}

OPERATORS = {
    'PLUS': '+',
    'MINUS': '-',
    'STAR': '*',
    'SLASH': '/',
    'EQ': '==',
    'NE': '!=',
    'LT': '<',
    'LE': '<=',
    'GT': '>',
    'GE': '>=',
}

BINARY_SYMBOLS = ('Equality', 'Comparison', 'Additive', 'Multiplicative')


@dataclass
class ScopeEntry:
    var_type: str
    value: Expr


class ScopeStack:
    """Stack of name -> ScopeEntry frames, innermost last.

    The outermost frame exists from construction and is never popped.
    """

    def __init__(self):
        self.frames: List[Dict[str, ScopeEntry]] = [{}]

    def push(self) -> None:
        self.frames.append({})

    def pop(self) -> Dict[str, ScopeEntry]:
        if len(self.frames) == 1:
            raise IndexError("cannot pop the outermost scope")
        return self.frames.pop()

    @property
    def depth(self) -> int:
        return len(self.frames)

    def lookup(self, name: str) -> Optional[ScopeEntry]:
        for frame in reversed(self.frames):
            if name in frame:
                return frame[name]
        return None

    def declare(self, name: str, var_type: str, value: Expr) -> ScopeEntry:
        entry = ScopeEntry(var_type, value)
        self.frames[-1][name] = entry
        return entry

    def assign(self, name: str, value: Expr) -> Optional[ScopeEntry]:
        """Overwrite the value in the nearest frame holding name"""
        entry = self.lookup(name)
        if entry is not None:
            entry.value = value
        return entry


class Resolver:
    """Builds the semantic tree from a concrete parse tree.

    ``scopes`` is left in place after resolve() so callers can inspect the
    outermost frame.
    """

    def __init__(self):
        self.scopes = ScopeStack()

    def resolve(self, tree: ParseNode) -> Entry:
        if tree.symbol != 'Entry':
            raise ResolutionError(f"Expected Entry node, got {tree.symbol}", tree.line, tree.column)
        return Entry(self._resolve_statements(tree.children_of('Statement')))

    def _resolve_statements(self, statements: List[ParseNode]) -> List[Statement]:
        return [self._resolve_statement(stmt.children[0]) for stmt in statements]

    def _resolve_statement(self, node: ParseNode) -> Statement:
        if node.symbol == 'Exit':
            return Exit(self._resolve_expression(node.child('Expression')))
        if node.symbol == 'VarDecl':
            return self._resolve_declaration(node)
        if node.symbol == 'VarAssign':
            return self._resolve_assignment(node)
        if node.symbol == 'For':
            return self._resolve_for(node)
        raise ResolutionError(f"Unexpected statement {node.symbol}", node.line, node.column)

    def _resolve_declaration(self, node: ParseNode) -> VariableDeclaration:
        type_node, name_node = node.children[0], node.child('IDENTIFIER')
        value = self._resolve_initializer(name_node.text, node.child('Expression'))
        entry = self.scopes.declare(name_node.text, TYPE_NAMES[type_node.symbol], value)
        return VariableDeclaration(name_node.text, entry.var_type, entry.value)

    def _resolve_assignment(self, node: ParseNode) -> VariableAssignment:
        name_node = node.child('IDENTIFIER')
        name = name_node.text
        if self.scopes.lookup(name) is None:
            raise ResolutionError(
                f"Assignment to undefined variable '{name}'", name_node.line, name_node.column
            )
        value = self._resolve_initializer(name, node.child('Expression'))
        entry = self.scopes.assign(name, value)
        return VariableAssignment(name, entry.value)

    def _resolve_for(self, node: ParseNode) -> For:
        iterator = node.child('IDENTIFIER').text
        begin_node, end_node = node.children_of('Expression')
        begin = self._resolve_expression(begin_node)
        end = self._resolve_expression(end_node)

        self.scopes.push()
        try:
            self.scopes.declare(iterator, 'i32', begin)
            body = self._resolve_statements(node.child('Block').children_of('Statement'))
        finally:
            self.scopes.pop()

        return For(iterator, begin, end, body)

    def _resolve_initializer(self, name: str, node: ParseNode) -> Expr:
        """Reduce a right-hand side to a literal or a bare variable name"""
        value = self._resolve_expression(node)
        if isinstance(value, BinaryOp):
            raise ResolutionError(
                f"Unsupported initializer for '{name}': only literals and variable "
                "names can be stored",
                node.line, node.column,
            )
        return value

    def _resolve_expression(self, node: ParseNode) -> Expr:
        if node.symbol == 'Expression':
            return self._resolve_expression(node.children[0])
        if node.symbol == 'Group':
            return self._resolve_expression(node.children[1])
        if node.symbol in BINARY_SYMBOLS:
            left, op, right = node.children
            return BinaryOp(
                self._resolve_expression(left),
                OPERATORS[op.symbol],
                self._resolve_expression(right),
            )
        if node.symbol == 'INTEGER':
            return Int(int(node.text))
        if node.symbol == 'FLOAT':
            return Float.from_text(node.text)
        if node.symbol == 'BOOL':
            return Bool(node.text == 'true')
        if node.symbol == 'IDENTIFIER':
            if self.scopes.lookup(node.text) is None:
                raise ResolutionError(
                    f"Undefined variable '{node.text}'", node.line, node.column
                )
            return Ident(node.text)
        raise ResolutionError(f"Unsupported expression {node.symbol}", node.line, node.column)


def resolve(tree: ParseNode) -> Entry:
    """Resolve a concrete parse tree into a semantic tree"""
    return Resolver().resolve(tree)


def resolve_source(source: str) -> Entry:
    """Lex, parse, resolve and lower source text into a semantic tree"""
    return resolve(parse(tokenize(source)))

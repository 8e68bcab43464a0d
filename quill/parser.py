"""
Quill Parser - Builds a concrete parse tree from the token stream

The parser is a recursive-descent parser with one function per grammar
production. It does no name resolution: the tree it returns mirrors the
grammar exactly and is handed to the resolver afterwards.

Grammar:
    Entry          := ENTRY Statement* EOF
    Statement      := Exit | VarDecl | VarAssign | For
    Exit           := 'exit' Expression ';'
    VarDecl        := Type Identifier '=' Expression ';'
    VarAssign      := Identifier '=' Expression ';'
    For            := 'for' Identifier 'in' Expression 'to' Expression Block
    Block          := '{' Statement* '}'
    Expression     := Equality
    Equality       := Comparison (('=='|'!=') Comparison)*
    Comparison     := Additive (('<'|'<='|'>'|'>=') Additive)*
    Additive       := Multiplicative (('+'|'-') Multiplicative)*
    Multiplicative := Primary (('*'|'/') Primary)*
    Primary        := IntLit | FloatLit | BoolLit | Identifier | '(' Equality ')'

Terminal nodes carry the token type as their symbol and have no children.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from .errors import ParseError
from .lexer import Token
from .nodes import Float

TYPE_TOKENS = ('I32', 'F32', 'BOOL_TYPE')
LITERAL_TOKENS = ('INTEGER', 'FLOAT', 'BOOL')

# Binary tiers from loosest to tightest binding
EQUALITY_OPS = ('EQ', 'NE')
COMPARISON_OPS = ('LT', 'LE', 'GT', 'GE')
ADDITIVE_OPS = ('PLUS', 'MINUS')
MULTIPLICATIVE_OPS = ('STAR', 'SLASH')

I32_MIN = -2 ** 31
I32_MAX = 2 ** 31 - 1


@dataclass
class ParseNode:
    """A node of the concrete parse tree"""
    symbol: str
    children: List['ParseNode'] = field(default_factory=list)
    text: Optional[str] = None
    line: int = 0
    column: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.symbol.isupper()

    def child(self, symbol: str) -> 'ParseNode':
        """First child with the given symbol"""
        for node in self.children:
            if node.symbol == symbol:
                return node
        raise KeyError(symbol)

    def children_of(self, symbol: str) -> List['ParseNode']:
        return [node for node in self.children if node.symbol == symbol]

    def __repr__(self):
        if self.is_terminal:
            return f"{self.symbol}({self.text!r})" if self.text is not None else self.symbol
        return f"{self.symbol}{self.children!r}"


class Parser:
    """
    Parser for Quill source code

    Converts a stream of tokens into a concrete parse tree.
    Uses recursive descent with one tier per precedence level.
    """

    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.position = 0
        self.current_token = tokens[0] if tokens else None

    def peek(self, offset: int = 0) -> Optional[Token]:
        """Look ahead at token without consuming it"""
        pos = self.position + offset
        return self.tokens[pos] if pos < len(self.tokens) else None

    def advance(self):
        """Move to the next token"""
        self.position += 1
        if self.position < len(self.tokens):
            self.current_token = self.tokens[self.position]
        else:
            self.current_token = None

    def consume(self, expected_type: str) -> ParseNode:
        """
        Consume a token of expected type and wrap it in a terminal node

        Raises:
            ParseError: If current token doesn't match expected type
        """
        token = self.current_token
        if token is None:
            raise ParseError(f"Expected {expected_type}, got end of input")

        if token.type != expected_type:
            raise ParseError(
                f"Expected {expected_type}, got {token.type}",
                token.line, token.column,
            )

        self.advance()
        return self.terminal(token)

    @staticmethod
    def terminal(token: Token) -> ParseNode:
        return ParseNode(token.type, text=token.value, line=token.line, column=token.column)

    def at(self, *types: str) -> bool:
        return self.current_token is not None and self.current_token.type in types

    def node(self, symbol: str, children: List[ParseNode]) -> ParseNode:
        first = children[0]
        return ParseNode(symbol, children, line=first.line, column=first.column)

    def parse(self) -> ParseNode:
        """Parse the entire program

        Statements are parsed until EOF. The first failing statement stops the
        loop; the error carries the Entry node with everything parsed before
        it.
        """
        entry = self.node('Entry', [self.consume('ENTRY')])

        while not self.at('EOF'):
            try:
                entry.children.append(self.parse_statement())
            except ParseError as error:
                error.partial = entry
                raise

        entry.children.append(self.consume('EOF'))
        return entry

    def parse_statement(self) -> ParseNode:
        """Parse a single statement, dispatching on its leading token"""
        token = self.current_token
        if token is None:
            raise ParseError("Expected statement, got end of input")

        if token.type == 'EXIT':
            stmt = self.parse_exit()
        elif token.type in TYPE_TOKENS:
            stmt = self.parse_var_decl()
        elif token.type == 'IDENTIFIER':
            stmt = self.parse_var_assign()
        elif token.type == 'FOR':
            stmt = self.parse_for()
        else:
            raise ParseError(
                f"Expected statement, got {token.type}", token.line, token.column
            )

        return self.node('Statement', [stmt])

    def parse_exit(self) -> ParseNode:
        """Parse: exit expr ;"""
        return self.node('Exit', [
            self.consume('EXIT'),
            self.parse_expression(),
            self.consume('SEMICOLON'),
        ])

    def parse_var_decl(self) -> ParseNode:
        """Parse: type name = expr ;"""
        type_token = self.current_token
        self.advance()
        return self.node('VarDecl', [
            self.terminal(type_token),
            self.consume('IDENTIFIER'),
            self.consume('ASSIGN'),
            self.parse_expression(),
            self.consume('SEMICOLON'),
        ])

    def parse_var_assign(self) -> ParseNode:
        """Parse: name = expr ;"""
        return self.node('VarAssign', [
            self.consume('IDENTIFIER'),
            self.consume('ASSIGN'),
            self.parse_expression(),
            self.consume('SEMICOLON'),
        ])

    def parse_for(self) -> ParseNode:
        """Parse: for name in begin to end { body }"""
        return self.node('For', [
            self.consume('FOR'),
            self.consume('IDENTIFIER'),
            self.consume('IN'),
            self.parse_expression(),
            self.consume('TO'),
            self.parse_expression(),
            self.parse_block(),
        ])

    def parse_block(self) -> ParseNode:
        """Parse a code block: { statements }"""
        children = [self.consume('LBRACE')]
        while self.current_token is not None and not self.at('RBRACE', 'EOF'):
            children.append(self.parse_statement())
        children.append(self.consume('RBRACE'))
        return self.node('Block', children)

    def parse_expression(self) -> ParseNode:
        """Parse a full expression with precedence."""
        return self.node('Expression', [self.parse_equality()])

    def parse_binary(self, symbol: str, operators: tuple, operand) -> ParseNode:
        """Build a left-associative chain for one precedence tier"""
        node = operand()

        while self.at(*operators):
            op = self.terminal(self.current_token)
            self.advance()
            right = operand()
            node = self.node(symbol, [node, op, right])

        return node

    def parse_equality(self) -> ParseNode:
        return self.parse_binary('Equality', EQUALITY_OPS, self.parse_comparison)

    def parse_comparison(self) -> ParseNode:
        return self.parse_binary('Comparison', COMPARISON_OPS, self.parse_additive)

    def parse_additive(self) -> ParseNode:
        return self.parse_binary('Additive', ADDITIVE_OPS, self.parse_multiplicative)

    def parse_multiplicative(self) -> ParseNode:
        return self.parse_binary('Multiplicative', MULTIPLICATIVE_OPS, self.parse_primary)

    def parse_primary(self) -> ParseNode:
        """Parse primary expressions"""
        token = self.current_token
        if token is None:
            raise ParseError("Unexpected end of expression")

        if token.type == 'LPAREN':
            return self.node('Group', [
                self.consume('LPAREN'),
                self.parse_equality(),
                self.consume('RPAREN'),
            ])

        if token.type == 'INTEGER':
            value = int(token.value)
            if not I32_MIN <= value <= I32_MAX:
                raise ParseError(
                    f"Integer literal {token.value} does not fit in i32",
                    token.line, token.column,
                )

        if token.type == 'FLOAT':
            try:
                Float.from_text(token.value)
            except OverflowError:
                raise ParseError(
                    f"Float literal {token.value} does not fit in f32",
                    token.line, token.column,
                ) from None

        if token.type in LITERAL_TOKENS or token.type == 'IDENTIFIER':
            self.advance()
            return self.terminal(token)

        raise ParseError(
            f"Expected expression, got {token.type}", token.line, token.column
        )


def parse(tokens: List[Token]) -> ParseNode:
    """
    Convenience function to parse tokens into a concrete parse tree

    Args:
        tokens: List of tokens from the lexer

    Returns:
        The Entry node
    """
    parser = Parser(tokens)
    return parser.parse()

"""
Semantic tree produced by the resolver and consumed by the code generator.

Expression values:
    - Int: 32-bit signed integer literal
    - Float: binary32 float literal
    - Bool: boolean literal
    - Ident: reference to another variable (never its dereferenced value)
    - BinaryOp: left operator right

Statements:
    - Entry: the whole program
    - Exit: exit expr;
    - VariableDeclaration: type name = value;
    - VariableAssignment: name = value;
    - For: for iterator in begin to end { body }
"""

import struct
from dataclasses import dataclass, field
from typing import List, Union


@dataclass(frozen=True)
class Int:
    value: int


@dataclass(frozen=True)
class Float:
    value: float

    @classmethod
    def from_text(cls, text: str) -> 'Float':
        """Round a decimal literal to the nearest binary32 value"""
        return cls(struct.unpack('<f', struct.pack('<f', float(text)))[0])

    @property
    def bits(self) -> int:
        """Raw IEEE-754 binary32 bit pattern"""
        return struct.unpack('<I', struct.pack('<f', self.value))[0]


@dataclass(frozen=True)
class Bool:
    value: bool


@dataclass(frozen=True)
class Ident:
    name: str


@dataclass(frozen=True)
class BinaryOp:
    left: 'Expr'
    operator: str
    right: 'Expr'


Expr = Union[Int, Float, Bool, Ident, BinaryOp]
LITERALS = (Int, Float, Bool)


@dataclass
class Exit:
    """exit value;"""
    value: Expr


@dataclass
class VariableDeclaration:
    """Declaration with the value captured when it was resolved"""
    name: str
    var_type: str  # 'i32', 'f32', 'bool'
    value: Expr


@dataclass
class VariableAssignment:
    name: str
    value: Expr


@dataclass
class For:
    """Counting loop, both bounds inclusive"""
    iterator: str
    begin: Expr
    end: Expr
    body: List['Statement'] = field(default_factory=list)


Statement = Union[Exit, VariableDeclaration, VariableAssignment, For]


@dataclass
class Entry:
    """Root node containing all program statements"""
    statements: List[Statement] = field(default_factory=list)


def dump(node, indent: int = 0) -> str:
    """Readable multi-line rendering of a semantic tree"""
    pad = '  ' * indent
    if isinstance(node, Entry):
        lines = [f"{pad}Entry"]
        lines.extend(dump(stmt, indent + 1) for stmt in node.statements)
        return '\n'.join(lines)
    if isinstance(node, For):
        lines = [f"{pad}For {node.iterator} in {node.begin!r} to {node.end!r}"]
        lines.extend(dump(stmt, indent + 1) for stmt in node.body)
        return '\n'.join(lines)
    return f"{pad}{node!r}"

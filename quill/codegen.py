"""
Quill Code Generator - Generates x86-64 NASM assembly from the semantic tree

Every variable lives in one 32-bit cell of the .bss segment, named after the
variable. Expressions are evaluated into eax; the right operand of a binary
operation goes to ebx while the left one waits on the stack.
"""
from typing import List, Set

from .errors import GenerationError
from .nodes import (
    BinaryOp,
    Bool,
    Entry,
    Exit,
    Float,
    For,
    Ident,
    LITERALS,
    VariableAssignment,
    VariableDeclaration,
)

ENTRY_SYMBOL = "mainCRTStartup"

HEADER = [
    "bits 64",
    "default rel",
    "",
    "segment .text",
    f"global {ENTRY_SYMBOL}",
    "",
    f"{ENTRY_SYMBOL}:",
]

PRIMARY = "eax"
SECONDARY = "ebx"

# 32-bit register -> 64-bit form used for push/pop
WIDE = {
    "eax": "rax",
    "ebx": "rbx",
}

ARITHMETIC = {
    "+": "add",
    "-": "sub",
    "*": "imul",
}

CONDITIONS = {
    "==": "sete",
    "!=": "setne",
    "<": "setl",
    "<=": "setle",
    ">": "setg",
    ">=": "setge",
}


class CodeGenerator:
    def __init__(self):
        self.output: List[str] = []
        self.label_counter = 0
        self.declared: Set[str] = set()

    # ---------- helpers ----------
    def emit(self, line: str):
        self.output.append(f"    {line}")

    def emit_label(self, label: str):
        self.output.append(f"{label}:")

    def get_label(self, prefix: str) -> str:
        lbl = f"{prefix}_{self.label_counter}"
        self.label_counter += 1
        return lbl

    @staticmethod
    def immediate(expr) -> int:
        if isinstance(expr, Float):
            return expr.bits
        if isinstance(expr, Bool):
            return 1 if expr.value else 0
        return expr.value

    # ---------- entry ----------
    def generate(self, program: Entry) -> str:
        if not isinstance(program, Entry):
            raise GenerationError(f"Expected Entry node, got {type(program).__name__}")

        self.output = list(HEADER)
        self.label_counter = 0
        self.declared = set()

        for stmt in program.statements:
            self.generate_statement(stmt)

        self.emit("ret")

        if self.declared:
            self.output.append("")
            self.output.append("segment .bss")
            for name in sorted(self.declared):
                self.output.append(f"{name} resd 1")

        return "\n".join(self.output) + "\n"

    # ---------- statements ----------
    def generate_statement(self, stmt):
        if isinstance(stmt, Exit):
            self.generate_expression(stmt.value, PRIMARY)
        elif isinstance(stmt, VariableDeclaration):
            self.declared.add(stmt.name)
            self.generate_store(stmt.name, stmt.value)
        elif isinstance(stmt, VariableAssignment):
            self.generate_store(stmt.name, stmt.value)
        elif isinstance(stmt, For):
            self.generate_for(stmt)
        else:
            raise GenerationError(f"Unsupported statement {type(stmt).__name__}")

    def generate_store(self, name: str, value):
        if isinstance(value, LITERALS):
            self.emit(f"mov dword [{name}], {self.immediate(value)}")
            return
        self.generate_expression(value, PRIMARY)
        self.emit(f"mov dword [{name}], {PRIMARY}")

    def generate_for(self, node: For):
        self.declared.add(node.iterator)
        start_lbl = self.get_label(f"loop_begin_{node.iterator}")
        end_lbl = start_lbl.replace("loop_begin_", "loop_end_", 1)

        self.generate_store(node.iterator, node.begin)
        self.emit_label(start_lbl)
        # Bound first: a binary bound would clobber eax
        self.generate_expression(node.end, SECONDARY)
        self.emit(f"mov {PRIMARY}, dword [{node.iterator}]")
        self.emit(f"cmp {PRIMARY}, {SECONDARY}")
        self.emit(f"jg {end_lbl}")
        for stmt in node.body:
            self.generate_statement(stmt)
        self.emit(f"inc dword [{node.iterator}]")
        self.emit(f"jmp {start_lbl}")
        self.emit_label(end_lbl)

    # ---------- expressions ----------
    def generate_expression(self, expr, reg: str):
        """Evaluate expr, leaving its 32-bit result in reg"""
        if isinstance(expr, LITERALS):
            self.emit(f"mov {reg}, {self.immediate(expr)}")
            return

        if isinstance(expr, Ident):
            self.emit(f"mov {reg}, dword [{expr.name}]")
            return

        if isinstance(expr, BinaryOp):
            self.generate_binary_op(expr)
            if reg != PRIMARY:
                self.emit(f"mov {reg}, {PRIMARY}")
            return

        raise GenerationError(f"Unsupported expression {type(expr).__name__}")

    def generate_binary_op(self, expr: BinaryOp):
        self.generate_expression(expr.left, PRIMARY)
        self.emit(f"push {WIDE[PRIMARY]}")  # save left
        self.generate_expression(expr.right, SECONDARY)
        self.emit(f"pop {WIDE[PRIMARY]}")

        op = expr.operator
        if op in ARITHMETIC:
            self.emit(f"{ARITHMETIC[op]} {PRIMARY}, {SECONDARY}")
        elif op == "/":
            self.emit("cdq")  # edx:eax = sign-extended eax
            self.emit(f"idiv {SECONDARY}")
        elif op in CONDITIONS:
            self.emit(f"cmp {PRIMARY}, {SECONDARY}")
            self.emit(f"{CONDITIONS[op]} al")
            self.emit(f"movzx {PRIMARY}, al")
        else:
            raise GenerationError(f"Unsupported binary operator '{op}'")


def generate_assembly(program: Entry) -> str:
    generator = CodeGenerator()
    return generator.generate(program)

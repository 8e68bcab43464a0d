"""
Quill Compiler - A Python-based compiler for the Quill language

This compiler translates Quill source code to x86-64 NASM assembly.
It consists of several modules:
- lexer: Tokenizes Quill source code
- parser: Builds a concrete parse tree
- resolver: Checks names against lexical scopes and lowers to the semantic tree
- codegen: Generates x86-64 assembly from the semantic tree
- main: Command-line interface and orchestration

Usage:
    python -m quill input.ql -o output.exe
"""

__version__ = "0.1.0"

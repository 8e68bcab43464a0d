"""
Quill compiler errors.

Every stage raises a subclass of CompileError. None of them are recoverable:
the driver reports the first one and stops.
"""


class CompileError(Exception):
    """Compilation failure with location metadata."""

    kind = "Compile"

    def __init__(self, message: str, line: int = 0, column: int = 0):
        super().__init__(message)
        self.line = line
        self.column = column

    def __str__(self) -> str:
        location = ""
        if self.line:
            location = f" (line {self.line}, col {self.column})"
        return f"{self.args[0]}{location}"


class LexicalError(CompileError):
    """Raised on a character the lexer cannot start a token with."""

    kind = "Lexical"


class ParseError(CompileError):
    """Raised on an unexpected token.

    ``partial`` holds the Entry node with the statements parsed before the
    failing one.
    """

    kind = "Syntax"

    def __init__(self, message: str, line: int = 0, column: int = 0):
        super().__init__(message, line, column)
        self.partial = None


class ResolutionError(CompileError):
    """Raised on undefined names and unsupported initializers."""

    kind = "Resolution"


class GenerationError(CompileError):
    """Raised when the code generator meets a malformed semantic tree."""

    kind = "Codegen"

#!/usr/bin/env python3

"""
Quill Compiler - Command Line Interface

This module provides the command-line interface for the Quill compiler.
It handles:
- Command-line argument parsing
- File I/O
- Compilation pipeline orchestration
- Error reporting
- Assembling (nasm) and linking into a PE executable

Usage:
    quillc input.ql -o output.exe
    quillc input.ql -S              # Generate assembly only
    python -m quill input.ql -k     # Also emit a flat binary via Keystone
"""

import argparse
import os
import shutil
import subprocess
import sys
from pathlib import Path
from typing import List, Tuple

from .codegen import ENTRY_SYMBOL, generate_assembly
from .errors import CompileError
from .lexer import tokenize
from .nodes import dump
from .parser import parse
from .resolver import resolve, resolve_source

# Bytes per .bss cell (resd 1)
CELL_SIZE = 4


def compile_source(source_code: str) -> str:
    """Compile source text straight to assembly text"""
    return generate_assembly(resolve_source(source_code))


def split_sections(assembly: str) -> Tuple[List[str], List[str]]:
    """Split generated assembly into text-segment lines and .bss cell names.

    Assembler directives are dropped, leaving labels and instructions only.
    """
    text: List[str] = []
    cells: List[str] = []
    in_bss = False
    for line in assembly.splitlines():
        stripped = line.strip()
        if not stripped:
            continue
        if stripped.startswith("segment"):
            in_bss = stripped == "segment .bss"
            continue
        if in_bss:
            cells.append(stripped.split()[0])
        elif not stripped.startswith(("bits", "default", "global")):
            text.append(stripped)
    return text, cells


def assemble_with_keystone(assembly: str) -> bytes:
    """Assemble generated NASM assembly to a flat binary using Keystone.

    The .bss cells are laid out zero-filled right after the code, 4-byte
    aligned, and code is assembled at address 0.
    """
    try:
        from keystone import Ks, KS_ARCH_X86, KS_MODE_64, KS_OPT_SYNTAX_NASM
    except ImportError:
        raise ImportError("keystone-engine not installed; install with 'pip install keystone-engine'")

    text, cells = split_sections(assembly)
    code = "\n".join(text)

    def encode(base: int) -> bytes:
        addresses = {name.encode(): base + i * CELL_SIZE for i, name in enumerate(cells)}

        def sym_resolver(symbol, value):
            if symbol in addresses:
                value[0] = addresses[symbol]
                return True
            return False

        ks = Ks(KS_ARCH_X86, KS_MODE_64)
        ks.syntax = KS_OPT_SYNTAX_NASM
        if cells:
            ks.sym_resolver = sym_resolver
        encoding, _ = ks.asm(code, 0)
        return bytes(encoding or [])

    # First pass sizes the code, second pass uses the real cell addresses
    machine_code = encode(0)
    if not cells:
        return machine_code
    base = (len(machine_code) + CELL_SIZE - 1) // CELL_SIZE * CELL_SIZE
    machine_code = encode(base)
    padding = bytes(base - len(machine_code))
    return machine_code + padding + bytes(len(cells) * CELL_SIZE)


def assemble_and_link(asm_file: str, executable_file: str) -> bool:
    """Run nasm and the mingw linker to produce a PE executable"""
    nasm = shutil.which('nasm')
    if not nasm:
        print("  Error: nasm not found. Please install nasm.")
        return False

    object_file = str(Path(executable_file).with_suffix('.obj'))
    result = subprocess.run([nasm, '-f', 'win64', asm_file, '-o', object_file],
                            capture_output=True, text=True)
    if result.returncode != 0:
        print(f"  Error: {result.stderr}")
        return False
    print(f"  Object written to {object_file}")

    linker = shutil.which('x86_64-w64-mingw32-ld')
    if not linker:
        print("  Error: x86_64-w64-mingw32-ld not found. Install mingw-w64 to link.")
        return False

    result = subprocess.run([linker, '-e', ENTRY_SYMBOL, '--subsystem', 'console',
                             object_file, '-o', executable_file],
                            capture_output=True, text=True)
    if result.returncode != 0:
        print(f"  Error: {result.stderr}")
        return False
    print(f"  Executable written to {executable_file}")
    os.remove(object_file)
    return True


def compile_quill(source_code: str, output_file: str, generate_assembly_only: bool = False,
                  use_keystone: bool = False, dump_tokens: bool = False, dump_tree: bool = False) -> bool:
    """
    Compile Quill source code to assembly, and optionally to an executable.

    Args:
        source_code: Quill source code as string
        output_file: Assembly path when generate_assembly_only, else executable path
        generate_assembly_only: If True, stop after writing assembly
        use_keystone: If True, also assemble a flat .bin using Keystone
        dump_tokens: Print the token stream
        dump_tree: Print the semantic tree

    Returns:
        True if compilation succeeded, False otherwise
    """
    try:
        # Step 1: Lexical analysis
        print("Step 1: Tokenizing...")
        tokens = tokenize(source_code)
        print(f"  Generated {len(tokens)} tokens")
        if dump_tokens:
            for token in tokens:
                print(f"    {token!r}")

        # Step 2: Parsing
        print("Step 2: Parsing...")
        tree = parse(tokens)
        print("  Parse tree generated successfully")

        # Step 3: Resolve symbols and lower
        print("Step 3: Resolving symbols...")
        program = resolve(tree)
        print(f"  Resolved {len(program.statements)} statements")
        if dump_tree:
            print(dump(program, indent=2))

        # Step 4: Code generation
        print("Step 4: Generating assembly...")
        assembly = generate_assembly(program)

        if generate_assembly_only:
            asm_file = output_file
            executable_file = None
        else:
            asm_file = str(Path(output_file).with_suffix('.asm'))
            executable_file = output_file

        with open(asm_file, 'w') as f:
            f.write(assembly)
        print(f"  Assembly written to {asm_file}")

        if use_keystone:
            try:
                machine_code = assemble_with_keystone(assembly)
            except Exception as ke:
                print(f"  Keystone assembly failed: {ke}")
                return False
            bin_file = Path(output_file).with_suffix('.bin')
            bin_file.write_bytes(machine_code)
            print(f"  Machine code written to {bin_file} (flat binary)")

        if generate_assembly_only:
            return True

        # Step 5: Assemble and link
        print("Step 5: Assembling and linking...")
        return assemble_and_link(asm_file, executable_file)

    except CompileError as e:
        print(f"{e.kind} Error: {e}")
        return False
    except OSError as e:
        print(f"File Error: {e}")
        return False


def main(argv=None):
    """Main CLI entry point"""
    parser = argparse.ArgumentParser(
        prog="quillc",
        description="Quill Compiler - Compile Quill source code to x86-64 NASM assembly",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  quillc program.ql               # Compile to program.exe
  quillc program.ql -o myapp.exe  # Compile to myapp.exe
  quillc program.ql -S            # Generate program.asm only
  quillc program.ql -S -k         # Also emit program.bin with Keystone
        """
    )

    parser.add_argument('-c', '--compile', dest='input', help='Input Quill source file to compile')
    parser.add_argument('-o', '--output', help='Output file name')
    parser.add_argument('-S', '--assembly', action='store_true',
                        help='Generate assembly only (don\'t assemble/link)')
    parser.add_argument('-k', '--keystone', action='store_true',
                        help='Also assemble with Keystone and emit a flat .bin')
    parser.add_argument('--tokens', action='store_true', help='Print the token stream')
    parser.add_argument('--tree', action='store_true', help='Print the semantic tree')

    # Also support direct file argument for convenience
    parser.add_argument('input_file', nargs='?', help='Input Quill source file (alternative to -c)')

    args = parser.parse_args(argv)

    input_file = args.input or args.input_file

    if not input_file:
        print("Error: No input file specified. Use -c <file> or provide file as argument")
        sys.exit(1)

    if not os.path.exists(input_file):
        print(f"Error: Input file '{input_file}' not found")
        sys.exit(1)

    try:
        with open(input_file, 'r') as f:
            source_code = f.read()
    except OSError as e:
        print(f"Error reading input file: {e}")
        sys.exit(1)

    if args.output:
        output_file = args.output
    else:
        base_name = os.path.splitext(os.path.basename(input_file))[0]
        output_file = base_name + (".asm" if args.assembly else ".exe")

    print(f"Compiling {input_file}...")
    print("-" * 50)

    success = compile_quill(source_code, output_file, args.assembly, args.keystone,
                            dump_tokens=args.tokens, dump_tree=args.tree)

    print("-" * 50)
    if success:
        print("✓ Compilation successful!")
        if args.assembly:
            print(f"  Assembly: {output_file}")
        else:
            print(f"  Executable: {output_file}")
    else:
        print("✗ Compilation failed")
        sys.exit(1)


if __name__ == '__main__':
    main()

import unittest

from quill.codegen import HEADER, generate_assembly
from quill.errors import GenerationError
from quill.main import compile_source
from quill.nodes import BinaryOp, Entry, Exit, Float, Ident, Int, VariableDeclaration


def instructions(source):
    """Instruction lines of the text segment, without the header"""
    lines = compile_source(source).splitlines()[len(HEADER):]
    body = []
    for line in lines:
        if line == "":
            break
        body.append(line.strip())
    return body


def bss(source):
    assembly = compile_source(source)
    if "segment .bss" not in assembly:
        return []
    return assembly.split("segment .bss\n", 1)[1].splitlines()


class CodegenTests(unittest.TestCase):
    def test_header(self):
        assembly = compile_source("exit 0;")
        self.assertTrue(assembly.startswith(
            "bits 64\ndefault rel\n\nsegment .text\nglobal mainCRTStartup\n\nmainCRTStartup:\n"
        ))

    def test_exit_literal(self):
        self.assertEqual(instructions("exit 42;"), ["mov eax, 42", "ret"])
        self.assertNotIn("segment .bss", compile_source("exit 42;"))

    def test_declared_variable_gets_one_cell(self):
        self.assertEqual(
            instructions("i32 x = 7; exit x;"),
            ["mov dword [x], 7", "mov eax, dword [x]", "ret"],
        )
        self.assertEqual(bss("i32 x = 7; exit x;"), ["x resd 1"])

    def test_cells_are_a_sorted_set(self):
        self.assertEqual(
            bss("i32 b = 1; i32 a = 2; for i in 0 to 1 { i32 b = 3; }"),
            ["a resd 1", "b resd 1", "i resd 1"],
        )

    def test_identifier_store_goes_through_eax(self):
        self.assertEqual(
            instructions("i32 a = 1; i32 b = a;"),
            ["mov dword [a], 1", "mov eax, dword [a]", "mov dword [b], eax", "ret"],
        )

    def test_bool_and_float_immediates(self):
        self.assertEqual(
            instructions("bool t = true; f32 f = 1.5; exit false;"),
            ["mov dword [t], 1", "mov dword [f], 1069547520", "mov eax, 0", "ret"],
        )

    def test_division_sign_extends_and_restores_left(self):
        self.assertEqual(
            instructions("exit 7 / 2;"),
            ["mov eax, 7", "push rax", "mov ebx, 2", "pop rax", "cdq", "idiv ebx", "ret"],
        )

    def test_arithmetic_instructions(self):
        for op, mnemonic in (("+", "add"), ("-", "sub"), ("*", "imul")):
            with self.subTest(op=op):
                self.assertEqual(
                    instructions(f"exit 6 {op} 3;")[4],
                    f"{mnemonic} eax, ebx",
                )

    def test_comparisons_set_zero_or_one(self):
        cases = {"==": "sete", "!=": "setne", "<": "setl", "<=": "setle", ">": "setg", ">=": "setge"}
        for op, setcc in cases.items():
            with self.subTest(op=op):
                self.assertEqual(
                    instructions(f"exit 1 {op} 2;")[4:7],
                    ["cmp eax, ebx", f"{setcc} al", "movzx eax, al"],
                )

    def test_nested_right_operand_keeps_left_on_stack(self):
        self.assertEqual(
            instructions("exit 1 - (2 + 3);"),
            [
                "mov eax, 1",
                "push rax",
                "mov eax, 2",
                "push rax",
                "mov ebx, 3",
                "pop rax",
                "add eax, ebx",
                "mov ebx, eax",
                "pop rax",
                "sub eax, ebx",
                "ret",
            ],
        )

    def test_for_loop_lowering(self):
        self.assertEqual(
            instructions("i32 s = 0; for i in 1 to 3 { s = i; }"),
            [
                "mov dword [s], 0",
                "mov dword [i], 1",
                "loop_begin_i_0:",
                "mov ebx, 3",
                "mov eax, dword [i]",
                "cmp eax, ebx",
                "jg loop_end_i_0",
                "mov eax, dword [i]",
                "mov dword [s], eax",
                "inc dword [i]",
                "jmp loop_begin_i_0",
                "loop_end_i_0:",
                "ret",
            ],
        )

    def test_loops_sharing_an_iterator_get_distinct_labels(self):
        body = instructions("for i in 0 to 1 { } for i in 0 to 2 { }")
        labels = [line for line in body if line.endswith(":")]
        self.assertEqual(
            labels,
            ["loop_begin_i_0:", "loop_end_i_0:", "loop_begin_i_1:", "loop_end_i_1:"],
        )

    def test_binary_bound_is_evaluated_before_loading_iterator(self):
        body = instructions("i32 n = 2; for i in 0 to n + 1 { }")
        start = body.index("loop_begin_i_0:")
        self.assertEqual(
            body[start + 1:start + 9],
            [
                "mov eax, dword [n]",
                "push rax",
                "mov ebx, 1",
                "pop rax",
                "add eax, ebx",
                "mov ebx, eax",
                "mov eax, dword [i]",
                "cmp eax, ebx",
            ],
        )

    def test_shadowing_iterator_aliases_the_outer_cell(self):
        # Storage is flat: the loop writes the same cell the outer i uses.
        source = "i32 i = 5; for i in 0 to 3 { } exit i;"
        self.assertEqual(bss(source), ["i resd 1"])
        body = instructions(source)
        self.assertEqual(body[0], "mov dword [i], 5")
        self.assertEqual(body[1], "mov dword [i], 0")
        self.assertEqual(body[-2], "mov eax, dword [i]")

    def test_every_exit_is_emitted(self):
        self.assertEqual(instructions("exit 1; exit 2;"), ["mov eax, 1", "mov eax, 2", "ret"])

    def test_output_is_deterministic(self):
        source = "i32 z = 1; i32 a = z; for k in a to 3 { z = k; } exit z + a;"
        self.assertEqual(compile_source(source), compile_source(source))

    def test_generator_handles_binary_store(self):
        program = Entry([VariableDeclaration("x", "i32", BinaryOp(Int(1), "+", Int(2)))])
        self.assertIn("    mov dword [x], eax", generate_assembly(program))

    def test_malformed_tree_is_rejected(self):
        with self.assertRaises(GenerationError):
            generate_assembly(Entry([Exit(BinaryOp(Int(1), "%", Int(2)))]))
        with self.assertRaises(GenerationError):
            generate_assembly(Entry(["not a statement"]))
        with self.assertRaises(GenerationError):
            generate_assembly(Exit(Int(1)))

    def test_float_bits(self):
        self.assertEqual(Float.from_text("1.0").bits, 0x3F800000)
        self.assertEqual(instructions("exit 0.5;"), [f"mov eax, {0x3F000000}", "ret"])

    def test_identifier_in_exit_loads_cell(self):
        generated = generate_assembly(Entry([Exit(Ident("q"))]))
        self.assertIn("    mov eax, dword [q]", generated)


if __name__ == "__main__":
    unittest.main()

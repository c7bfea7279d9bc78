"""
Codec Tests for the bytecode VM.

Checks the record layout byte-for-byte (tag + little-endian u64 operands,
length-prefixed UTF-8 for OutStr), the clean end-of-program rule, and
the FormatError family for bad input.
"""
import io
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from bytecode_vm.codec import (
    encode, decode, encode_instruction, decode_instruction,
    read_program, write_program,
)
from bytecode_vm.errors import FormatError, TruncatedRecordError, VMError
from bytecode_vm.opcodes import (
    U64_MAX, OPCODES, Opcode,
    Push, Out, In, OutStr, Copy, Add, Gt, Eq, Jmp, Dec, Inc, InByte, OutByte,
)


def _le(value: int) -> bytes:
    return value.to_bytes(8, 'little')


ONE_OF_EACH = [
    Push(5), Out(0), In(), OutStr("hi"), Copy(1), Add(1, 0),
    Gt(0, 1, 7), Eq(2, 3, 9), Jmp(4), Dec(2), Inc(0), InByte(), OutByte(0),
]


class TestOpcodeTable:
    def test_every_tag_registered(self):
        """Tags 0..12 map to exactly the thirteen instruction classes."""
        assert sorted(int(op) for op in OPCODES) == list(range(13))

    def test_one_of_each_covers_table(self):
        assert {type(i) for i in ONE_OF_EACH} == set(OPCODES.values())

    def test_class_tags(self):
        assert Push.opcode == Opcode.PUSH == 0
        assert OutStr.opcode == Opcode.OUT_STR == 3
        assert OutByte.opcode == Opcode.OUT_BYTE == 12


class TestInstructionValues:
    def test_operands_tuple(self):
        assert Gt(0, 1, 7).operands == (0, 1, 7)
        assert In().operands == ()
        assert OutStr("x").operands == ("x",)

    @pytest.mark.parametrize("bad", [-1, U64_MAX + 1])
    def test_out_of_range_operand(self, bad):
        with pytest.raises(ValueError):
            Push(bad)

    def test_bool_is_not_an_operand(self):
        with pytest.raises(ValueError):
            Jmp(True)

    def test_outstr_needs_text(self):
        with pytest.raises(ValueError):
            OutStr(b"bytes")

    def test_frozen(self):
        instr = Push(1)
        with pytest.raises(AttributeError):
            instr.value = 2

    def test_equality_is_per_variant(self):
        assert In() == In()
        assert In() != InByte()
        assert Dec(1) != Inc(1)


class TestEncoding:
    """Exact record bytes."""

    def test_push_record(self):
        """Push(5) → 00 + 05 00 00 00 00 00 00 00"""
        data = encode_instruction(Push(5))
        assert data == b'\x00' + _le(5)
        assert len(data) == 9

    def test_add_record(self):
        """Add(a, b) → 05 + a + b, 17 bytes"""
        data = encode_instruction(Add(1, 2))
        assert data == b'\x05' + _le(1) + _le(2)
        assert len(data) == 17

    def test_three_operand_record(self):
        data = encode_instruction(Eq(2, 3, 9))
        assert data == b'\x07' + _le(2) + _le(3) + _le(9)
        assert len(data) == 25

    def test_inherent_records(self):
        assert encode_instruction(In()) == b'\x02'
        assert encode_instruction(InByte()) == b'\x0b'

    def test_outstr_record(self):
        """OutStr(s) → 03 + len(s) + s"""
        data = encode_instruction(OutStr("hello"))
        assert data == b'\x03' + _le(5) + b'hello'
        assert len(data) == 9 + 5

    def test_outstr_length_counts_utf8_bytes(self):
        text = "héllo ✓"
        raw = text.encode('utf-8')
        data = encode_instruction(OutStr(text))
        assert len(data) == 9 + len(raw)
        assert data[1:9] == _le(len(raw))

    def test_empty_outstr(self):
        assert encode_instruction(OutStr("")) == b'\x03' + _le(0)

    def test_max_operand(self):
        assert encode_instruction(Jmp(U64_MAX)) == b'\x08' + b'\xff' * 8

    def test_program_is_concatenation(self):
        program = [Push(5), Push(3), Add(1, 0), Out(0)]
        assert encode(program) == b''.join(encode_instruction(i) for i in program)
        assert len(encode(program)) == 9 + 9 + 17 + 9

    def test_empty_program(self):
        assert encode([]) == b''

    def test_rejects_non_instruction(self):
        with pytest.raises(TypeError):
            encode_instruction(("Push", 5))


class TestDecoding:
    @pytest.mark.parametrize("instr", ONE_OF_EACH + [
        Push(0), Push(U64_MAX), OutStr(""), OutStr("ünïcode ✓"),
        Gt(U64_MAX, 0, U64_MAX),
    ], ids=repr)
    def test_round_trip(self, instr):
        assert decode(encode_instruction(instr)) == [instr]

    def test_whole_program(self):
        assert decode(encode(ONE_OF_EACH)) == ONE_OF_EACH

    def test_empty_input_is_empty_program(self):
        assert decode(b'') == []

    def test_accepts_stream(self):
        assert decode(io.BytesIO(encode([Push(1), Out(0)]))) == [Push(1), Out(0)]

    def test_accepts_bytearray(self):
        assert decode(bytearray(encode([In()]))) == [In()]

    def test_decode_instruction_clean_end(self):
        stream = io.BytesIO(encode_instruction(Jmp(3)))
        assert decode_instruction(stream) == Jmp(3)
        assert decode_instruction(stream) is None


class TestFormatErrors:
    def test_unknown_tag(self):
        with pytest.raises(FormatError) as exc:
            decode(b'\x0d')
        assert exc.value.offset == 0
        assert "0x0D" in str(exc.value)

    def test_unknown_tag_offset_after_valid_record(self):
        with pytest.raises(FormatError) as exc:
            decode(encode_instruction(Push(1)) + b'\xff')
        assert exc.value.offset == 9

    def test_truncated_operand(self):
        """Stream ends mid-field → TruncatedRecordError, not a clean end."""
        with pytest.raises(TruncatedRecordError):
            decode(encode_instruction(Push(5))[:-1])

    def test_truncated_second_operand(self):
        with pytest.raises(TruncatedRecordError) as exc:
            decode(encode([In(), Add(1, 2)])[:12])
        assert exc.value.offset == 1

    def test_tag_only(self):
        with pytest.raises(TruncatedRecordError):
            decode(b'\x00')

    def test_truncated_string_body(self):
        data = b'\x03' + _le(10) + b'ab'
        with pytest.raises(TruncatedRecordError):
            decode(data)

    def test_huge_length_prefix_is_truncation(self):
        data = b'\x03' + _le(U64_MAX) + b'abc'
        with pytest.raises(TruncatedRecordError):
            decode(data)

    def test_invalid_utf8(self):
        data = b'\x03' + _le(2) + b'\xff\xfe'
        with pytest.raises(FormatError) as exc:
            decode(data)
        assert not isinstance(exc.value, TruncatedRecordError)

    def test_error_family(self):
        with pytest.raises(VMError):
            decode(b'\x42')
        with pytest.raises(ValueError):
            decode(b'\x42')


class TestFiles:
    def test_write_then_read(self, tmp_path):
        path = tmp_path / "prog.bin"
        size = write_program(path, ONE_OF_EACH)
        assert size == path.stat().st_size
        assert read_program(path) == ONE_OF_EACH

    def test_read_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_program(tmp_path / "nope.bin")

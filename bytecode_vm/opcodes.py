"""
Instruction set for the bytecode VM.

Thirteen instructions, each a frozen dataclass carrying zero to three
unsigned 64-bit operands, or (OutStr) a single string. Stack operands are
offsets from the top of the stack: offset 0 is the top element, offset k
is absolute index ``len(stack) - 1 - k`` at the moment the instruction
runs. Branch targets are absolute program indices.

  Tag  Mnemonic  Operands              Effect
  ---  --------  --------------------  ------------------------------------
   0   Push      value                 push immediate
   1   Out       offset                print stack[offset] as decimal + \\n
   2   In        -                     read a decimal line, push it
   3   OutStr    text                  print text + \\n
   4   Copy      offset                push a copy of stack[offset]
   5   Add       a, b                  remove both slots, push the sum
   6   Gt        a, b, target          jump if stack[a] > stack[b]
   7   Eq        a, b, target          jump if stack[a] == stack[b]
   8   Jmp       target                jump
   9   Dec       offset                stack[offset] -= 1
  10   Inc       offset                stack[offset] += 1
  11   InByte    -                     read one raw byte, push it
  12   OutByte   offset                write stack[offset] as one raw byte

The tag numbers are the wire format (see codec.py); never renumber them.
"""

from __future__ import annotations
from dataclasses import dataclass, fields
from enum import IntEnum
from typing import ClassVar, Dict, Sequence, Tuple, Type, Union

__all__ = [
    'U64_MAX', 'BYTE_MAX', 'U64', 'STR', 'Opcode', 'OPCODES',
    'Push', 'Out', 'In', 'OutStr', 'Copy', 'Add', 'Gt', 'Eq', 'Jmp',
    'Dec', 'Inc', 'InByte', 'OutByte',
    'Instruction', 'Program', 'INSTRUCTION_TYPES',
]

U64_MAX = (1 << 64) - 1
BYTE_MAX = 0xFF

# Payload field kinds
U64 = 'U64'   # little-endian unsigned 8-byte integer
STR = 'STR'   # u64 length prefix + UTF-8 bytes


class Opcode(IntEnum):
    PUSH = 0
    OUT = 1
    IN = 2
    OUT_STR = 3
    COPY = 4
    ADD = 5
    GT = 6
    EQ = 7
    JMP = 8
    DEC = 9
    INC = 10
    IN_BYTE = 11
    OUT_BYTE = 12


class _Instruction:
    """Shared behaviour for the instruction dataclasses."""

    opcode: ClassVar[Opcode]
    payload: ClassVar[Tuple[str, ...]]

    def __post_init__(self):
        for f, kind in zip(fields(self), self.payload):
            value = getattr(self, f.name)
            if kind == STR:
                if not isinstance(value, str):
                    raise ValueError(
                        f"{type(self).__name__}.{f.name} must be str, got {type(value).__name__}")
            elif isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(
                    f"{type(self).__name__}.{f.name} must be int, got {type(value).__name__}")
            elif not 0 <= value <= U64_MAX:
                raise ValueError(
                    f"{type(self).__name__}.{f.name} must be 0..2**64-1, got {value}")

    @property
    def operands(self) -> tuple:
        return tuple(getattr(self, f.name) for f in fields(self))


@dataclass(frozen=True)
class Push(_Instruction):
    value: int


@dataclass(frozen=True)
class Out(_Instruction):
    offset: int


@dataclass(frozen=True)
class In(_Instruction):
    pass


@dataclass(frozen=True)
class OutStr(_Instruction):
    text: str


@dataclass(frozen=True)
class Copy(_Instruction):
    offset: int


@dataclass(frozen=True)
class Add(_Instruction):
    a: int
    b: int


@dataclass(frozen=True)
class Gt(_Instruction):
    a: int
    b: int
    target: int


@dataclass(frozen=True)
class Eq(_Instruction):
    a: int
    b: int
    target: int


@dataclass(frozen=True)
class Jmp(_Instruction):
    target: int


@dataclass(frozen=True)
class Dec(_Instruction):
    offset: int


@dataclass(frozen=True)
class Inc(_Instruction):
    offset: int


@dataclass(frozen=True)
class InByte(_Instruction):
    pass


@dataclass(frozen=True)
class OutByte(_Instruction):
    offset: int


Instruction = Union[Push, Out, In, OutStr, Copy, Add, Gt, Eq, Jmp,
                    Dec, Inc, InByte, OutByte]
Program = Sequence[Instruction]


# ──────────────────────────────────────────────
# Opcode table
# ──────────────────────────────────────────────
# Format: { tag: instruction_class }; the class carries its payload shape.

OPCODES: Dict[Opcode, Type[_Instruction]] = {}


def _op(opcode: Opcode, cls: Type[_Instruction], *payload: str):
    """Register an instruction class under its tag byte."""
    if opcode in OPCODES:
        raise ValueError(f"duplicate opcode {opcode!r}")
    if len(payload) != len(fields(cls)):
        raise ValueError(f"{cls.__name__}: payload {payload} does not match its fields")
    cls.opcode = opcode
    cls.payload = payload
    OPCODES[opcode] = cls


_op(Opcode.PUSH,     Push,    U64)
_op(Opcode.OUT,      Out,     U64)
_op(Opcode.IN,       In)
_op(Opcode.OUT_STR,  OutStr,  STR)
_op(Opcode.COPY,     Copy,    U64)
_op(Opcode.ADD,      Add,     U64, U64)
_op(Opcode.GT,       Gt,      U64, U64, U64)
_op(Opcode.EQ,       Eq,      U64, U64, U64)
_op(Opcode.JMP,      Jmp,     U64)
_op(Opcode.DEC,      Dec,     U64)
_op(Opcode.INC,      Inc,     U64)
_op(Opcode.IN_BYTE,  InByte)
_op(Opcode.OUT_BYTE, OutByte, U64)

_unregistered = [op.name for op in Opcode if op not in OPCODES]
if _unregistered:
    raise ImportError(f"opcodes without an instruction class: {_unregistered}")

INSTRUCTION_TYPES: Tuple[Type[_Instruction], ...] = tuple(OPCODES.values())

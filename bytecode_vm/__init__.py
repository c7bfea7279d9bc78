"""
bytecode_vm: a minimal stack-based bytecode virtual machine
============================================================
A closed 13-instruction set, a flat little-endian binary program format,
and a fetch-decode-execute loop over a stack of unsigned 64-bit values.

Architecture:
    ┌──────────────┐    ┌──────────┐    ┌──────────────┐    ┌───────────┐
    │ program file │───>│  codec   │───>│ instructions │───>│  machine  │───> output
    │ (.bin)       │    │ (decode) │    │ (opcodes.py) │    │ (run)     │<─── input
    └──────────────┘    └──────────┘    └──────────────┘    └───────────┘

    - opcodes.py:  Instruction dataclasses + tag table (the wire numbering)
    - codec.py:    encode/decode records (struct, little-endian)
    - machine.py:  stack, pc, dispatch table, halt rules
    - errors.py:   FormatError, ParseError, BoundsError, VMArithmeticError

Typical use:
    program = decode(data)
    vm = new_machine(program)
    run(vm, sys.stdin, sys.stdout)
"""

__version__ = "0.2.0"

from .errors import (
    VMError, FormatError, TruncatedRecordError, ParseError, BoundsError,
    VMArithmeticError,
)
from .opcodes import (
    Opcode, Instruction, Program,
    Push, Out, In, OutStr, Copy, Add, Gt, Eq, Jmp, Dec, Inc, InByte, OutByte,
)
from .codec import (
    encode, decode, encode_instruction, decode_instruction,
    read_program, write_program,
)
from .machine import Machine, StopReason, new_machine, run
from .listing import format_listing

__all__ = [
    'VMError', 'FormatError', 'TruncatedRecordError', 'ParseError',
    'BoundsError', 'VMArithmeticError',
    'Opcode', 'Instruction', 'Program',
    'Push', 'Out', 'In', 'OutStr', 'Copy', 'Add', 'Gt', 'Eq', 'Jmp',
    'Dec', 'Inc', 'InByte', 'OutByte',
    'encode', 'decode', 'encode_instruction', 'decode_instruction',
    'read_program', 'write_program',
    'Machine', 'StopReason', 'new_machine', 'run',
    'format_listing',
]

"""
Fixed example programs, hand-built from instruction objects.

  echo  copy stdin to stdout byte by byte until end of input
  sum   read n, run the counting loop down to 0, print the accumulator
  hello print a greeting
"""

from __future__ import annotations
from typing import Dict, List

from .opcodes import (
    Instruction, Push, Out, In, OutStr, Copy, Add, Eq, Jmp, Dec, InByte, OutByte,
)

__all__ = ['EXAMPLES', 'echo_program', 'sum_program', 'hello_program']


def echo_program() -> List[Instruction]:
    return [
        InByte(),       # 0
        OutByte(0),
        Jmp(0),
    ]


def sum_program() -> List[Instruction]:
    # stack layout entering the loop: [0, n, acc, 1]
    return [
        Push(0),        # 0
        In(),
        Push(0),
        Push(1),
        Eq(2, 3, 9),    # 4  n == 0 -> done
        Copy(0),        # 5
        Add(1, 2),
        Dec(2),
        Jmp(4),
        Out(0),         # 9
    ]


def hello_program() -> List[Instruction]:
    return [OutStr("Hello, world!")]


EXAMPLES: Dict[str, Dict] = {
    "echo":  {"build": echo_program,  "description": "Echo input bytes to output"},
    "sum":   {"build": sum_program,   "description": "Read n, loop n times, print the result"},
    "hello": {"build": hello_program, "description": "Print a greeting"},
}

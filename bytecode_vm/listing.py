"""Human-readable program dump (index, file offset, tag, instruction).

Output only: the listing is for eyeballing a program file, there is no
parser that reads it back.
"""

from __future__ import annotations
from typing import Iterable, Set

from .codec import encode_instruction
from .opcodes import Gt, Eq, Jmp, Instruction

__all__ = ['format_listing', 'branch_targets']


def branch_targets(program: Iterable[Instruction]) -> Set[int]:
    """Absolute pc values that some Gt/Eq/Jmp can jump to."""
    return {instr.target for instr in program if isinstance(instr, (Gt, Eq, Jmp))}


def format_listing(program: Iterable[Instruction]) -> str:
    """Return one line per instruction; branch targets are marked with '>'."""
    program = list(program)
    targets = branch_targets(program)
    lines = [f"{'PC':>6}  {'OFFSET':>8}  {'TAG':>3}  INSTRUCTION", "-" * 60]
    offset = 0
    for pc, instr in enumerate(program):
        mark = '>' if pc in targets else ' '
        lines.append(f"{mark}{pc:5d}  {offset:8d}  {int(instr.opcode):3d}  {instr!r}")
        offset += len(encode_instruction(instr))
    lines.append("-" * 60)
    lines.append(f"{len(program)} instructions, {offset} bytes")
    return '\n'.join(lines)

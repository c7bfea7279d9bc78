"""
Execution engine: program + value stack + program counter.

Execution model, one step:
  1. Fetch the instruction at pc (pc past the end -> PROGRAM_END)
  2. Dispatch to its handler, which performs the stack / I/O effect
  3. Advance: handler returned None -> pc += 1,
              handler returned a target -> pc = target (no increment)

Handlers never touch pc themselves. A taken Gt/Eq or a Jmp is the only way
to get a non-sequential pc, and it replaces the increment for that step.

Termination:
  PROGRAM_END   pc ran past the last instruction      (clean)
  END_OF_INPUT  In / InByte found the input exhausted (clean)
  STEP_LIMIT    max_steps reached (only when a limit is set)
  anything else raises: ParseError, BoundsError, VMArithmeticError, or
  the OSError from a failing output stream.

I/O: In and InByte share one buffered binary reader (readline() and
read(1) on the same object), so switching between line and byte reads
never drops or repeats input bytes. Output is a binary writer.
"""

from __future__ import annotations
import io
import logging
from enum import Enum
from typing import BinaryIO, Callable, Dict, Iterable, List, Optional

from .errors import BoundsError, ParseError, VMArithmeticError, VMError
from .opcodes import (
    U64_MAX, BYTE_MAX, INSTRUCTION_TYPES, Instruction,
    Push, Out, In, OutStr, Copy, Add, Gt, Eq, Jmp, Dec, Inc, InByte, OutByte,
)

__all__ = ['StopReason', 'Machine', 'new_machine', 'run']

log = logging.getLogger(__name__)


class StopReason(Enum):
    PROGRAM_END = 'PROGRAM_END'
    END_OF_INPUT = 'END_OF_INPUT'
    STEP_LIMIT = 'STEP_LIMIT'


class Machine:
    """Stack machine that owns one program for one run.

    Usage:
        vm = Machine(decode(data))
        reason = vm.run(sys.stdin, sys.stdout)
        print(vm.stack)
    """

    def __init__(self, program: Iterable[Instruction], *,
                 trace: bool = False, max_steps: Optional[int] = None):
        program = tuple(program)
        for index, instr in enumerate(program):
            if not isinstance(instr, INSTRUCTION_TYPES):
                raise TypeError(f"program[{index}] is not an instruction: {instr!r}")
        if max_steps is not None and max_steps < 0:
            raise ValueError(f"max_steps must be >= 0, got {max_steps}")

        self.program = program
        self.stack: List[int] = []
        self.pc = 0
        self.steps = 0
        self.max_steps = max_steps

        self._trace = trace
        self._trace_output: List[str] = []

        self._dispatch = self._build_dispatch()

    @property
    def halted(self) -> bool:
        return self.pc >= len(self.program)

    # ══════════════════════════════════════════════
    # Execution
    # ══════════════════════════════════════════════

    def step(self, inp: BinaryIO, out: BinaryIO) -> Optional[StopReason]:
        """Execute one instruction. Returns a StopReason if the run is over.

        ``inp`` and ``out`` must already be binary streams; run() takes
        care of unwrapping text streams such as sys.stdin.
        """
        pc = self.pc
        if pc >= len(self.program):
            return StopReason.PROGRAM_END
        instr = self.program[pc]

        if self._trace:
            line = f"{pc:04d}: {instr!r} stack={self.stack}"
            self._trace_output.append(line)
            log.debug(line)

        try:
            target = self._dispatch[type(instr)](instr, inp, out)
        except _EndOfInput:
            log.debug("End of input at pc %d", pc)
            return StopReason.END_OF_INPUT
        except VMError as e:
            raise e.at(pc, instr)

        self.steps += 1
        self.pc = pc + 1 if target is None else target
        return None

    def run(self, inp, out) -> StopReason:
        """Run until a clean halt or an error.

        ``inp`` may be a binary reader, a text stream with a ``buffer``
        (sys.stdin), or bytes. ``out`` may be a binary writer or a text
        stream with a ``buffer`` (sys.stdout).
        """
        inp = _as_reader(inp)
        out = _as_writer(out)
        log.debug("Run start: %d instructions", len(self.program))
        try:
            while True:
                if self.max_steps is not None and self.steps >= self.max_steps:
                    reason = StopReason.STEP_LIMIT
                    break
                reason = self.step(inp, out)
                if reason is not None:
                    break
        finally:
            _flush(out)
        log.debug("Run stopped: %s after %d steps (pc=%d, depth=%d)",
                  reason.value, self.steps, self.pc, len(self.stack))
        return reason

    # ══════════════════════════════════════════════
    # Stack addressing
    # ══════════════════════════════════════════════

    def _resolve(self, offset: int) -> int:
        """Turn an offset-from-top into an absolute stack index."""
        size = len(self.stack)
        if offset >= size:
            raise BoundsError(
                f"stack offset {offset} out of range (stack depth {size})",
                offset=offset, stack_size=size)
        return size - 1 - offset

    # ══════════════════════════════════════════════
    # Instruction handlers
    # ══════════════════════════════════════════════
    # Each returns None to fall through or an absolute pc to jump to.

    def _build_dispatch(self) -> Dict[type, Callable]:
        dispatch = {
            Push: self._op_push,
            Out: self._op_out,
            In: self._op_in,
            OutStr: self._op_out_str,
            Copy: self._op_copy,
            Add: self._op_add,
            Gt: self._op_gt,
            Eq: self._op_eq,
            Jmp: self._op_jmp,
            Dec: self._op_dec,
            Inc: self._op_inc,
            InByte: self._op_in_byte,
            OutByte: self._op_out_byte,
        }
        missing = [cls.__name__ for cls in INSTRUCTION_TYPES if cls not in dispatch]
        if missing:
            raise NotImplementedError(f"No handler for: {', '.join(missing)}")
        return dispatch

    def _op_push(self, instr: Push, inp, out):
        self.stack.append(instr.value)

    def _op_out(self, instr: Out, inp, out):
        value = self.stack[self._resolve(instr.offset)]
        out.write(f"{value}\n".encode('ascii'))

    def _op_in(self, instr: In, inp, out):
        _flush(out)
        line = inp.readline()
        if not line:
            raise _EndOfInput()
        text = line
        if text.endswith(b'\n'):
            text = text[:-1]
            if text.endswith(b'\r'):
                text = text[:-1]
        digits = text[1:] if text.startswith(b'+') else text
        if not digits or not digits.isdigit():
            raise ParseError(f"expected a non-negative integer, got {text!r}", line=line)
        value = int(digits)
        if value > U64_MAX:
            raise ParseError(f"integer {value} does not fit in 64 bits", line=line)
        self.stack.append(value)

    def _op_out_str(self, instr: OutStr, inp, out):
        out.write(instr.text.encode('utf-8') + b'\n')

    def _op_copy(self, instr: Copy, inp, out):
        self.stack.append(self.stack[self._resolve(instr.offset)])

    def _op_add(self, instr: Add, inp, out):
        ia = self._resolve(instr.a)
        ib = self._resolve(instr.b)
        if ia == ib:
            raise BoundsError(
                f"Add operands {instr.a} and {instr.b} name the same stack slot",
                offset=instr.a, stack_size=len(self.stack))
        total = self.stack[ia] + self.stack[ib]
        if total > U64_MAX:
            raise VMArithmeticError(
                f"Add overflow: {self.stack[ia]} + {self.stack[ib]} exceeds 64 bits")
        lo, hi = sorted((ia, ib))
        del self.stack[lo]
        del self.stack[hi - 1]
        self.stack.append(total)

    def _op_gt(self, instr: Gt, inp, out):
        a = self.stack[self._resolve(instr.a)]
        b = self.stack[self._resolve(instr.b)]
        if a > b:
            return instr.target
        return None

    def _op_eq(self, instr: Eq, inp, out):
        a = self.stack[self._resolve(instr.a)]
        b = self.stack[self._resolve(instr.b)]
        if a == b:
            return instr.target
        return None

    def _op_jmp(self, instr: Jmp, inp, out):
        return instr.target

    def _op_dec(self, instr: Dec, inp, out):
        index = self._resolve(instr.offset)
        if self.stack[index] == 0:
            raise VMArithmeticError("Dec underflow: value is already 0")
        self.stack[index] -= 1

    def _op_inc(self, instr: Inc, inp, out):
        index = self._resolve(instr.offset)
        if self.stack[index] == U64_MAX:
            raise VMArithmeticError("Inc overflow: value is already 2**64-1")
        self.stack[index] += 1

    def _op_in_byte(self, instr: InByte, inp, out):
        _flush(out)
        data = inp.read(1)
        if not data:
            raise _EndOfInput()
        self.stack.append(data[0])

    def _op_out_byte(self, instr: OutByte, inp, out):
        value = self.stack[self._resolve(instr.offset)]
        if value > BYTE_MAX:
            raise VMArithmeticError(f"OutByte value {value} does not fit in one byte")
        out.write(bytes((value,)))

    # ══════════════════════════════════════════════
    # Trace / Debug
    # ══════════════════════════════════════════════

    def enable_trace(self, enable: bool = True):
        """Record every executed step (also logged at DEBUG)."""
        self._trace = enable

    def get_trace(self) -> str:
        return '\n'.join(self._trace_output)


# Internal exception for flow control
class _EndOfInput(Exception):
    pass


def _unwrap_text(stream):
    buffer = getattr(stream, 'buffer', None)
    if buffer is None:
        raise TypeError(f"{type(stream).__name__} has no binary buffer; pass a binary stream")
    return buffer


def _as_reader(stream) -> BinaryIO:
    if isinstance(stream, (bytes, bytearray, memoryview)):
        return io.BytesIO(bytes(stream))
    if isinstance(stream, io.TextIOBase):
        return _unwrap_text(stream)
    if isinstance(stream, io.RawIOBase):
        return io.BufferedReader(stream)
    return stream


def _as_writer(stream) -> BinaryIO:
    if isinstance(stream, io.TextIOBase):
        return _unwrap_text(stream)
    return stream


def _flush(stream):
    flush = getattr(stream, 'flush', None)
    if flush is not None:
        flush()


# ══════════════════════════════════════════════
# Module-level entry points
# ══════════════════════════════════════════════

def new_machine(program: Iterable[Instruction], **kwargs) -> Machine:
    """Create a machine with an empty stack and pc 0."""
    return Machine(program, **kwargs)


def run(machine: Machine, inp, out) -> StopReason:
    """Run ``machine`` against the given input and output streams."""
    return machine.run(inp, out)

"""
Error hierarchy for the bytecode VM.

Every error the loader or the engine raises derives from VMError, so a
caller can catch the whole family in one place. Each kind also derives
from the closest builtin so generic handlers keep working:

  FormatError          ValueError       bad program bytes (codec)
    TruncatedRecordError                record cut off mid-field
  ParseError           ValueError       In read a line that is not a u64
  BoundsError          IndexError       stack offset outside the stack
  VMArithmeticError    ArithmeticError  byte range / under- / overflow
"""

from __future__ import annotations
from typing import Optional

__all__ = [
    'VMError', 'FormatError', 'TruncatedRecordError', 'ParseError',
    'BoundsError', 'VMArithmeticError',
]


class VMError(Exception):
    """Base class for all loader and runtime errors.

    The engine fills in ``pc`` and ``instruction`` before re-raising a
    runtime error so the message points at the failing step.
    """
    def __init__(self, message: str):
        self.message = message
        self.pc: Optional[int] = None
        self.instruction = None
        super().__init__(message)

    def at(self, pc: int, instruction) -> 'VMError':
        self.pc = pc
        self.instruction = instruction
        return self

    def __str__(self) -> str:
        if self.pc is None:
            return self.message
        return f"pc {self.pc} ({self.instruction!r}): {self.message}"


class FormatError(VMError, ValueError):
    """Raised when program bytes cannot be decoded."""
    def __init__(self, message: str, offset: int = 0):
        self.offset = offset
        super().__init__(f"byte {offset}: {message}")


class TruncatedRecordError(FormatError):
    """Stream ended inside a record rather than on a tag-byte boundary."""


class ParseError(VMError, ValueError):
    """Raised when In reads a line that is not a non-negative decimal u64."""
    def __init__(self, message: str, line: bytes = b''):
        self.line = line
        super().__init__(message)


class BoundsError(VMError, IndexError):
    """Raised when a stack offset does not resolve inside the stack."""
    def __init__(self, message: str, offset: int = 0, stack_size: int = 0):
        self.offset = offset
        self.stack_size = stack_size
        super().__init__(message)


class VMArithmeticError(VMError, ArithmeticError):
    """Raised for OutByte values above 255 and u64 under/overflow."""

"""
Binary program codec.

A program file is a flat concatenation of records, no header or version:

  +-----+------------------------------------------+
  | tag | payload (depends on tag, see opcodes.py) |
  +-----+------------------------------------------+
   1 B   0-3 x u64 little-endian (8 B each), or
         u64 little-endian length + that many UTF-8 bytes (OutStr)

  Push(5)     -> 00 05 00 00 00 00 00 00 00                       9 bytes
  Add(1, 0)   -> 05 01 00 .. 00 00 00 .. 00                      17 bytes
  In()        -> 02                                               1 byte
  OutStr("hi")-> 03 02 00 00 00 00 00 00 00 68 69                11 bytes

Decoding stops successfully only when the stream ends exactly on a tag-byte
boundary. Anything else is a FormatError: an unknown tag, a record cut off
mid-field (TruncatedRecordError), or an OutStr body that is not UTF-8.
"""

from __future__ import annotations
import io
import logging
import struct
from pathlib import Path
from typing import BinaryIO, Iterable, List, Optional, Union

from .errors import FormatError, TruncatedRecordError
from .opcodes import OPCODES, STR, Instruction, INSTRUCTION_TYPES

__all__ = [
    'encode_instruction', 'decode_instruction', 'encode', 'decode',
    'read_program', 'write_program',
]

log = logging.getLogger(__name__)

_U64 = struct.Struct('<Q')

# Large OutStr bodies are read in chunks so a bogus length prefix cannot
# force one huge allocation before the truncation is noticed.
_READ_CHUNK = 64 * 1024


# ──────────────────────────────────────────────
# Encoding
# ──────────────────────────────────────────────

def encode_instruction(instr: Instruction) -> bytes:
    """Encode one instruction as a tag byte followed by its payload."""
    if not isinstance(instr, INSTRUCTION_TYPES):
        raise TypeError(f"not an instruction: {instr!r}")
    parts = [bytes([instr.opcode])]
    for kind, value in zip(instr.payload, instr.operands):
        if kind == STR:
            raw = value.encode('utf-8')
            parts.append(_U64.pack(len(raw)))
            parts.append(raw)
        else:
            parts.append(_U64.pack(value))
    return b''.join(parts)


def encode(program: Iterable[Instruction]) -> bytes:
    """Encode a program: the concatenation of each record, in order."""
    return b''.join(encode_instruction(instr) for instr in program)


# ──────────────────────────────────────────────
# Decoding
# ──────────────────────────────────────────────

class _RecordReader:
    """Binary stream wrapper that tracks the byte offset for error messages."""

    def __init__(self, stream: BinaryIO):
        self._stream = stream
        self.pos = 0

    def read_tag(self) -> Optional[int]:
        data = self._stream.read(1)
        if not data:
            return None
        self.pos += 1
        return data[0]

    def read_exact(self, size: int, record_start: int, what: str) -> bytes:
        chunks = []
        remaining = size
        while remaining:
            data = self._stream.read(min(remaining, _READ_CHUNK))
            if not data:
                got = size - remaining
                raise TruncatedRecordError(
                    f"stream ended inside {what} ({got} of {size} bytes)",
                    offset=record_start)
            chunks.append(data)
            remaining -= len(data)
            self.pos += len(data)
        return b''.join(chunks)


def _decode_record(reader: _RecordReader) -> Optional[Instruction]:
    start = reader.pos
    tag = reader.read_tag()
    if tag is None:
        return None
    cls = OPCODES.get(tag)
    if cls is None:
        raise FormatError(f"unknown opcode tag 0x{tag:02X}", offset=start)

    operands = []
    for kind in cls.payload:
        if kind == STR:
            (length,) = _U64.unpack(
                reader.read_exact(_U64.size, start, f"{cls.__name__} length"))
            raw = reader.read_exact(length, start, f"{cls.__name__} text")
            try:
                operands.append(raw.decode('utf-8'))
            except UnicodeDecodeError as e:
                raise FormatError(f"{cls.__name__} text is not valid UTF-8: {e}",
                                  offset=start) from e
        else:
            (value,) = _U64.unpack(
                reader.read_exact(_U64.size, start, f"{cls.__name__} operand"))
            operands.append(value)
    return cls(*operands)


def decode_instruction(stream: BinaryIO) -> Optional[Instruction]:
    """Decode one record from a binary stream.

    Returns None when the stream is already exhausted (a clean boundary).
    Raises FormatError / TruncatedRecordError otherwise.
    """
    return _decode_record(_RecordReader(stream))


def decode(data: Union[bytes, bytearray, memoryview, BinaryIO]) -> List[Instruction]:
    """Decode a whole program from bytes or a binary stream."""
    if isinstance(data, (bytes, bytearray, memoryview)):
        stream = io.BytesIO(bytes(data))
    else:
        stream = data
    reader = _RecordReader(stream)
    program: List[Instruction] = []
    while True:
        instr = _decode_record(reader)
        if instr is None:
            break
        program.append(instr)
    log.debug("Decoded %d instructions from %d bytes", len(program), reader.pos)
    return program


# ──────────────────────────────────────────────
# Files
# ──────────────────────────────────────────────

def read_program(path: Union[str, Path]) -> List[Instruction]:
    """Load and decode a program file."""
    with open(path, 'rb') as f:
        return decode(f)


def write_program(path: Union[str, Path], program: Iterable[Instruction]) -> int:
    """Encode a program to a file. Returns the number of bytes written."""
    data = encode(program)
    with open(path, 'wb') as f:
        f.write(data)
    log.debug("Wrote %d bytes to %s", len(data), path)
    return len(data)

#!/usr/bin/env python3
"""
bvm-example: write one of the built-in example programs to a file

Usage:
    python bvm_example.py <output.bin> [--program echo|sum|hello] [--dump]
    python bvm_example.py --list

The programs are built from instruction objects and written with the same
codec the runner loads with, so any tool that authors programs by hand
must produce exactly these tag/operand records.
"""

import argparse
import os
import sys

# Allow running from project root or as module
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from bytecode_vm import __version__, format_listing, write_program
from bytecode_vm.examples import EXAMPLES


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="bvm-example",
        description="Write an example bytecode VM program",
        epilog="Programs: " + ", ".join(EXAMPLES.keys()),
    )
    parser.add_argument("output", nargs="?", help="Output program file")
    parser.add_argument("--program", default="echo", choices=list(EXAMPLES.keys()),
                        help="Which example to write (default: echo)")
    parser.add_argument("--dump", action="store_true",
                        help="Also print a listing of the written program")
    parser.add_argument("--list", action="store_true",
                        help="List the available examples and exit")
    parser.add_argument("--version", action="version",
                        version=f"bvm-example {__version__}")
    args = parser.parse_args(argv)

    if args.list:
        for name, info in EXAMPLES.items():
            print(f"  {name:8s} {info['description']}")
        return 0

    if not args.output:
        parser.error("the output file is required")

    program = EXAMPLES[args.program]["build"]()
    try:
        size = write_program(args.output, program)
    except OSError as e:
        print(f"Error writing {args.output}: {e}", file=sys.stderr)
        return 1

    print(f"Wrote {args.program}: {len(program)} instructions, {size} bytes -> {args.output}")
    if args.dump:
        print(format_listing(program))
    return 0


if __name__ == "__main__":
    sys.exit(main())

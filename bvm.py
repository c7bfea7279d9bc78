#!/usr/bin/env python3
"""
bvm: bytecode VM runner

Usage:
    python bvm.py <program.bin> [--trace] [--max-steps N] [--dump]
                                [-v] [--log-file run.log]

Loads a program file, then runs it with the process's stdin as input and
stdout as output.

Exit codes:
    0  clean halt (end of program or end of input)
    1  cannot load the program (missing file, bad bytes, bad config)
    2  runtime error (bad input line, stack offset, byte range, output)
    3  stopped by --max-steps

Examples:
    python bvm_example.py echo.bin && python bvm.py echo.bin < notes.txt
    python bvm.py sum.bin --trace -v <<< 5
    python bvm.py prog.bin --dump
"""

import argparse
import logging
import os
import sys
from dataclasses import replace

# Allow running from project root or as module
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from bytecode_vm import __version__, format_listing, new_machine, read_program, run
from bytecode_vm.config import ConfigError, RunConfig, parse_max_steps
from bytecode_vm.errors import (
    BoundsError, FormatError, ParseError, VMArithmeticError, VMError,
)
from bytecode_vm.log_setup import setup_logging
from bytecode_vm.machine import StopReason

log = logging.getLogger("bytecode_vm.bvm")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bvm",
        description="Run a bytecode VM program against stdin/stdout",
    )
    parser.add_argument("program", help="Program file (binary records)")
    parser.add_argument("--trace", action="store_true", default=None,
                        help="Record every step and print the trace to stderr")
    parser.add_argument("--max-steps", default=None,
                        help="Stop after N executed instructions (0 = unlimited)")
    parser.add_argument("--dump", action="store_true",
                        help="Print a listing of the program and exit")
    parser.add_argument("--verbose", "-v", action="count", default=0,
                        help="Increase log verbosity (-v info, -vv debug)")
    parser.add_argument("--log-file", default=None,
                        help="Also write a DEBUG log to this file")
    parser.add_argument("--version", action="version",
                        version=f"bvm {__version__}")
    return parser


def resolve_config(args) -> RunConfig:
    """Defaults, then BVM_* environment, then explicit flags."""
    cfg = RunConfig().with_env()
    overrides = {}
    if args.trace is not None:
        overrides["trace"] = args.trace
    if args.max_steps is not None:
        overrides["max_steps"] = parse_max_steps(args.max_steps, "--max-steps")
    if args.verbose:
        overrides["log_level"] = logging.INFO if args.verbose == 1 else logging.DEBUG
    if args.log_file:
        overrides["log_file"] = args.log_file
    return replace(cfg, **overrides)


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        cfg = resolve_config(args)
    except ConfigError as e:
        print(f"Config error: {e}", file=sys.stderr)
        return 1

    setup_logging(cfg.log_level, cfg.log_file)

    # Load
    try:
        program = read_program(args.program)
    except FileNotFoundError:
        print(f"Error: File not found: {args.program}", file=sys.stderr)
        return 1
    except FormatError as e:
        print(f"Format error in {args.program}: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Error reading {args.program}: {e}", file=sys.stderr)
        return 1
    log.info("Loaded %d instructions from %s", len(program), args.program)

    if args.dump:
        print(format_listing(program))
        return 0

    # Run
    vm = new_machine(program, trace=cfg.trace, max_steps=cfg.max_steps)
    try:
        reason = run(vm, sys.stdin, sys.stdout)
    except ParseError as e:
        print(f"Input error: {e}", file=sys.stderr)
        return 2
    except BoundsError as e:
        print(f"Bounds error: {e}", file=sys.stderr)
        return 2
    except VMArithmeticError as e:
        print(f"Arithmetic error: {e}", file=sys.stderr)
        return 2
    except VMError as e:
        print(f"Runtime error: {e}", file=sys.stderr)
        return 2
    except OSError as e:
        print(f"Output error: {e}", file=sys.stderr)
        return 2
    finally:
        if cfg.trace:
            print(vm.get_trace(), file=sys.stderr)

    log.info("Halted: %s after %d steps", reason.value, vm.steps)
    if reason is StopReason.STEP_LIMIT:
        log.warning("Step limit of %d reached at pc %d", cfg.max_steps, vm.pc)
        return 3
    return 0


if __name__ == "__main__":
    sys.exit(main())

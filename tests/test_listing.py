"""Listing dump tests."""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from bytecode_vm.examples import sum_program
from bytecode_vm.listing import branch_targets, format_listing
from bytecode_vm.opcodes import Push, OutStr


class TestListing:
    def test_branch_targets(self):
        assert branch_targets(sum_program()) == {4, 9}

    def test_rows(self):
        lines = format_listing(sum_program()).splitlines()
        rows = lines[2:-2]
        assert len(rows) == 10
        assert rows[0].split() == ["0", "0", "0", "Push(value=0)"]
        # pc 4 is a loop head, starts after 9 + 1 + 9 + 9 bytes
        assert rows[4].startswith(">")
        assert rows[4].split()[1:] == ["4", "28", "7", "Eq(a=2,", "b=3,", "target=9)"]
        assert rows[9].startswith(">")

    def test_summary_counts_bytes(self):
        text = format_listing([Push(1), OutStr("abc")])
        assert text.splitlines()[-1] == "2 instructions, 21 bytes"

    def test_empty(self):
        assert format_listing([]).splitlines()[-1] == "0 instructions, 0 bytes"

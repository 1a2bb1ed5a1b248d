"""
Targets module behavioral tests (Hex).

Conventions
- Test method names follow CamelCase per project convention.
"""

from __future__ import annotations

import unittest
from unittest import TestCase

from argosy import CoercionError, Hex, Slot, Textual, coerce, kindof


class TestHex(TestCase):
    """Hexadecimal byte strings."""

    def testFromText(self):
        self.assertEqual(Hex.__from_text__("DeadBeef"), Hex(b"\xde\xad\xbe\xef"))
        self.assertEqual(Hex.__from_text__(""), Hex())

    def testRejectsOddLengthAndGarbage(self):
        for literal in ("abc", "zz", "0x00", "de ad"):
            with self.assertRaises(ValueError, msg=literal):
                Hex.__from_text__(literal)

    def testResolvesThroughHook(self):
        self.assertEqual(kindof(Hex), Textual(Hex))

    def testSlot(self):
        slot = Slot(Hex)
        self.assertIsNone(slot.value)
        coerce("00ff", slot)
        self.assertEqual(bytes(slot.value), b"\x00\xff")
        with self.assertRaises(CoercionError):
            coerce("0", slot)

    def testRepr(self):
        self.assertEqual(repr(Hex(b"\x01")), "hex('01')")


if __name__ == "__main__":
    unittest.main()

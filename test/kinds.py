"""
Kind coercion and formatting tests.

Conventions
- Test method names follow CamelCase per project convention.
"""

import datetime
import math
import unittest
from unittest import TestCase

from tiller import Kind


class TestBoolKind(TestCase):
    def testAcceptedSpellings(self):
        for raw in ("1", "t", "T", "TRUE", "true", "True"):
            self.assertIs(Kind.BOOL.coerce(raw), True, raw)
        for raw in ("0", "f", "F", "FALSE", "false", "False"):
            self.assertIs(Kind.BOOL.coerce(raw), False, raw)

    def testRejectsOtherSpellings(self):
        for raw in ("yes", "no", "", "tRUE", "2"):
            with self.assertRaises(ValueError):
                Kind.BOOL.coerce(raw)

    def testFormat(self):
        self.assertEqual(Kind.BOOL.format(True), "true")
        self.assertEqual(Kind.BOOL.format(False), "false")


class TestIntegerKinds(TestCase):
    def testSignedDecimal(self):
        self.assertEqual(Kind.INT.coerce("42"), 42)
        self.assertEqual(Kind.INT.coerce("-7"), -7)
        self.assertEqual(Kind.INT64.coerce("+9"), 9)

    def testRejectsMalformed(self):
        for raw in ("", "1.5", "abc", "0x10", "1_000", " 1"):
            with self.assertRaises(ValueError):
                Kind.INT.coerce(raw)

    def testRange(self):
        self.assertEqual(Kind.INT64.coerce("9223372036854775807"), 2 ** 63 - 1)
        with self.assertRaises(ValueError):
            Kind.INT64.coerce("9223372036854775808")


class TestFloatKind(TestCase):
    def testDecimalAndExponent(self):
        self.assertEqual(Kind.FLOAT64.coerce("1.5"), 1.5)
        self.assertEqual(Kind.FLOAT64.coerce("-2e3"), -2000.0)
        self.assertEqual(Kind.FLOAT64.coerce(".5"), 0.5)

    def testSpecialValues(self):
        self.assertTrue(math.isinf(Kind.FLOAT64.coerce("inf")))
        self.assertTrue(math.isnan(Kind.FLOAT64.coerce("NaN")))
        self.assertEqual(Kind.FLOAT64.format(float("inf")), "+Inf")
        self.assertEqual(Kind.FLOAT64.format(float("nan")), "NaN")

    def testRejectsDigitSeparators(self):
        with self.assertRaises(ValueError):
            Kind.FLOAT64.coerce("1_000.5")

    def testFormatDropsTrailingZero(self):
        self.assertEqual(Kind.FLOAT64.format(3.0), "3")
        self.assertEqual(Kind.FLOAT64.format(0.25), "0.25")


class TestDurationKind(TestCase):
    def testUnits(self):
        self.assertEqual(Kind.DURATION.coerce("300ms"), datetime.timedelta(milliseconds=300))
        self.assertEqual(Kind.DURATION.coerce("1.5h"), datetime.timedelta(minutes=90))
        self.assertEqual(Kind.DURATION.coerce("2h45m"), datetime.timedelta(hours=2, minutes=45))
        self.assertEqual(Kind.DURATION.coerce("-1s"), datetime.timedelta(seconds=-1))
        self.assertEqual(Kind.DURATION.coerce("0"), datetime.timedelta(0))

    def testRejectsMissingUnit(self):
        for raw in ("10", "", "1d", "ms"):
            with self.assertRaises(ValueError):
                Kind.DURATION.coerce(raw)

    def testFormat(self):
        self.assertEqual(Kind.DURATION.format(datetime.timedelta(hours=1)), "1h0m0s")
        self.assertEqual(Kind.DURATION.format(datetime.timedelta(milliseconds=300)), "300ms")
        self.assertEqual(Kind.DURATION.format(datetime.timedelta(seconds=1.5)), "1.5s")
        self.assertEqual(Kind.DURATION.format(datetime.timedelta(0)), "0s")
        self.assertEqual(Kind.DURATION.format(datetime.timedelta(microseconds=500)), "500µs")

    def testFormattedValueParsesBack(self):
        value = datetime.timedelta(hours=2, minutes=3, seconds=4, milliseconds=500)
        self.assertEqual(Kind.DURATION.coerce(Kind.DURATION.format(value)), value)


class TestFormatParsesBack(TestCase):
    VALUES = {
        Kind.STRING: ("", "x y", "--dashed", "ünïcode"),
        Kind.BOOL: (True, False),
        Kind.INT: (0, -5, 42, 2 ** 63 - 1, -2 ** 63),
        Kind.INT64: (0, -5, 2 ** 63 - 1, -2 ** 63),
        Kind.FLOAT64: (0.0, 1.5, -2.0, 1e-07, 1e300, 5e-324, 0.1, math.inf, -math.inf),
        Kind.DURATION: (
            datetime.timedelta(0),
            datetime.timedelta(microseconds=1),
            datetime.timedelta(microseconds=500),
            datetime.timedelta(microseconds=1_001),
            datetime.timedelta(milliseconds=1.5),
            datetime.timedelta(seconds=-1.5),
            datetime.timedelta(microseconds=-250),
            datetime.timedelta(hours=1, minutes=30),
            datetime.timedelta(days=2, microseconds=7),
            -datetime.timedelta(hours=3, seconds=1),
        ),
    }

    def testEveryKind(self):
        self.assertEqual(set(self.VALUES), set(Kind))
        for kind, values in self.VALUES.items():
            for value in values:
                with self.subTest(kind=kind, value=value):
                    self.assertEqual(kind.coerce(kind.format(value)), value)

    def testNan(self):
        self.assertTrue(math.isnan(Kind.FLOAT64.coerce(Kind.FLOAT64.format(math.nan))))


class TestZeroValues(TestCase):
    def testZero(self):
        self.assertEqual(Kind.STRING.zero, "")
        self.assertIs(Kind.BOOL.zero, False)
        self.assertEqual(Kind.INT.zero, 0)
        self.assertEqual(Kind.FLOAT64.zero, 0.0)
        self.assertEqual(Kind.DURATION.zero, datetime.timedelta(0))


if __name__ == "__main__":
    unittest.main()

"""
Decoder tests (built-in tags, custom registration, plain callables).
"""
import unittest
from unittest import TestCase

from argot import Password, decode, decoder, resolve


class TestDecoders(TestCase):

    def testString(self):
        self.assertEqual(decode(str, " as is "), " as is ")

    def testInteger(self):
        self.assertEqual(decode(int, "42"), 42)
        with self.assertRaises(ValueError):
            decode(int, "forty-two")

    def testFloat(self):
        self.assertEqual(decode(float, "0.5"), 0.5)

    def testBoolean(self):
        for token, expected in (("yes", True), ("On", True), ("1", True), ("FALSE", False), ("off", False)):
            with self.subTest(token=token):
                self.assertIs(decode(bool, token), expected)
        with self.assertRaises(ValueError):
            decode(bool, "maybe")

    def testPasswordMasked(self):
        password = decode(Password, "hunter2")
        self.assertIsInstance(password, Password)
        self.assertEqual(password, "hunter2")
        self.assertNotIn("hunter2", repr(password))

    def testPlainCallable(self):
        self.assertEqual(decode(str.upper, "abc"), "ABC")

    def testNonCallableRejected(self):
        with self.assertRaises(TypeError):
            resolve(42)

    def testCustomRegistration(self):
        class Jid(str):
            pass

        @decoder(Jid)
        def _decode_jid(token):
            if "@" not in token:
                raise ValueError("missing domain")
            return Jid(token.lower())

        self.assertIs(resolve(Jid), _decode_jid)
        self.assertEqual(decode(Jid, "Me@Example.org"), "me@example.org")
        with self.assertRaises(ValueError):
            decode(Jid, "me")

    def testTagMustBeType(self):
        with self.assertRaises(TypeError):
            decoder("int")


if __name__ == "__main__":
    unittest.main()

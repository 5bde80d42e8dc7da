"""
Tests for the internal helpers.

This module verifies:
- The Unset sentinel: singleton identity, falsy semantics, copy and pickle stability, finality.
- coalesce() preserving every value but Unset.
- rename() in both call forms.
- mirror() / IntrospectableType exposing read-only, frozen views.
"""
import copy
import pickle
import unittest
from types import MappingProxyType
from unittest import TestCase

from argot.utils import *


class UnsetTest(TestCase):
    """
    Test suite for the `Unset` singleton.
    """

    def setUp(self) -> None:
        self.unset: UnsetType = UnsetType()

    def testSingleton(self) -> None:
        """
        The constructor returns the same object reference on every call.
        """
        self.assertIs(self.unset, UnsetType())
        self.assertIs(Unset, self.unset)

    def testRepr(self) -> None:
        self.assertEqual(repr(Unset), "Unset")
        self.assertEqual(str(Unset), "Unset")

    def testFalsy(self) -> None:
        self.assertFalse(Unset)
        self.assertNotEqual(Unset, None)
        self.assertNotEqual(Unset, False)  # noqa: E712

    def testUnionWithTypes(self) -> None:
        """
        `str | Unset` is usable in isinstance checks.
        """
        self.assertIsInstance(Unset, str | Unset)
        self.assertIsInstance("value", str | Unset)
        self.assertNotIsInstance(1, str | Unset)

    def testCopyDeepcopyPreserveSingleton(self) -> None:
        self.assertIs(copy.copy(Unset), Unset)
        self.assertIs(copy.deepcopy(Unset), Unset)

    def testPickleRoundTrip(self) -> None:
        self.assertIs(pickle.loads(pickle.dumps(Unset)), Unset)

    def testFinalClass(self) -> None:
        """
        The class is final: attempts to subclass must fail with TypeError.
        """
        with self.assertRaises(TypeError):
            type("UnsetType", (UnsetType,), {})

    def testMetaclassDefault(self) -> None:
        """
        The metaclass uses Unset as its "show every field" default.
        """
        self.assertIs(IntrospectableType.__displayable__, Unset)


class HelpersTest(TestCase):

    def testCoalesce(self) -> None:
        self.assertEqual(coalesce(Unset, "fallback"), "fallback")
        self.assertIsNone(coalesce(Unset))
        for value in (None, 0, "", []):
            with self.subTest(value=value):
                self.assertIs(coalesce(value, "fallback"), value)

    def testRenameDirect(self) -> None:
        def function():
            pass

        self.assertIs(rename(function, "renamed"), function)
        self.assertEqual(function.__name__, "renamed")
        self.assertEqual(function.__qualname__, "renamed")

    def testRenameDecorator(self) -> None:
        @rename("renamed")
        def function():
            pass

        self.assertEqual(function.__name__, "renamed")

    def testRenameArguments(self) -> None:
        with self.assertRaises(TypeError):
            rename("not callable", "name")
        with self.assertRaises(TypeError):
            rename()


class IntrospectableTest(TestCase):

    def setUp(self) -> None:
        class SampleRecord(metaclass=IntrospectableType):
            __introspectable__ = ("items", "table", "label")

            def __init__(self):
                self._items = [1, 2]
                self._table = {"a": 1}
                self._label = "x"

        self.record = SampleRecord()
        self.type = SampleRecord

    def testTypename(self) -> None:
        self.assertEqual(self.type.__typename__, "sample-record")

    def testFrozenViews(self) -> None:
        self.assertEqual(self.record.items, (1, 2))
        self.assertIsInstance(self.record.table, MappingProxyType)
        self.assertEqual(self.record.label, "x")

    def testReadOnly(self) -> None:
        with self.assertRaises(AttributeError):
            self.record.label = "y"

    def testRepr(self) -> None:
        self.assertEqual(repr(self.record), "sample-record(items=(1, 2), table=mappingproxy({'a': 1}), label='x')")


if __name__ == '__main__':
    unittest.main()

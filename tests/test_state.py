"""Tests for StateMap owned and mirrored slots."""

import pytest

from galvanize import ObjectProperty, StateMap


class TestOwned:
    def test_get_set(self):
        s = StateMap()
        s["a"] = 1
        assert s["a"] == 1
        s["a"] = 2
        assert s["a"] == 2

    def test_attribute_reads(self):
        s = StateMap()
        s["width"] = 3
        assert s.width == 3

    def test_missing_key(self):
        s = StateMap()
        with pytest.raises(KeyError):
            s["nope"]
        with pytest.raises(AttributeError):
            s.nope
        assert s.get("nope") is None

    def test_private_names_are_not_keys(self):
        s = StateMap()
        s["_x"] = 1
        with pytest.raises(AttributeError):
            s._x
        assert s["_x"] == 1

    def test_mapping_protocol(self):
        s = StateMap()
        s.update({"a": 1, 2: "b"})
        assert len(s) == 2
        assert list(s) == ["a", 2]
        assert dict(s) == {"a": 1, 2: "b"}
        del s["a"]
        assert "a" not in s

    def test_repr(self):
        s = StateMap()
        s["a"] = 1
        assert repr(s) == "StateMap({'a': 1})"


class TestMirrored:
    def test_reads_and_writes_delegate(self):
        target = {"n": 1}
        s = StateMap()
        s.mirror("N", ObjectProperty(target, "n"))
        assert s.is_mirrored("N")
        assert s["N"] == 1
        s["N"] = 5
        assert target["n"] == 5
        target["n"] = 9
        assert s["N"] == 9

    def test_cannot_delete(self):
        s = StateMap()
        s.mirror("N", ObjectProperty({"n": 1}, "n"))
        with pytest.raises(TypeError):
            del s["N"]

    def test_owned_is_not_mirrored(self):
        s = StateMap()
        s["a"] = 1
        assert not s.is_mirrored("a")
        assert not s.is_mirrored("missing")

"""
refbind — unit tests for injection override values

File: tests/unit/overrides/test_inject.py

Purpose
- Validate the immutable override-merge value attached to injectable properties.

What this test file should cover
- Canonical empty sharing from every factory and mutator.
- ``with_*`` returning ``self`` when nothing changes.
- Structural equality and hash consistency, including symmetry.
- Exact textual rendering and declaration coercion.
- Merging and engine-default resolution.
"""

from __future__ import annotations

import copy
import pickle

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from refbind.overrides.inject import InjectDefaults, InjectOverride, InjectSpec
from refbind.overrides.tristate import OptBoolean

_IDS = st.one_of(st.none(), st.just(""), st.text(min_size=1, max_size=6), st.integers(0, 9))
_FLAGS = st.sampled_from([None, True, False, OptBoolean.DEFAULT])


def test_from_spec_none_is_empty() -> None:
    assert InjectOverride.from_spec(None) is InjectOverride.empty()


def test_from_spec_matches_declaration_and_renders_exactly() -> None:
    value = InjectOverride.from_spec(
        InjectSpec(id="inject", use_input=OptBoolean.FALSE, tolerate_missing=OptBoolean.FALSE)
    )

    assert value.id == "inject"
    assert value.use_input is OptBoolean.FALSE
    assert value.will_use_input(True) is False
    assert str(value) == "InjectOverride(id=inject,useInput=false,tolerateMissing=false)"
    assert repr(value) == str(value)


def test_empty_renders_nulls_and_hashes_non_zero() -> None:
    empty = InjectOverride.empty()

    assert str(empty) == "InjectOverride(id=null,useInput=null,tolerateMissing=null)"
    assert hash(empty) != 0
    assert empty.is_empty
    assert not empty.has_id


def test_undecorated_declaration_canonicalizes_to_empty() -> None:
    assert InjectOverride.from_spec(InjectSpec()) is InjectOverride.empty()
    assert InjectOverride.construct("", None, None) is InjectOverride.empty()
    assert InjectOverride.from_dict({}) is InjectOverride.empty()
    assert InjectOverride.for_id(None) is InjectOverride.empty()


def test_direct_construction_of_unset_value_is_the_shared_empty() -> None:
    empty = InjectOverride.empty()

    assert InjectOverride() is empty
    assert InjectOverride(id="") is empty
    assert InjectOverride("", OptBoolean.DEFAULT, None) is empty
    assert empty.id is None
    assert InjectOverride(id="svc") is not empty
    assert InjectOverride(use_input=False).use_input is OptBoolean.FALSE
    assert copy.copy(empty) is empty
    assert pickle.loads(pickle.dumps(empty)) is empty
    assert pickle.loads(pickle.dumps(InjectOverride("svc", True))) == InjectOverride("svc", True)


def test_with_id_distinguishes_ids_of_different_types() -> None:
    zero = InjectOverride.for_id(0)
    one = InjectOverride.for_id(1)

    assert zero.with_id(0) is zero
    assert zero.with_id(False) is not zero
    assert zero.with_id(False).id is False
    assert one.with_id(1.0) is not one
    assert one.with_id(1.0) != one
    assert zero != InjectOverride.for_id(False)


def test_with_methods_return_self_when_unchanged() -> None:
    value = InjectOverride.construct("inject", True, None)

    assert value.with_id("inject") is value
    assert value.with_use_input(True) is value
    assert value.with_use_input(OptBoolean.TRUE) is value
    assert value.with_tolerate_missing(None) is value

    empty = InjectOverride.empty()
    assert empty.with_id(None) is empty
    assert empty.with_id("") is empty


def test_with_methods_produce_new_values_and_collapse_to_empty() -> None:
    value = InjectOverride.for_id("inject")

    flagged = value.with_use_input(False)
    assert flagged is not value
    assert flagged.id == "inject"
    assert flagged.use_input is OptBoolean.FALSE
    assert value.use_input is OptBoolean.DEFAULT

    assert value.with_id(None) is InjectOverride.empty()
    assert flagged.with_id(None).with_use_input(None) is InjectOverride.empty()


def test_values_are_immutable() -> None:
    value = InjectOverride.for_id("inject")
    with pytest.raises(AttributeError):
        value.id = "other"  # type: ignore[misc]


def test_equality_is_structural_and_type_strict() -> None:
    first = InjectOverride.construct("inject", False, True)
    second = InjectOverride.construct("inject", "false", "yes")

    assert first == second
    assert hash(first) == hash(second)
    assert first != InjectOverride.construct("inject", False, None)
    assert first != "InjectOverride(id=inject,useInput=false,tolerateMissing=true)"
    assert first != None  # noqa: E711
    assert {first, second} == {first}

    class Narrowed(InjectOverride):
        pass

    assert first != Narrowed("inject", False, True)
    assert Narrowed("inject", False, True) == Narrowed("inject", "false", True)


@settings(max_examples=25, derandomize=True, deadline=None)
@given(
    left=st.tuples(_IDS, _FLAGS, _FLAGS),
    right=st.tuples(_IDS, _FLAGS, _FLAGS),
)
def test_equality_is_symmetric_and_consistent_with_hash(
    left: tuple[object, object, object], right: tuple[object, object, object]
) -> None:
    a = InjectOverride.construct(*left)  # type: ignore[arg-type]
    b = InjectOverride.construct(*right)  # type: ignore[arg-type]

    assert (a == b) == (b == a)
    if a == b:
        assert hash(a) == hash(b)
    if a.is_empty:
        assert a is InjectOverride.empty()
    assert InjectOverride(*left) == a  # type: ignore[arg-type]
    assert a.with_id(a.id) is a
    assert a.with_use_input(a.use_input) is a
    assert a.with_tolerate_missing(a.tolerate_missing) is a
    assert a.with_overrides(a) is a


def test_from_dict_coerces_and_validates() -> None:
    value = InjectOverride.from_dict({"id": "svc", "use_input": "no", "tolerate_missing": True})

    assert value == InjectOverride.construct("svc", False, True)
    assert value.to_dict() == {"id": "svc", "use_input": False, "tolerate_missing": True}
    assert InjectOverride.for_id("svc").to_dict() == {"id": "svc"}

    with pytest.raises(ValueError, match="unexpected fields"):
        InjectOverride.from_dict({"optional": True})
    with pytest.raises(ValueError, match="InjectOverride.use_input"):
        InjectOverride.from_dict({"use_input": "sometimes"})
    with pytest.raises(ValueError, match="hashable"):
        InjectOverride.from_dict({"id": ["a"]})
    with pytest.raises(TypeError):
        InjectOverride.from_spec(42)  # type: ignore[arg-type]


def test_inject_spec_rejects_non_text_id() -> None:
    with pytest.raises(ValueError, match="InjectSpec.id"):
        InjectSpec(id=5)  # type: ignore[arg-type]
    assert InjectSpec(use_input=True).use_input is OptBoolean.TRUE  # type: ignore[arg-type]


def test_with_overrides_prefers_set_fields() -> None:
    base = InjectOverride.construct("base", True, False)
    overrides = InjectOverride.construct(None, False, None)

    merged = base.with_overrides(overrides)

    assert merged == InjectOverride.construct("base", False, False)
    assert base.with_overrides(None) is base
    assert base.with_overrides(InjectOverride.empty()) is base
    assert InjectOverride.empty().with_overrides(base) == base


def test_defaults_fill_unset_flags() -> None:
    defaults = InjectDefaults()
    strict = InjectDefaults.from_config(
        {"inject": {"default_use_input": False, "default_tolerate_missing": True}}
    )
    value = InjectOverride.construct("svc", None, False)

    assert defaults.use_input_for(value) is True
    assert strict.use_input_for(value) is False
    assert strict.tolerate_missing_for(value) is False
    assert strict.tolerate_missing_for(InjectOverride.empty()) is True

    with pytest.raises(ValueError, match="default_use_input"):
        InjectDefaults.from_config({"inject": {"default_use_input": "yes"}})

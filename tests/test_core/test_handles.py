"""Tests for reference-counted and tagged handles."""

import gc

import pytest

from nlpbridge.core import Function, Problem
from nlpbridge.core.handles import (
    TAG_FUNCTION,
    TAG_PROBLEM,
    Capsule,
    ForeignHandle,
    Handle,
    unwrap,
)
from nlpbridge.errors import HandleTypeError


class Payload:
    pass


def test_destructor_runs_once_on_last_release():
    destroyed = []
    first = Handle(Payload(), destructor=destroyed.append)
    second = first.share()
    assert first.refcount == 2

    first.release()
    assert destroyed == []
    assert second.alive

    second.release()
    assert len(destroyed) == 1

    second.release()
    first.release()
    assert len(destroyed) == 1


def test_garbage_collection_releases_share():
    destroyed = []
    handle = Handle(Payload(), destructor=destroyed.append)
    del handle
    gc.collect()
    assert len(destroyed) == 1


def test_borrowed_handle_never_destroys():
    destroyed = []
    handle = Handle.borrowed(Payload(), destructor=destroyed.append)
    assert not handle.owned
    handle.release()
    assert destroyed == []


def test_released_handle_cannot_be_used():
    handle = Handle(Payload())
    handle.release()
    assert not handle.alive
    with pytest.raises(HandleTypeError):
        handle.get()
    with pytest.raises(HandleTypeError):
        handle.share()


def test_foreign_handle_calls_and_identifies_callable():
    def callback(value):
        return value * 2

    handle = ForeignHandle(callback)
    assert handle(21) == 42
    assert handle.holds(callback)
    assert not handle.holds(lambda value: value)


def test_native_and_foreign_references_are_independent():
    """Releasing the native wrapper does not destroy a callable the caller still holds."""
    calls = []

    def callback():
        calls.append(1)

    handle = ForeignHandle(callback)
    handle.release()
    callback()
    assert calls == [1]


def test_unwrap_checks_tag():
    f = Function(1, 1, "f")
    capsule = Capsule(f, TAG_FUNCTION)
    assert unwrap(capsule, TAG_FUNCTION) is f
    with pytest.raises(HandleTypeError, match=TAG_PROBLEM):
        unwrap(capsule, TAG_PROBLEM)
    with pytest.raises(TypeError):
        unwrap(f, TAG_FUNCTION)


def test_capsule_rejects_payload_of_wrong_type():
    with pytest.raises(HandleTypeError):
        Capsule(Function(1, 1), TAG_PROBLEM)


def test_capsule_share_keeps_tag(sum_function):
    capsule = Capsule(Problem(sum_function), TAG_PROBLEM)
    shared = capsule.share()
    assert shared.tag == TAG_PROBLEM
    capsule.release()
    assert isinstance(unwrap(shared, TAG_PROBLEM), Problem)
    shared.release()
    with pytest.raises(HandleTypeError):
        unwrap(shared, TAG_PROBLEM)

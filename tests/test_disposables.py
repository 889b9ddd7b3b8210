"""Tests for teardown bookkeeping."""

from __future__ import annotations

import pytest

from editorprobe.harness.disposables import CallbackDisposable, DisposableCollection


def test_callback_disposable_runs_once() -> None:
    calls: list[str] = []
    handle = CallbackDisposable(lambda: calls.append("x"), label="probe")

    handle.dispose()
    handle.dispose()

    assert calls == ["x"]
    assert handle.disposed


def test_collection_disposes_in_reverse_order_and_is_idempotent() -> None:
    order: list[int] = []
    collection = DisposableCollection()
    for index in range(3):
        collection.push_callback(lambda index=index: order.append(index))

    collection.dispose()
    collection.dispose()

    assert order == [2, 1, 0]
    assert len(collection) == 0


def test_unregister_handle_removes_item() -> None:
    calls: list[str] = []
    collection = DisposableCollection()
    registration = collection.push_callback(lambda: calls.append("released"))

    registration.dispose()
    collection.dispose()

    assert calls == []


def test_failing_item_does_not_block_the_rest() -> None:
    calls: list[str] = []
    collection = DisposableCollection()
    collection.push_callback(lambda: calls.append("first"))

    def _boom() -> None:
        raise RuntimeError("boom")

    collection.push_callback(_boom)
    collection.push_callback(lambda: calls.append("last"))

    with pytest.raises(RuntimeError, match="boom"):
        collection.dispose()

    assert calls == ["last", "first"]

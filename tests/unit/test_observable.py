"""
Unit tests for Observable.

Tests cover:
- Subscribe / unsubscribe
- Nested batches
- Delivery after a failing batch
"""

import pytest

from jsonapi_store import Observable


class TestObservable:
    """Tests for Observable."""

    def test_publish_delivers(self):
        observable = Observable()
        events = []
        observable.subscribe(events.append)

        observable.publish("a")

        assert events == ["a"]

    def test_unsubscribe(self):
        """Unsubscribed observers get nothing; double unsubscribe is fine."""
        observable = Observable()
        events = []
        observable.subscribe(events.append)

        observable.unsubscribe(events.append)
        observable.unsubscribe(events.append)
        observable.publish("a")

        assert events == []

    def test_nested_batch(self):
        """Only the outermost batch flushes."""
        observable = Observable()
        events = []
        observable.subscribe(events.append)

        with observable.batch():
            observable.publish("a")
            with observable.batch():
                observable.publish("b")
            assert events == []
            assert observable.in_batch

        assert events == ["a", "b"]
        assert not observable.in_batch

    def test_batch_flushes_on_error(self):
        """Writes applied before an exception are still delivered."""
        observable = Observable()
        events = []
        observable.subscribe(events.append)

        with pytest.raises(RuntimeError):
            with observable.batch():
                observable.publish("a")
                raise RuntimeError("boom")

        assert events == ["a"]

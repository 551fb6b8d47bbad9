"""Tests for LifecycleSignals."""

from lokishipper.signals import FlushTrigger, LifecycleSignals


def test_satisfies_trigger_protocol():
    assert isinstance(LifecycleSignals(), FlushTrigger)


def test_emit_calls_subscribers():
    signals = LifecycleSignals()
    calls = []
    signals.subscribe(lambda: calls.append("a"))
    signals.subscribe(lambda: calls.append("b"))

    signals.emit()

    assert calls == ["a", "b"]


def test_subscribe_is_idempotent():
    signals = LifecycleSignals()
    calls = []

    def callback():
        calls.append(1)

    signals.subscribe(callback)
    signals.subscribe(callback)
    signals.emit()

    assert signals.subscriber_count == 1
    assert calls == [1]


def test_unsubscribe_stops_delivery():
    signals = LifecycleSignals()
    calls = []

    def callback():
        calls.append(1)

    signals.subscribe(callback)
    signals.unsubscribe(callback)
    signals.unsubscribe(callback)
    signals.emit()

    assert calls == []
    assert signals.subscriber_count == 0


def test_failing_callback_does_not_block_others(caplog):
    """A raising callback is logged and the rest still run."""
    signals = LifecycleSignals("sigterm")
    calls = []

    def broken():
        raise RuntimeError("boom")

    signals.subscribe(broken)
    signals.subscribe(lambda: calls.append(1))

    signals.emit()

    assert calls == [1]
    assert "sigterm" in caplog.text
    assert "boom" in caplog.text


def test_callback_may_unsubscribe_during_emit():
    signals = LifecycleSignals()

    def once():
        signals.unsubscribe(once)

    signals.subscribe(once)
    signals.emit()

    assert signals.subscriber_count == 0

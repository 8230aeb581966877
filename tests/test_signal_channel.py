import threading
import time

import pytest

from analyzer_operator.core.errors import ChannelClosed, ChannelFull
from analyzer_operator.signals.channel import Signal, SignalChannel, SignalKind, SignalListener


def _signal(reason: str) -> Signal:
    return Signal(kind=SignalKind.ready, reason=reason)


def test_default_capacity_holds_every_signal():
    channel = SignalChannel()

    for i in range(channel.capacity):
        channel.send(_signal(str(i)))

    assert channel.capacity == 10
    assert [s.reason for s in channel.drain()] == [str(i) for i in range(10)]


def test_send_with_timeout_raises_when_full():
    channel = SignalChannel(capacity=1)
    channel.send(_signal("first"))

    with pytest.raises(ChannelFull):
        channel.send(_signal("second"), timeout=0.01)

    assert channel.pending() == 1


def test_blocked_send_resumes_when_receiver_drains():
    channel = SignalChannel(capacity=1)
    channel.send(_signal("first"))
    done = threading.Event()

    def producer():
        channel.send(_signal("second"))
        done.set()

    thread = threading.Thread(target=producer, daemon=True)
    thread.start()
    time.sleep(0.05)
    assert not done.is_set()

    assert channel.receive(timeout=1).reason == "first"
    thread.join(timeout=1)

    assert done.is_set()
    assert channel.receive(timeout=1).reason == "second"


def test_per_producer_order_is_kept():
    channel = SignalChannel(capacity=3)
    received = []

    def producer(tag):
        for i in range(20):
            channel.send(Signal(kind=SignalKind.ready, reason=f"{tag}-{i}"))

    threads = [threading.Thread(target=producer, args=(tag,), daemon=True) for tag in ("a", "b")]
    for t in threads:
        t.start()
    while len(received) < 40:
        signal = channel.receive(timeout=1)
        assert signal is not None
        received.append(signal.reason)
    for t in threads:
        t.join(timeout=1)

    for tag in ("a", "b"):
        assert [r for r in received if r.startswith(tag)] == [f"{tag}-{i}" for i in range(20)]


def test_receive_times_out_with_none():
    assert SignalChannel().receive(timeout=0.01) is None


def test_closed_channel_rejects_sends_but_keeps_queue():
    channel = SignalChannel()
    channel.send(_signal("kept"))
    channel.close()

    with pytest.raises(ChannelClosed):
        channel.send(_signal("late"))

    assert channel.closed
    assert channel.receive(timeout=0.01).reason == "kept"


def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        SignalChannel(capacity=0)


def test_listener_survives_failing_handler():
    channel = SignalChannel()
    handled = []
    finished = threading.Event()

    def handler(signal):
        if signal.reason == "bad":
            raise RuntimeError("handler broke")
        handled.append(signal.reason)
        if signal.reason == "last":
            finished.set()

    listener = SignalListener(channel, handler, poll_interval=0.01)
    listener.start()
    for reason in ("one", "bad", "last"):
        channel.send(_signal(reason))

    assert finished.wait(timeout=2)
    listener.stop(timeout=1)

    assert handled == ["one", "last"]

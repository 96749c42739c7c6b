import threading

import pytest

from core.bus import Bus
from core.events import ControlSignal
from core.executor import ExecutionContext

from conftest import wait_for


class _CountingUnit:
    def __init__(self, name="counter"):
        self.name = name
        self.ticks = 0

    def spin_once(self):
        self.ticks += 1


def test_add_and_remove_units(context):
    unit = _CountingUnit()
    context.add_unit(unit)
    assert context.has_unit(unit)
    with pytest.raises(ValueError):
        context.add_unit(unit)

    context.remove_unit(unit)
    assert context.units == []
    with pytest.raises(ValueError):
        context.remove_unit(unit)


def test_spin_ticks_registered_units(context):
    unit = _CountingUnit()
    context.add_unit(unit)
    spinner = threading.Thread(target=context.spin, daemon=True)
    spinner.start()
    assert wait_for(lambda: unit.ticks >= 3)
    context.shutdown()
    spinner.join(2.0)
    assert not spinner.is_alive()


def test_submit_after_shutdown_is_dropped():
    ctx = ExecutionContext(num_threads=1)
    ctx.shutdown()
    assert ctx.is_shutdown
    assert ctx.submit(lambda: None) is None


def test_inline_bus_delivers_to_topic_subscribers_only():
    bus = Bus()
    got = []
    bus.subscribe("/a", lambda topic, msg: got.append((topic, msg)))
    assert bus.publish("/a", {"x": 1}) == 1
    assert bus.publish("/b", {"x": 2}) == 0
    assert got == [("/a", {"x": 1})]
    assert bus.topic_names_and_types() == {"/a": "dict", "/b": "dict"}


def test_bus_rejects_conflicting_types():
    bus = Bus()
    bus.publish("/bag_control", ControlSignal(enable_recording=True))
    with pytest.raises(ValueError):
        bus.publish("/bag_control", {"enable_recording": True})


def test_unsubscribed_callback_not_called():
    bus = Bus()
    got = []
    sub = bus.subscribe("/a", lambda topic, msg: got.append(msg))
    bus.unsubscribe(sub)
    bus.publish("/a", 1)
    assert got == []
    assert bus.subscriber_count("/a") == 0


def test_bus_dispatches_on_context_threads(context):
    bus = Bus(context)
    seen = []
    done = threading.Event()

    def _cb(topic, msg):
        seen.append(threading.current_thread().name)
        done.set()

    bus.subscribe("/a", _cb)
    bus.publish("/a", {"x": 1})
    assert done.wait(2.0)
    assert seen[0].startswith("bagrec")

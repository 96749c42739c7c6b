# tests/unit/test_session_controller.py
import threading
from datetime import datetime, timedelta, timezone

import pytest

from config.paths import PathNamer
from core.bus import Bus
from core.errors import DoubleTransition, InvalidConfig, StorageUnavailable
from core.events import ControlSignal
from data_collection.session_manager import SessionController, SessionState

from conftest import wait_for


class _TickingClock:
    """Clock that advances one second per reading."""

    def __init__(self):
        self.now = datetime(2024, 10, 2, 3, 4, 5, tzinfo=timezone.utc)

    def __call__(self):
        current = self.now
        self.now += timedelta(seconds=1)
        return current


@pytest.fixture
def controller(recording_config, fake_capture):
    return SessionController(recording_config, fake_capture, PathNamer(clock=_TickingClock()))


def _signal(ctl, enable):
    ctl.handle_control("/bag_control", ControlSignal(enable_recording=enable))
    ctl.spin_once()


def test_initial_state_is_idle(controller):
    assert controller.state is SessionState.IDLE
    assert controller.get_active_handle() is None


def test_start_then_stop_leaves_idle_without_handle(controller, fake_capture):
    handle = controller.start()
    assert controller.state is SessionState.RECORDING
    assert controller.get_active_handle() is handle
    assert handle.uri.endswith("Bag_2024_10_02_03_04_05")

    controller.stop()
    assert controller.state is SessionState.IDLE
    assert controller.get_active_handle() is None
    assert fake_capture.calls == ["begin", "end"]


def test_enable_twice_begins_once(controller, fake_capture):
    _signal(controller, True)
    _signal(controller, True)
    assert fake_capture.calls == ["begin"]
    assert controller.is_recording


def test_disable_while_idle_does_not_end(controller, fake_capture):
    _signal(controller, False)
    _signal(controller, False)
    assert fake_capture.calls == []
    assert controller.state is SessionState.IDLE


def test_start_while_recording_is_noop(controller, fake_capture):
    first = controller.start()
    assert controller.start() is first
    assert fake_capture.calls == ["begin"]


def test_stop_while_idle_is_noop(controller, fake_capture):
    controller.stop()
    assert fake_capture.calls == []


def test_signals_processed_in_arrival_order(controller, fake_capture):
    for enable in (True, False, True, True, False):
        controller.handle_control("/bag_control", {"enable_recording": enable})
    assert controller.pending_signals == 5
    assert controller.spin_once() == 5
    assert fake_capture.calls == ["begin", "end", "begin", "end"]
    assert controller.state is SessionState.IDLE


def test_each_session_gets_fresh_path(controller, fake_capture):
    controller.start()
    controller.stop()
    controller.start()
    assert len(set(fake_capture.paths)) == 2


def test_malformed_control_message_is_ignored(controller):
    controller.handle_control("/bag_control", {"enable": "maybe"})
    assert controller.pending_signals == 0


def test_begin_failure_keeps_idle_and_raises(controller, fake_capture):
    fake_capture.fail_begin = StorageUnavailable("/nowhere", "disk unavailable")
    with pytest.raises(StorageUnavailable):
        controller.start()
    assert controller.state is SessionState.IDLE
    assert controller.get_active_handle() is None


def test_begin_failure_on_signal_path_is_logged_and_retryable(controller, fake_capture, caplog):
    fake_capture.fail_begin = StorageUnavailable("/nowhere", "disk unavailable")
    _signal(controller, True)
    assert controller.state is SessionState.IDLE
    assert "failed" in caplog.text

    fake_capture.fail_begin = None
    _signal(controller, True)
    assert controller.state is SessionState.RECORDING


def test_end_failure_still_goes_idle_and_propagates(controller, fake_capture):
    controller.start()
    fake_capture.fail_end = StorageUnavailable("/data/Bag", "flush failed")
    with pytest.raises(StorageUnavailable):
        controller.stop()
    assert controller.state is SessionState.IDLE
    assert controller.get_active_handle() is None


def test_invalid_topics_refuse_to_start(tmp_path, fake_capture):
    # bypass model validation to reach the topic filter
    from sdk.config import RecordingConfig

    cfg = RecordingConfig.model_construct(
        data_folder=str(tmp_path), file_duration=60, logged_topics=[], storage_id="jsonl"
    )
    ctl = SessionController(cfg, fake_capture)
    with pytest.raises(InvalidConfig):
        ctl.start()
    assert ctl.state is SessionState.IDLE
    assert fake_capture.calls == []


def test_internal_double_transition_guard(controller):
    controller.start()
    with pytest.raises(DoubleTransition):
        controller._begin()
    controller.stop()
    with pytest.raises(DoubleTransition):
        controller._end()


def test_reset_while_recording_ends_then_begins(controller, fake_capture):
    first = controller.start()
    second = controller.reset()
    assert fake_capture.calls == ["begin", "end", "begin"]
    assert controller.state is SessionState.RECORDING
    assert second is controller.get_active_handle()
    assert second.uri != first.uri


def test_reset_while_idle_starts(controller, fake_capture):
    controller.reset()
    assert fake_capture.calls == ["begin"]
    assert controller.is_recording


def test_reset_restarts_even_when_close_fails(controller, fake_capture):
    first = controller.start()
    fake_capture.fail_end = StorageUnavailable("/data/Bag", "flush failed")
    with pytest.raises(StorageUnavailable):
        controller.reset()
    assert fake_capture.calls == ["begin", "end", "begin"]
    assert controller.state is SessionState.RECORDING
    assert controller.get_active_handle().uri != first.uri


def test_queued_reset_keeps_recording_after_close_failure(controller, fake_capture, caplog):
    controller.start()
    fake_capture.fail_end = StorageUnavailable("/data/Bag", "flush failed")
    controller.request_reset()
    controller.spin_once()
    assert fake_capture.calls == ["begin", "end", "begin"]
    assert controller.state is SessionState.RECORDING
    assert "did not close cleanly" in caplog.text


def test_unexpected_error_does_not_skip_later_signals(controller, fake_capture, caplog):
    fake_capture.fail_begin = ImportError("writer library missing")
    controller.handle_control("/bag_control", ControlSignal(enable_recording=True))
    controller.request_reset()
    assert controller.spin_once() == 2
    assert controller.state is SessionState.IDLE
    assert "Unexpected error" in caplog.text

    fake_capture.fail_begin = None
    _signal(controller, True)
    assert controller.is_recording


def test_request_reset_goes_through_queue(controller, fake_capture):
    controller.start()
    controller.request_reset()
    assert fake_capture.calls == ["begin"]
    controller.spin_once()
    assert fake_capture.calls == ["begin", "end", "begin"]


def test_competing_signal_during_reset_is_queued_not_interleaved(controller, fake_capture):
    controller.start()
    fake_capture.end_gate = threading.Event()

    resetter = threading.Thread(target=controller.reset)
    resetter.start()
    assert fake_capture.end_entered.wait(2.0)

    # reset is inside end(); a disable arriving now must wait for it
    controller.handle_control("/bag_control", ControlSignal(enable_recording=False))
    consumer = threading.Thread(target=controller.spin_once)
    consumer.start()
    consumer.join(0.2)
    assert consumer.is_alive()
    assert fake_capture.calls == ["begin", "end"]

    fake_capture.end_gate.set()
    fake_capture.end_gate = None
    resetter.join(2.0)
    consumer.join(2.0)
    assert not consumer.is_alive()
    assert fake_capture.calls == ["begin", "end", "begin", "end"]
    assert controller.state is SessionState.IDLE


def test_concurrent_enables_produce_one_session(controller, fake_capture):
    threads = [
        threading.Thread(target=controller.handle_control, args=("/bag_control", ControlSignal(enable_recording=True)))
        for _ in range(8)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    consumers = [threading.Thread(target=controller.spin_once) for _ in range(3)]
    for t in consumers:
        t.start()
    for t in consumers:
        t.join()
    assert fake_capture.calls == ["begin"]


def test_attach_subscribes_to_control_topic(controller, fake_capture):
    bus = Bus()
    controller.attach(bus)
    assert bus.subscriber_count("/bag_control") == 1
    bus.publish("/bag_control", ControlSignal(enable_recording=True))
    controller.spin_once()
    assert controller.is_recording

    controller.close()
    assert bus.subscriber_count("/bag_control") == 0
    assert controller.state is SessionState.IDLE


def test_controller_driven_by_execution_context(controller, fake_capture, context):
    bus = Bus(context)
    context.add_unit(controller)
    controller.attach(bus)
    spinner = threading.Thread(target=context.spin, daemon=True)
    spinner.start()

    bus.publish("/bag_control", ControlSignal(enable_recording=True))
    assert wait_for(lambda: controller.is_recording)
    bus.publish("/bag_control", ControlSignal(enable_recording=False))
    assert wait_for(lambda: controller.state is SessionState.IDLE)
    assert fake_capture.calls == ["begin", "end"]
    context.shutdown()
    spinner.join(2.0)

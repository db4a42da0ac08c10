"""
Tests for the BetterBluetoothAudio interception points and lifecycle.
"""

import threading
import time

import pytest

from audioroute.compat import (
    SESSION_CATEGORY_PLAY_AND_RECORD,
    SESSION_MODE_VOICE_CHAT,
    SESSION_OPTION_ALLOW_BLUETOOTH,
    SESSION_OPTION_ALLOW_BLUETOOTH_A2DP,
)
from audioroute.context import RoutingContext, initialize_modules
from audioroute.plugin import BetterBluetoothAudio
from audioroute.resolver import ModuleRegistry

from conftest import FakeMediaEngine, FakeVoiceStateStore, FakeSessionBridge, dev


def _wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def plugin(ctx):
    p = BetterBluetoothAudio(ctx, settle_delay=0.01)
    p.start()
    yield p
    p.stop()


class TestInputDeviceHook:
    def test_wireless_id_rewritten_and_output_pinned(self, plugin, ctx, engine):
        ctx.audio_manager.set_audio_input_device("bt-airpods-1")

        assert ctx.audio_manager.input_ids == ["default"]
        assert engine.calls == [("output", "bt-airpods-1")]

    def test_falls_back_to_default_without_named_builtin(self, plugin, ctx, engine):
        engine.inputs = [dev("bt-airpods-1", "AirPods")]
        ctx.audio_manager.set_audio_input_device("bt-airpods-1")

        assert ctx.audio_manager.input_ids == ["default"]

    def test_wired_id_passes_through(self, plugin, ctx, engine):
        ctx.audio_manager.set_audio_input_device("usb-mic")

        assert ctx.audio_manager.input_ids == ["usb-mic"]
        assert engine.calls == []

    def test_enforcer_input_through_hook_does_not_loop(self):
        # Host where audio manager and media engine are the same object.
        engine = FakeMediaEngine(
            [dev("default", "iPhone Microphone"), dev("bt-airpods-1", "AirPods")],
            [dev("bt-airpods-1", "AirPods", "Render")],
        )
        p = BetterBluetoothAudio(RoutingContext(audio_manager=engine, media_engine=engine))
        p.start()
        try:
            engine.set_audio_input_device("bt-airpods-1")
            p.enforcer.enforce()
        finally:
            p.stop()

        assert engine.calls == [
            ("output", "bt-airpods-1"),
            ("input", "default"),
            ("input", "default"),
            ("output", "bt-airpods-1"),
        ]


class TestSessionHook:
    def test_not_in_call_leaves_config_alone(self, plugin, ctx):
        config = {"category": "Ambient", "default_to_speaker": True, "mix_with_others": True}
        ctx.audio_manager.configure_audio_session(config)

        assert config == {"category": "Ambient", "default_to_speaker": True, "mix_with_others": True}

    def test_in_call_forces_split_routing_flags(self, plugin, ctx):
        ctx.voice_state_store.states["u1"] = {"channel_id": "c1"}
        config = {"category": "Ambient", "default_to_speaker": True, "mix_with_others": True}
        ctx.audio_manager.configure_audio_session(config)

        assert config["category"] == SESSION_CATEGORY_PLAY_AND_RECORD
        assert config["mode"] == SESSION_MODE_VOICE_CHAT
        assert config["category_options"] == [SESSION_OPTION_ALLOW_BLUETOOTH, SESSION_OPTION_ALLOW_BLUETOOTH_A2DP]
        assert config["allow_bluetooth_a2dp"] is True
        assert config["default_to_speaker"] is False
        assert config["mix_with_others"] is False
        assert ctx.audio_manager.sessions == [config]

    def test_non_dict_config_ignored(self, plugin, ctx):
        ctx.voice_state_store.states["u1"] = {"channel_id": "c1"}
        ctx.audio_manager.configure_audio_session(None)
        assert ctx.audio_manager.sessions == [None]


class TestVoiceConnectionHooks:
    def test_connect_schedules_enforcement(self, plugin, ctx, engine, voice_connection_cls):
        conn = voice_connection_cls()
        assert conn.connect("c1") == "connected"

        assert _wait_for(lambda: len(engine.calls) == 2)
        assert engine.calls == [("input", "default"), ("output", "bt-airpods-1")]
        assert conn.connected == 1

    def test_call_input_rewritten_without_output_follow_up(self, plugin, engine, voice_connection_cls):
        conn = voice_connection_cls()
        conn.set_input_device("bt-airpods-1")

        assert conn.input_ids == ["default"]
        assert engine.calls == []

    def test_call_input_wired_passes_through(self, plugin, voice_connection_cls):
        conn = voice_connection_cls()
        conn.set_input_device("usb-mic")
        assert conn.input_ids == ["usb-mic"]


class TestLifecycle:
    def test_start_registers_four_hooks(self, plugin):
        assert len(plugin.patches) == 4

    def test_start_twice_does_not_double_patch(self, plugin):
        plugin.start()
        assert len(plugin.patches) == 4

    def test_stop_removes_every_hook(self, ctx, engine, voice_connection_cls):
        p = BetterBluetoothAudio(ctx, settle_delay=0.01)
        p.start()
        p.stop()
        ctx.voice_state_store.states["u1"] = {"channel_id": "c1"}

        ctx.audio_manager.set_audio_input_device("bt-airpods-1")
        config = {"category": "Ambient"}
        ctx.audio_manager.configure_audio_session(config)
        conn = voice_connection_cls()
        conn.connect()
        conn.set_input_device("bt-airpods-1")
        time.sleep(0.05)

        assert p.patches == []
        assert ctx.audio_manager.input_ids == ["bt-airpods-1"]
        assert config == {"category": "Ambient"}
        assert conn.input_ids == ["bt-airpods-1"]
        assert engine.calls == []
        assert p.pending() == 0

    def test_stop_cancels_pending_enforcement(self, ctx, engine, voice_connection_cls):
        p = BetterBluetoothAudio(ctx, settle_delay=0.2)
        p.start()
        voice_connection_cls().connect()
        assert p.pending() == 1
        p.stop()
        time.sleep(0.3)

        assert engine.calls == []
        assert p.pending() == 0

    def test_stop_waits_for_running_enforcement(self, ctx, engine, voice_connection_cls):
        entered = threading.Event()
        events = []

        class SlowEngine(FakeMediaEngine):
            def set_audio_input_device(self, device_id):
                entered.set()
                time.sleep(0.2)
                super().set_audio_input_device(device_id)
                events.append("input")

            def set_audio_output_device(self, device_id):
                super().set_audio_output_device(device_id)
                events.append("output")

        ctx.media_engine = SlowEngine(engine.inputs, engine.outputs)
        p = BetterBluetoothAudio(ctx, settle_delay=0)
        p.start()
        voice_connection_cls().connect()
        assert entered.wait(2.0)

        p.stop()
        events.append("stopped")
        time.sleep(0.1)

        assert events == ["input", "output", "stopped"]
        assert p.pending() == 0

    def test_schedule_after_stop_is_noop(self, ctx):
        p = BetterBluetoothAudio(ctx)
        assert p.schedule_enforce(0) is None

    def test_missing_collaborators_make_plugin_inert(self):
        p = BetterBluetoothAudio(RoutingContext())
        p.start()
        assert p.patches == []
        p.stop()

    def test_target_without_session_method_skips_only_that_hook(self, engine):
        class BareManager:
            def set_audio_input_device(self, device_id):
                pass

            def set_audio_output_device(self, device_id):
                pass

        p = BetterBluetoothAudio(RoutingContext(audio_manager=BareManager(), media_engine=engine))
        p.start()
        try:
            assert len(p.patches) == 1
        finally:
            p.stop()

    def test_timer_threads_are_daemons(self, plugin, voice_connection_cls):
        timer = plugin.schedule_enforce(0.5)
        assert isinstance(timer, threading.Thread)
        assert timer.daemon


class TestInitializeModules:
    def test_resolves_collaborators_from_registry(self, engine, voice_connection_cls):
        reg = ModuleRegistry()
        bridge = FakeSessionBridge()
        states = FakeVoiceStateStore({})
        reg.register("MediaEngine", engine)
        reg.register("VoiceConnection", voice_connection_cls)
        reg.register("Bridge", bridge)
        reg.register("VoiceStateStore", states)

        ctx = initialize_modules(reg)

        assert ctx.media_engine is engine
        assert ctx.audio_manager is engine
        assert ctx.voice_connection is voice_connection_cls
        assert ctx.session_bridge is bridge
        assert ctx.voice_state_store is states
        assert ctx.user_store is None
        assert ctx.missing() == ["user_store"]

    def test_empty_registry(self):
        ctx = initialize_modules(ModuleRegistry())
        assert ctx.media_engine is None and ctx.voice_connection is None

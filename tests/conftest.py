"""
Shared fixtures and host doubles for the routing policy tests.

Nothing here imports audioroute.devices (pycaw/comtypes are Windows-only),
so the suite runs on any platform.
"""

import pytest

from audioroute import logging_setup
from audioroute.context import RoutingContext


@pytest.fixture(autouse=True)
def _log_to_tmp(tmp_path, monkeypatch):
    """Keep every log write inside the test's temp dir."""
    monkeypatch.setenv("AUDIOROUTE_LOG_DIR", str(tmp_path / "logs"))
    logging_setup.reset_log_location()
    yield
    logging_setup.reset_log_location()


def dev(device_id, name, flow="Capture"):
    return {"id": device_id, "name": name, "flow": flow}


class FakeMediaEngine:
    """Records set commands; device lists are plain attributes tests can swap."""

    def __init__(self, inputs=None, outputs=None):
        self.inputs = list(inputs or [])
        self.outputs = list(outputs or [])
        self.calls = []
        self.fail = set()   # method names that should raise

    def _maybe_fail(self, name):
        if name in self.fail:
            raise RuntimeError(f"{name} exploded")

    def get_audio_input_devices(self):
        self._maybe_fail("get_audio_input_devices")
        return list(self.inputs)

    def get_audio_output_devices(self):
        self._maybe_fail("get_audio_output_devices")
        return list(self.outputs)

    def set_audio_input_device(self, device_id):
        self._maybe_fail("set_audio_input_device")
        self.calls.append(("input", device_id))

    def set_audio_output_device(self, device_id):
        self._maybe_fail("set_audio_output_device")
        self.calls.append(("output", device_id))


class FakeAudioManager:
    """Host audio manager: remembers what actually reached it after hooks ran."""

    def __init__(self):
        self.input_ids = []
        self.output_ids = []
        self.sessions = []

    def set_audio_input_device(self, device_id):
        self.input_ids.append(device_id)

    def set_audio_output_device(self, device_id):
        self.output_ids.append(device_id)

    def configure_audio_session(self, config):
        self.sessions.append(dict(config) if isinstance(config, dict) else config)


class FakeVoiceConnection:
    """Patched at class level, like a prototype; instances record calls."""

    def __init__(self):
        self.connected = 0
        self.input_ids = []

    def connect(self, channel_id=None):
        self.connected += 1
        return "connected"

    def set_input_device(self, device_id):
        self.input_ids.append(device_id)


class FakeUserStore:
    def __init__(self, user=None, fail=False):
        self.user = user
        self.fail = fail

    def get_current_user(self):
        if self.fail:
            raise RuntimeError("user store offline")
        return self.user


class FakeVoiceStateStore:
    def __init__(self, states=None):
        self.states = states or {}

    def get_voice_state_for_user(self, user_id):
        return self.states.get(user_id)


class FakeSessionBridge:
    def __init__(self):
        self.messages = []

    def post_message(self, payload):
        self.messages.append(payload)


AIRPODS_INPUTS = [
    dev("default", "iPhone Microphone"),
    dev("bt-airpods-1", "AirPods"),
]
AIRPODS_OUTPUTS = [
    dev("bt-airpods-1", "AirPods", "Render"),
    dev("bt-airpods-1-hfp", "AirPods Hands-Free", "Render"),
]


@pytest.fixture
def engine():
    return FakeMediaEngine(AIRPODS_INPUTS, AIRPODS_OUTPUTS)


@pytest.fixture
def voice_connection_cls():
    # A fresh subclass per test so class-level patches never leak between tests.
    class VoiceConnection(FakeVoiceConnection):
        pass
    return VoiceConnection


@pytest.fixture
def ctx(engine, voice_connection_cls):
    return RoutingContext(
        audio_manager=FakeAudioManager(),
        media_engine=engine,
        voice_connection=voice_connection_cls,
        session_bridge=None,
        user_store=FakeUserStore({"id": "u1"}),
        voice_state_store=FakeVoiceStateStore({}),
    )

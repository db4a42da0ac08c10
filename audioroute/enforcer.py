# audioroute/enforcer.py
#
# Correction side of the routing policy: re-read what the platform reports,
# pick built-in mic + wireless output, and push those choices back.
#
# Failure model:
# - Query failures degrade to an empty device list (logged).
# - Command failures are logged; the other direction still runs.
# - Nothing propagates to the caller: these run inside host hooks and timers.
#
# Passes may overlap (a delayed post-connect pass vs. a hook-triggered one).
# That is fine: setting the same device id twice is harmless.
from .selector import pick_builtin_mic, pick_wireless_output
from .compat import (
    DEFAULT_MIC_ID,
    SESSION_CATEGORY_PLAY_AND_RECORD,
    SESSION_MODE_VOICE_CHAT,
    SESSION_OPTION_ALLOW_BLUETOOTH,
    SESSION_OPTION_ALLOW_BLUETOOTH_A2DP,
    PREFERRED_INPUT_LABEL,
    PREFERRED_OUTPUT_LABEL,
)
from .logging_setup import _log, _log_exc, _dbg, TAG

def native_session_payload():
    return {
        "category": SESSION_CATEGORY_PLAY_AND_RECORD,
        "mode": SESSION_MODE_VOICE_CHAT,
        "options": [
            SESSION_OPTION_ALLOW_BLUETOOTH,
            SESSION_OPTION_ALLOW_BLUETOOTH_A2DP,
        ],
        "preferred_input": PREFERRED_INPUT_LABEL,
        "preferred_output": PREFERRED_OUTPUT_LABEL,
    }

class RoutingEnforcer:
    def __init__(self, ctx):
        self.ctx = ctx

    # ---- queries -------------------------------------------------------------

    def _query(self, method_name):
        engine = self.ctx.media_engine
        getter = getattr(engine, method_name, None) if engine is not None else None
        if getter is None:
            return []
        try:
            return list(getter() or [])
        except Exception:
            _log_exc(f"{TAG} {method_name} failed; treating as no devices")
            return []

    def _input_devices(self):
        return self._query("get_audio_input_devices")

    def _output_devices(self):
        return self._query("get_audio_output_devices")

    # ---- commands ------------------------------------------------------------

    def _command(self, method_name, device):
        engine = self.ctx.media_engine
        setter = getattr(engine, method_name, None) if engine is not None else None
        if setter is None:
            _dbg(f"{method_name}: media engine has no such command")
            return False
        try:
            setter(device["id"])
            return True
        except Exception:
            _log_exc(f"{TAG} {method_name}({device['id']!r}) failed")
            return False

    def _apply_input(self):
        mic = pick_builtin_mic(self._input_devices())
        if mic is None:
            _dbg("enforce: no built-in mic candidate")
            return None
        _log(f"{TAG} Setting input to: {mic.get('name')}")
        return mic["id"] if self._command("set_audio_input_device", mic) else None

    def _apply_output(self):
        out = pick_wireless_output(self._output_devices())
        if out is None:
            _dbg("enforce: no wireless output candidate")
            return None
        _log(f"{TAG} Setting output to: {out.get('name')}")
        return out["id"] if self._command("set_audio_output_device", out) else None

    # ---- public --------------------------------------------------------------

    def enforce(self):
        """
        One enforcement pass. Returns {"input": id|None, "output": id|None}
        with the ids that were actually set.
        """
        summary = {"input": None, "output": None}
        try:
            summary["input"] = self._apply_input()
        except Exception:
            _log_exc(f"{TAG} Error enforcing input routing")
        try:
            summary["output"] = self._apply_output()
        except Exception:
            _log_exc(f"{TAG} Error enforcing output routing")
        self.configure_native_session()
        return summary

    def ensure_wireless_output(self):
        try:
            return self._apply_output()
        except Exception:
            _log_exc(f"{TAG} Error ensuring wireless output")
            return None

    def resolve_builtin_mic_id(self):
        """Id of the built-in mic, or "default" so hooks always have something to substitute."""
        try:
            mic = pick_builtin_mic(self._input_devices())
        except Exception:
            _log_exc(f"{TAG} Error getting built-in mic")
            mic = None
        if mic and mic.get("id"):
            return mic["id"]
        return DEFAULT_MIC_ID

    def configure_native_session(self):
        bridge = self.ctx.session_bridge
        if bridge is None:
            return False
        try:
            bridge.post_message(native_session_payload())
            return True
        except Exception:
            _log_exc(f"{TAG} native session bridge rejected configuration")
            return False

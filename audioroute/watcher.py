# audioroute/watcher.py
#
# Polling stand-in for a voice connection on hosts that do not emit device
# events (Windows endpoints, via WindowsMediaEngine).
#
# Registered as "VoiceConnection" so the plugin hooks it like any host:
# - a wireless output that was not there on the previous poll -> connect(device)
# - the default input changed since the previous poll        -> set_input_device(id)
#
# Both calls are plain methods so the plugin's before/after hooks see them.
import time

from .classify import is_wireless
from .compat import DEFAULT_POLL_INTERVAL
from .logging_setup import _log, _log_exc, _dbg

class EndpointWatcher:
    def __init__(self, media_engine, interval=DEFAULT_POLL_INTERVAL, role="communications"):
        self.media_engine = media_engine
        self.interval = max(0.05, float(interval))
        self.role = role
        self._known_outputs = None   # None until the first poll
        self._last_input = None
        self._stop = False

    # ---- host-facing "connection" API (hooked by the plugin) ------------------

    def connect(self, device):
        _log(f"wireless output connected: {device.get('name')}")
        return device.get("id")

    def set_input_device(self, device_id):
        self.media_engine.set_audio_input_device(device_id)
        return device_id

    # ---- polling ---------------------------------------------------------------

    def _current_default_input(self):
        for d in self.media_engine.get_audio_input_devices():
            if (d.get("isDefault") or {}).get(self.role):
                return d["id"]
        return None

    def poll_once(self):
        """One poll; returns the list of events raised ("connect"/"input")."""
        events = []
        outputs = [d for d in self.media_engine.get_audio_output_devices() if is_wireless(d.get("id"))]
        ids = {d["id"] for d in outputs}
        if self._known_outputs is not None:
            for d in outputs:
                if d["id"] not in self._known_outputs:
                    self.connect(d)
                    events.append("connect")
        self._known_outputs = ids

        current = self._current_default_input()
        if self._last_input is not None and current is not None and current != self._last_input:
            _dbg(f"default input changed: {self._last_input!r} -> {current!r}")
            self.set_input_device(current)
            events.append("input")
            # Re-read so our own correction is not seen as a new change next poll.
            current = self._current_default_input()
        self._last_input = current
        return events

    def run(self, once=False):
        self._stop = False
        while not self._stop:
            try:
                self.poll_once()
            except Exception:
                # Endpoint enumeration can fail transiently while a headset (dis)connects.
                _log_exc("watcher poll failed")
            if once:
                break
            time.sleep(self.interval)

    def stop(self):
        self._stop = True

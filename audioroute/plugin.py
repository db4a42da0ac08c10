# audioroute/plugin.py
#
# Better Bluetooth Audio: keep the built-in microphone as input while a
# wireless headset stays the output, even though selecting the headset
# normally drags both directions onto it (hands-free profile).
#
# Four interception points, each a small rewrite of one host event:
#   1. before audio_manager.set_audio_input_device   wireless id -> built-in mic,
#                                                    then re-assert wireless output
#   2. before audio_manager.configure_audio_session  in a call only: session flags
#                                                    that allow split BT routing
#   3. after  voice_connection.connect               full enforcement after a settle delay
#   4. before voice_connection.set_input_device      wireless id -> built-in mic
#
# The enforcer's own set_audio_input_device call goes through hook 1 too; it
# always carries a built-in id, so the hook leaves it alone and nothing loops.
import threading

from . import patcher as default_patcher
from .classify import is_wireless
from .compat import (
    DEFAULT_SETTLE_DELAY,
    SESSION_CATEGORY_PLAY_AND_RECORD,
    SESSION_MODE_VOICE_CHAT,
    SESSION_OPTION_ALLOW_BLUETOOTH,
    SESSION_OPTION_ALLOW_BLUETOOTH_A2DP,
)
from .enforcer import RoutingEnforcer
from .session_guard import SessionStateGuard
from .logging_setup import _log, _log_exc, _dbg, TAG

# Seconds stop() waits for an enforcement pass that is already running.
STOP_JOIN_TIMEOUT = 2.0

class BetterBluetoothAudio:
    name = "Better Bluetooth Audio"
    version = "1.0.0"

    def __init__(self, ctx, patcher=None, settle_delay=DEFAULT_SETTLE_DELAY):
        self.ctx = ctx
        self.patcher = patcher or default_patcher
        self.settle_delay = float(settle_delay)
        self.enforcer = RoutingEnforcer(ctx)
        self.guard = SessionStateGuard(ctx)
        self.patches = []
        self._timers = set()
        self._timers_lock = threading.Lock()
        self._running = False

    # ---- lifecycle -----------------------------------------------------------

    def start(self):
        if self._running:
            return
        self.patches = []
        self._running = True
        self._patch_audio_routing()
        self._patch_voice_connection()
        _log(f"{TAG} started with {len(self.patches)} hook(s)")

    def stop(self):
        # Timers first so a pending pass cannot fire into a half torn-down plugin.
        self._running = False
        with self._timers_lock:
            timers, self._timers = self._timers, set()
        me = threading.current_thread()
        for t in timers:
            t.cancel()
        # A pass that already started finishes before the hooks come off.
        for t in timers:
            if t is not me:
                t.join(STOP_JOIN_TIMEOUT)

        patches, self.patches = self.patches, []
        for unpatch in patches:
            try:
                unpatch()
            except Exception:
                _log_exc(f"{TAG} unpatch failed")
        _log(f"{TAG} Plugin stopped")

    def _register(self, kind, method_name, target, handler):
        if target is None:
            _dbg(f"skip {method_name}: target not resolved")
            return False
        hook = self.patcher.before if kind == "before" else self.patcher.after
        try:
            self.patches.append(hook(method_name, target, handler))
            return True
        except AttributeError:
            _log(f"{TAG} {method_name} not available on {target!r}; hook skipped")
            return False

    def _patch_audio_routing(self):
        am = self.ctx.audio_manager
        self._register("before", "set_audio_input_device", am, self._before_set_audio_input_device)
        self._register("before", "configure_audio_session", am, self._before_configure_audio_session)

    def _patch_voice_connection(self):
        vc = self.ctx.voice_connection
        self._register("after", "connect", vc, self._after_connect)
        self._register("before", "set_input_device", vc, self._before_set_input_device)

    # ---- hooks ---------------------------------------------------------------

    def _before_set_audio_input_device(self, args):
        if not args or not is_wireless(args[0]):
            return
        _log(f"{TAG} Blocking Bluetooth mic {args[0]!r}, forcing built-in mic")
        args[0] = self.enforcer.resolve_builtin_mic_id()
        # The platform tends to move output along with input; pin it back.
        self.enforcer.ensure_wireless_output()

    def _before_configure_audio_session(self, args):
        if not args or not isinstance(args[0], dict):
            return
        if not self.guard.is_in_call():
            return
        config = args[0]
        config["allow_bluetooth_a2dp"] = True
        config["default_to_speaker"] = False
        config["mix_with_others"] = False
        config["category"] = SESSION_CATEGORY_PLAY_AND_RECORD
        config["mode"] = SESSION_MODE_VOICE_CHAT
        config["category_options"] = [
            SESSION_OPTION_ALLOW_BLUETOOTH,
            SESSION_OPTION_ALLOW_BLUETOOTH_A2DP,
        ]
        _dbg(f"session config rewritten for call: {config}")

    def _after_connect(self, args, result):
        self.schedule_enforce()

    def _before_set_input_device(self, args):
        if not args or not is_wireless(args[0]):
            return
        _log(f"{TAG} Preventing Bluetooth mic {args[0]!r} during call")
        args[0] = self.enforcer.resolve_builtin_mic_id()

    # ---- delayed enforcement -------------------------------------------------

    def schedule_enforce(self, delay=None):
        """
        Run enforce() once after `delay` seconds (default: settle_delay).

        The platform renegotiates devices on its own right after a connect;
        acting immediately would just get overwritten. Best effort only.
        """
        if not self._running:
            return None
        delay = self.settle_delay if delay is None else float(delay)
        timer = threading.Timer(delay, self._run_scheduled)
        timer.daemon = True
        timer.name = "audioroute-enforce"
        # Stays tracked until the pass is over, so stop() can wait for it.
        with self._timers_lock:
            self._timers.add(timer)
        timer.start()
        _dbg(f"enforce scheduled in {delay:.2f}s")
        return timer

    def _run_scheduled(self):
        try:
            if self._running:
                self.enforcer.enforce()
        finally:
            with self._timers_lock:
                self._timers.discard(threading.current_thread())

    def pending(self):
        with self._timers_lock:
            return len(self._timers)

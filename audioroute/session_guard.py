# audioroute/session_guard.py
from .logging_setup import _dbg

def _field(obj, *names):
    # Stores may hand back dicts or attribute objects.
    if obj is None:
        return None
    for n in names:
        if isinstance(obj, dict):
            if obj.get(n) is not None:
                return obj[n]
        else:
            v = getattr(obj, n, None)
            if v is not None:
                return v
    return None

class SessionStateGuard:
    def __init__(self, ctx):
        self.ctx = ctx

    def is_in_call(self):
        """
        True iff the current user has a voice channel.

        Unknown state counts as "not in a call": the session override is a
        quality tweak, so any missing store or lookup error answers False.
        """
        users = self.ctx.user_store
        states = self.ctx.voice_state_store
        if users is None or states is None:
            return False
        try:
            user = users.get_current_user()
            state = states.get_voice_state_for_user(_field(user, "id"))
            return _field(state, "channel_id", "channelId") is not None
        except Exception as e:
            _dbg(f"is_in_call: lookup failed: {e!r}")
            return False

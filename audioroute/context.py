# audioroute/context.py
#
# One-shot initialization step: resolve every collaborator the policy needs
# and bind them into a RoutingContext. Each field is optional; components
# check for None instead of relying on module-level globals.
from .logging_setup import _log, TAG

class RoutingContext:
    """
    Bound collaborators for one plugin instance.

    audio_manager      set_audio_input_device / set_audio_output_device
                       (+ optional configure_audio_session), hooked by rules 1-2
    media_engine       device queries and set commands used by the enforcer
    voice_connection   class or object with connect / set_input_device, hooked by rules 3-4
    session_bridge     post_message(payload) into the native audio session
    user_store         get_current_user()
    voice_state_store  get_voice_state_for_user(user_id)
    """

    def __init__(self, audio_manager=None, media_engine=None, voice_connection=None,
                 session_bridge=None, user_store=None, voice_state_store=None):
        self.audio_manager = audio_manager
        self.media_engine = media_engine
        self.voice_connection = voice_connection
        self.session_bridge = session_bridge
        self.user_store = user_store
        self.voice_state_store = voice_state_store

    def missing(self):
        return [k for k, v in vars(self).items() if v is None]

    def __repr__(self):
        present = [k for k, v in vars(self).items() if v is not None]
        return f"RoutingContext(present={present})"

def initialize_modules(resolver):
    ctx = RoutingContext(
        audio_manager=resolver.find_by_props("set_audio_input_device", "set_audio_output_device"),
        media_engine=resolver.find_by_props("set_audio_input_device", "get_audio_input_devices"),
        voice_connection=resolver.find_by_name("VoiceConnection"),
        session_bridge=resolver.find_by_props("post_message"),
        user_store=resolver.find_by_props("get_current_user"),
        voice_state_store=resolver.find_by_props("get_voice_state_for_user"),
    )
    missing = ctx.missing()
    if missing:
        _log(f"{TAG} collaborators not found: {', '.join(missing)}")
    return ctx

# audioroute/selector.py
#
# Pick the devices the routing policy wants among what the platform reported.
# First match in report order; the platform's ordering is trusted as-is.
from .classify import is_wireless, is_builtin_microphone
from .compat import HANDS_FREE_MARKER, DEFAULT_MIC_ID

def pick_builtin_mic(input_devices):
    """
    Return the first input device that is the built-in microphone, or None.

    Callers that need an id regardless should use
    RoutingEnforcer.resolve_builtin_mic_id(), which falls back to "default".
    """
    for d in input_devices or []:
        if is_builtin_microphone(d):
            return d
    return None

def pick_wireless_output(output_devices):
    """
    Return the first wireless output device that is not a hands-free variant.

    The hands-free profile is the coupled mic+speaker mode we are trying to
    avoid, and it also sounds worse, so it never qualifies as output.
    """
    for d in output_devices or []:
        name = (d.get("name") or "").lower()
        if is_wireless(d.get("id")) and HANDS_FREE_MARKER not in name:
            return d
    return None

def mark_builtin_input(input_devices):
    """
    Return a copy of `input_devices` where the first wired input carries the
    reserved built-in id, unless some device already reads as built-in.

    For hosts whose microphones have generic names ("Microphone Array"):
    without a marked device, enforcement would find no built-in mic at all.
    The original id is kept under "endpointId".
    """
    devices = [dict(d) for d in input_devices or []]
    if any(is_builtin_microphone(d) for d in devices):
        return devices
    for d in devices:
        if not is_wireless(d.get("id")):
            d.setdefault("endpointId", d.get("id"))
            d["id"] = DEFAULT_MIC_ID
            break
    return devices

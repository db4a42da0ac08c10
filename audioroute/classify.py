# audioroute/classify.py
#
# Keyword heuristics that decide what kind of device an id/name denotes.
# Pure functions: no I/O, no state, no exceptions for str/None inputs.
#
# Known limitation: a built-in device whose id happens to contain a wireless
# keyword is classified as wireless. The keyword set is fixed on purpose.
from .compat import (
    WIRELESS_KEYWORDS,
    BUILTIN_NAME_KEYWORDS,
    BUILTIN_MIC_IDS,
)

def is_wireless(device_id):
    """True iff the lowercased id contains any wireless keyword. Empty/None -> False."""
    if not device_id:
        return False
    lowered = str(device_id).lower()
    return any(k in lowered for k in WIRELESS_KEYWORDS)

def is_builtin_microphone(device):
    if not device:
        return False
    name = (device.get("name") or "").lower()
    if any(k in name for k in BUILTIN_NAME_KEYWORDS):
        return True
    return device.get("id") in BUILTIN_MIC_IDS

def device_class(device):
    # Wireless wins: "AirPods (iPhone)" style names must not read as built-in.
    if is_wireless(device.get("id")):
        return "wireless"
    if is_builtin_microphone(device):
        return "builtin"
    return "other"

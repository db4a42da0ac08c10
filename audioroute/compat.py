# audioroute/compat.py
"""
Shared constants: Windows endpoint flows/roles (used by the pycaw host) and
the routing-policy vocabulary (keywords, reserved ids, session values).

On Windows this module also patches comtypes.automation, so it must be
imported before pycaw/comtypes. Elsewhere nothing here touches comtypes and
the policy modules stay importable on any platform.
"""
import ctypes
import sys

def apply_comtypes_shim(automation):
    """Add the PROPVARIANT alias and VT_*/VARIANT_* constants older comtypes builds lack."""
    if not hasattr(automation, "PROPVARIANT") and hasattr(automation, "tagPROPVARIANT"):
        automation.PROPVARIANT = automation.tagPROPVARIANT
    for name, value in (("VT_LPWSTR", 31), ("VT_BOOL", 11), ("VT_UI2", 18), ("VT_UI4", 19),
                        ("VARIANT_TRUE", -1), ("VARIANT_FALSE", 0)):
        if not hasattr(automation, name):
            setattr(automation, name, value)

# --- comtypes compatibility shim (must run before pycaw is imported) ---
if sys.platform == "win32":
    try:
        import comtypes.automation as _automation
        apply_comtypes_shim(_automation)
    except Exception as e:
        print(f"WARNING: comtypes compatibility shim failed during initial import: {e}", file=sys.stderr)
    try:
        # COM Release() during garbage collection imports these lazily; load them upfront.
        import comtypes._post_coinit
        import comtypes._post_coinit.unknwn
    except ImportError:
        pass

def is_admin():
    try:
        return bool(ctypes.windll.shell32.IsUserAnAdmin())
    except Exception:
        # No windll outside Windows.
        return False

# Endpoint flows & roles
E_RENDER = 0  # Playback
E_CAPTURE = 1  # Recording
E_CONSOLE = 0
E_MULTIMEDIA = 1
E_COMMUNICATIONS = 2

ROLES = {
    "console": E_CONSOLE,
    "multimedia": E_MULTIMEDIA,
    "communications": E_COMMUNICATIONS,
    "all": "all",
}

# Device state flags
DEVICE_STATE_ACTIVE = 0x00000001

# Flow names as they appear in device dicts. Capture = input, Render = output.
FLOW_CAPTURE = "Capture"
FLOW_RENDER = "Render"

# Lowercase substrings that mark a device id as wireless (Bluetooth-class).
WIRELESS_KEYWORDS = (
    "bluetooth",
    "bt-",
    "airpods",
    "beats",
    "sony",
    "bose",
    "hands-free",
    "hfp",
    "a2dp",
)

BUILTIN_NAME_KEYWORDS = ("iphone", "built-in")
BUILTIN_MIC_IDS = ("default", "built-in-mic")
DEFAULT_MIC_ID = "default"

# Name marker of the hands-free (HFP) variant of a headset; never used as output.
HANDS_FREE_MARKER = "hands-free"

# Session values (AVAudioSession vocabulary; the bridge forwards them verbatim)
SESSION_CATEGORY_PLAY_AND_RECORD = "AVAudioSessionCategoryPlayAndRecord"
SESSION_MODE_VOICE_CHAT = "AVAudioSessionModeVoiceChat"
SESSION_OPTION_ALLOW_BLUETOOTH = "AVAudioSessionCategoryOptionAllowBluetooth"
SESSION_OPTION_ALLOW_BLUETOOTH_A2DP = "AVAudioSessionCategoryOptionAllowBluetoothA2DP"

PREFERRED_INPUT_LABEL = "Built-In Microphone"
PREFERRED_OUTPUT_LABEL = "Bluetooth"

# Seconds to let the platform finish its own renegotiation after a connect.
DEFAULT_SETTLE_DELAY = 1.0
DEFAULT_POLL_INTERVAL = 0.5

# Windows endpoint ids ("{0.0.1.00000000}.{guid}") say nothing about the
# device, so the friendly name is folded into the id handed to the policy and
# stripped again before any COM call.
_TAG_SEP = "|"

def tagged_id(endpoint_id, name):
    if not name or name == endpoint_id:
        return endpoint_id
    return f"{name.lower()}{_TAG_SEP}{endpoint_id}"

def untag_id(device_id):
    if device_id and _TAG_SEP in device_id:
        return device_id.rsplit(_TAG_SEP, 1)[1]
    return device_id

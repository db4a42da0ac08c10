# audioroute/devices.py
#
# Windows media engine for the routing policy, built on pycaw/comtypes.
#
# Responsibilities:
# - Enumerate active Capture (input) and Render (output) endpoints as device dicts.
# - Set the default endpoint for the configured roles via PolicyConfig.
#
# Windows exposes a Bluetooth headset as two endpoint pairs: the stereo
# (A2DP) "Headphones" render endpoint and the "Headset ... Hands-Free" pair.
# Picking the hands-free mic as default makes Windows switch output to the
# hands-free render endpoint too, which is the coupling the plugin undoes.
#
# COM notes (kept from the CLI this grew out of):
# - Every helper manages its own COM init/teardown via _com_context(), refcounted
#   per thread so nested helpers do not uninitialize COM under each other.
# - We cache interface *definitions*, never COM objects: COM objects have thread
#   affinity and the post-connect enforcement runs on a timer thread.
#
# Only import this module on Windows; the policy modules never import it.
import ctypes
import threading
import warnings
from contextlib import contextmanager
from ctypes import wintypes

# Import compat BEFORE comtypes/pycaw: it applies the comtypes.automation shim.
from .compat import (
    E_RENDER, E_CAPTURE,
    E_CONSOLE, E_MULTIMEDIA, E_COMMUNICATIONS,
    ROLES, DEVICE_STATE_ACTIVE,
    FLOW_CAPTURE, FLOW_RENDER, DEFAULT_MIC_ID,
    tagged_id, untag_id,
)

import comtypes
from comtypes import CLSCTX_ALL, CoCreateInstance, GUID, IUnknown, COMMETHOD, HRESULT
from pycaw.pycaw import AudioUtilities, IMMDeviceEnumerator
from pycaw.constants import CLSID_MMDeviceEnumerator

from .classify import is_wireless
from .selector import mark_builtin_input
from .logging_setup import _dbg

# ---- COM lifecycle management ------------------------------------------------
_com_tls = threading.local()

def _com_enter():
    cnt = getattr(_com_tls, "count", 0)
    if cnt == 0:
        try:
            comtypes.CoInitialize()
        except OSError as e:
            # Already initialized with another apartment model; the COM call
            # itself is the real success signal.
            _dbg(f"CoInitialize: {e!r}")
    _com_tls.count = cnt + 1

def _com_exit():
    cnt = getattr(_com_tls, "count", 0) - 1
    if cnt <= 0:
        _com_tls.count = 0
        try:
            comtypes.CoUninitialize()
        except OSError as e:
            _dbg(f"CoUninitialize: {e!r}")
    else:
        _com_tls.count = cnt

@contextmanager
def _com_context():
    _com_enter()
    try:
        yield
    finally:
        _com_exit()

# ---- PolicyConfig ------------------------------------------------------------
_POLICY_CONFIG_INTERFACES_CACHE = None

def _get_policy_config_interfaces():
    """
    PolicyConfig interface definitions, created once.

    pycaw builds differ in whether they ship policyconfig; when they don't we
    declare the (undocumented) vtable ourselves. Only SetDefaultEndpoint is
    called, the preceding slots just have to line up.
    """
    global _POLICY_CONFIG_INTERFACES_CACHE
    if _POLICY_CONFIG_INTERFACES_CACHE is not None:
        return _POLICY_CONFIG_INTERFACES_CACHE

    try:
        from pycaw.policyconfig import IPolicyConfig, IPolicyConfigVista, CLSID_PolicyConfigClient
        _POLICY_CONFIG_INTERFACES_CACHE = (IPolicyConfig, IPolicyConfigVista, CLSID_PolicyConfigClient)
        return _POLICY_CONFIG_INTERFACES_CACHE
    except ImportError:
        pass

    CLSID_PolicyConfigClient = GUID("{294935CE-F637-4E7C-A41B-AB255460B862}")
    LPVOID = ctypes.POINTER(ctypes.c_void_p)

    class IPolicyConfigVista(IUnknown):
        _iid_ = GUID("{568B9108-44BF-40B4-9006-86AFE5B5A620}")
        _methods_ = (
            COMMETHOD([], HRESULT, 'GetMixFormat', (['in'], wintypes.LPCWSTR, 'wszDeviceId'), (['out'], LPVOID, 'ppFormat')),
            COMMETHOD([], HRESULT, 'GetDeviceFormat', (['in'], wintypes.LPCWSTR, 'wszDeviceId'), (['in'], wintypes.BOOL, 'bDefault'), (['out'], LPVOID, 'ppFormat')),
            COMMETHOD([], HRESULT, 'SetDeviceFormat', (['in'], wintypes.LPCWSTR, 'wszDeviceId'), (['in'], ctypes.c_void_p, 'pEndpointFormat'), (['in'], ctypes.c_void_p, 'mixFormat')),
            COMMETHOD([], HRESULT, 'GetProcessingPeriod', (['in'], wintypes.LPCWSTR, 'wszDeviceId'), (['in'], wintypes.BOOL, 'bDefault'), (['out'], ctypes.POINTER(ctypes.c_longlong), 'pmftDefaultPeriod'), (['out'], ctypes.POINTER(ctypes.c_longlong), 'pmftMinimumPeriod')),
            COMMETHOD([], HRESULT, 'SetProcessingPeriod', (['in'], wintypes.LPCWSTR, 'wszDeviceId'), (['in'], ctypes.POINTER(ctypes.c_longlong), 'pmftPeriod')),
            COMMETHOD([], HRESULT, 'GetShareMode', (['in'], wintypes.LPCWSTR, 'wszDeviceId'), (['out'], LPVOID, 'pMode')),
            COMMETHOD([], HRESULT, 'SetShareMode', (['in'], wintypes.LPCWSTR, 'wszDeviceId'), (['in'], ctypes.c_void_p, 'mode')),
            COMMETHOD([], HRESULT, 'GetPropertyValue', (['in'], wintypes.LPCWSTR, 'wszDeviceId'), (['in'], LPVOID, 'key'), (['out'], LPVOID, 'pv')),
            COMMETHOD([], HRESULT, 'SetPropertyValue', (['in'], wintypes.LPCWSTR, 'wszDeviceId'), (['in'], LPVOID, 'key'), (['in'], LPVOID, 'pv')),
            COMMETHOD([], HRESULT, 'SetDefaultEndpoint', (['in'], wintypes.LPCWSTR, 'wszDeviceId'), (['in'], wintypes.DWORD, 'role')),
            COMMETHOD([], HRESULT, 'SetEndpointVisibility', (['in'], wintypes.LPCWSTR, 'wszDeviceId'), (['in'], wintypes.BOOL, 'bVisible')),
        )

    _POLICY_CONFIG_INTERFACES_CACHE = (IPolicyConfigVista, IPolicyConfigVista, CLSID_PolicyConfigClient)
    return _POLICY_CONFIG_INTERFACES_CACHE

def _get_policy_config():
    IPolicyConfig, IPolicyConfigVista, CLSID_PolicyConfigClient = _get_policy_config_interfaces()
    try:
        return CoCreateInstance(CLSID_PolicyConfigClient, interface=IPolicyConfig, clsctx=CLSCTX_ALL)
    except comtypes.COMError:
        return CoCreateInstance(CLSID_PolicyConfigClient, interface=IPolicyConfigVista, clsctx=CLSCTX_ALL)

def set_default_endpoint(device_id, role):
    """
    Set the system default endpoint for `role` ("console" / "multimedia" /
    "communications" / "all"). Refuses inactive endpoints.
    """
    _dbg(f"SetDefaultEndpoint start: id={device_id} role={role}")
    if not _is_device_active(device_id):
        raise RuntimeError(f"Target device {device_id!r} is not active; refusing to set default.")
    with _com_context():
        policy = _get_policy_config()
        if role == "all":
            failed = []
            last_err = None
            for rname, rval in (("console", E_CONSOLE), ("multimedia", E_MULTIMEDIA), ("communications", E_COMMUNICATIONS)):
                try:
                    policy.SetDefaultEndpoint(device_id, rval)
                except comtypes.COMError as e:
                    failed.append(rname)
                    last_err = e
            if failed:
                raise RuntimeError(f"SetDefaultEndpoint failed for roles: {', '.join(failed)}. Underlying error: {last_err}")
        else:
            policy.SetDefaultEndpoint(device_id, ROLES[role])
    _dbg("SetDefaultEndpoint done")

# ---- enumeration -------------------------------------------------------------

def enum_endpoints(flow, state_mask):
    with _com_context():
        enumerator = CoCreateInstance(CLSID_MMDeviceEnumerator, IMMDeviceEnumerator, CLSCTX_ALL)
        collection = enumerator.EnumAudioEndpoints(flow, state_mask)
        return enumerator, collection

def _is_device_active(device_id):
    with _com_context():
        for flow in (E_RENDER, E_CAPTURE):
            _, coll = enum_endpoints(flow, DEVICE_STATE_ACTIVE)
            for i in range(coll.GetCount()):
                if coll.Item(i).GetId() == device_id:
                    return True
    return False

def _default_id(enumerator, flow, role):
    try:
        return enumerator.GetDefaultAudioEndpoint(flow, role).GetId()
    except comtypes.COMError:
        # No default for this flow (e.g. no microphone at all).
        return None

def _friendly_names_by_id():
    """{device_id: FriendlyName} from pycaw's managed wrappers; ids fall back to themselves."""
    names = {}
    with _com_context():
        for dev in AudioUtilities.GetAllDevices():
            dev_id = getattr(dev, "id", None)
            fn = getattr(dev, "FriendlyName", None)
            if dev_id and fn:
                names[dev_id] = fn
    return names

def list_devices(flow_name):
    """
    Active endpoints of one flow in enumeration order:
      [{id, name, flow, isDefault: {console, multimedia, communications}}]
    """
    flow = E_CAPTURE if flow_name == FLOW_CAPTURE else E_RENDER
    with _com_context():
        with warnings.catch_warnings():
            # pycaw warns about property values it cannot decode.
            warnings.simplefilter("ignore", UserWarning)
            name_map = _friendly_names_by_id()
            enumerator, coll = enum_endpoints(flow, DEVICE_STATE_ACTIVE)
            defaults = {
                "console": _default_id(enumerator, flow, E_CONSOLE),
                "multimedia": _default_id(enumerator, flow, E_MULTIMEDIA),
                "communications": _default_id(enumerator, flow, E_COMMUNICATIONS),
            }
            out = []
            for i in range(coll.GetCount()):
                dev_id = coll.Item(i).GetId()
                out.append({
                    "id": dev_id,
                    "name": name_map.get(dev_id) or dev_id,
                    "flow": flow_name,
                    "isDefault": {k: dev_id == v for k, v in defaults.items()},
                })
    _dbg(f"list_devices({flow_name}): total={len(out)}")
    return out

class WindowsMediaEngine:
    """
    Media engine contract over the Windows endpoint API.

    Device dicts handed out carry `id` = tagged_id(endpoint, name) so the
    keyword classifier can see the vendor, plus the raw `endpointId`. Set
    commands accept either form. The first wired capture endpoint is reported
    under the reserved "default" id (see selector.mark_builtin_input).
    """

    def __init__(self, input_role="all", output_role="all"):
        self.input_role = input_role
        self.output_role = output_role

    def get_audio_input_devices(self):
        # Windows mics have generic names; the first wired one stands in as built-in.
        return mark_builtin_input([self._tag(d) for d in list_devices(FLOW_CAPTURE)])

    def get_audio_output_devices(self):
        return [self._tag(d) for d in list_devices(FLOW_RENDER)]

    def set_audio_input_device(self, device_id):
        endpoint_id = untag_id(device_id)
        if endpoint_id == DEFAULT_MIC_ID:
            endpoint_id = self._first_wired_input()
        set_default_endpoint(endpoint_id, self.input_role)

    def set_audio_output_device(self, device_id):
        set_default_endpoint(untag_id(device_id), self.output_role)

    def _first_wired_input(self):
        # "default" is the policy's "built-in mic, whatever it is called"; on a
        # PC that is the first capture endpoint that is not a wireless headset.
        for d in self.get_audio_input_devices():
            if not is_wireless(d["id"]):
                return d["endpointId"]
        raise RuntimeError("No wired capture endpoint to use as built-in microphone.")

    @staticmethod
    def _tag(d):
        d = dict(d)
        d["endpointId"] = d["id"]
        d["id"] = tagged_id(d["id"], d["name"])
        return d


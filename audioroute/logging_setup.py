# audioroute/logging_setup.py
import os
import sys
import traceback
import datetime
import tempfile
import threading

try:
    import faulthandler
except Exception:
    faulthandler = None

# Debug toggle (runtime)
_DEBUG = bool(int(os.environ.get("AUDIOROUTE_DEBUG", "0") or "0"))

# Tag prepended to plugin events so they are easy to grep in a shared log.
TAG = "[BetterBluetoothAudio]"

# Internal state (lazy init: no file I/O at import time)
_LOG_DIR = None
_LOG_PATH = None
_INITIALIZED = False
_FH = None            # faulthandler file handle
_HOOKS_INSTALLED = False
_WRITE_LOCK = threading.Lock()

def set_debug(on: bool = True):
    global _DEBUG
    _DEBUG = bool(on)
    _log(f"DEBUG {'enabled' if _DEBUG else 'disabled'}")

def _pkg_dir():
    try:
        if getattr(sys, "frozen", False):  # PyInstaller
            return os.path.dirname(sys.executable)
        return os.path.dirname(os.path.abspath(__file__))
    except Exception:
        return os.getcwd()

def _resolve_log_path():
    """
    Decide where the log would live, but do not create it yet.

    AUDIOROUTE_LOG_DIR wins; otherwise next to the package, falling back to
    a temp subdirectory when that location is read-only (site-packages).
    """
    base = os.environ.get("AUDIOROUTE_LOG_DIR") or _pkg_dir()
    path = os.path.join(base, "audioroute.log")
    try:
        os.makedirs(base, exist_ok=True)
        # Check writability without creating the real log
        test = os.path.join(base, ".writetest")
        with open(test, "w", encoding="utf-8") as _:
            pass
        os.remove(test)
        return base, path
    except OSError:
        tdir = os.path.join(tempfile.gettempdir(), "audioroute")
        try:
            os.makedirs(tdir, exist_ok=True)
        except OSError:
            tdir = tempfile.gettempdir()
        return tdir, os.path.join(tdir, "audioroute.log")

def _ensure_resolved():
    global _LOG_DIR, _LOG_PATH
    if _LOG_DIR is None or _LOG_PATH is None:
        _LOG_DIR, _LOG_PATH = _resolve_log_path()

def reset_log_location():
    """Forget the resolved log path so the next write re-reads AUDIOROUTE_LOG_DIR."""
    global _LOG_DIR, _LOG_PATH
    _LOG_DIR = None
    _LOG_PATH = None

def _global_excepthook(exc_type, exc_value, exc_tb):
    _log_exc("UNCAUGHT EXCEPTION", (exc_type, exc_value, exc_tb))
    sys.__excepthook__(exc_type, exc_value, exc_tb)

def _thread_excepthook(hook_args):
    # Timer threads (post-connection enforcement) end up here if anything escapes.
    _log_exc(f"UNCAUGHT EXCEPTION in thread {getattr(hook_args.thread, 'name', '?')}",
             (hook_args.exc_type, hook_args.exc_value, hook_args.exc_traceback))

def _unraisable_hook(unraisable):
    _log(f"UNRAISABLE: {getattr(unraisable.exc_type, '__name__', str(unraisable.exc_type))}: "
         f"{unraisable.exc_value}\nObject: {unraisable.object!r}")

def _install_hooks_once():
    """
    Install exception hooks (idempotent). No file I/O here.
    """
    global _HOOKS_INSTALLED
    if _HOOKS_INSTALLED:
        return
    sys.excepthook = _global_excepthook
    sys.unraisablehook = _unraisable_hook
    threading.excepthook = _thread_excepthook
    _HOOKS_INSTALLED = True

def _atexit_close_handles():
    global _FH
    if faulthandler and _FH and not _FH.closed:
        _FH.flush()
        _FH.close()
        _FH = None

def init_logging_runtime(enable_faulthandler=True):
    """
    Process-wide setup for the CLI:
    - Write the first breadcrumb (creates the log file)
    - Install exception hooks
    - Enable faulthandler into the log (comtypes crashes are native)
    - Register atexit handlers

    Library users (and tests) never call this; plain _log() works without it.
    """
    global _INITIALIZED, _FH
    if _INITIALIZED:
        return

    _ensure_resolved()
    _log(f"logging to: {_LOG_PATH}")

    _install_hooks_once()

    if enable_faulthandler and faulthandler and _FH is None:
        try:
            _FH = open(_LOG_PATH, "a", buffering=1)
            faulthandler.enable(file=_FH, all_threads=True)
        except OSError:
            faulthandler.enable(all_threads=True)

    import atexit
    atexit.register(_log, "atexit: process exiting normally")
    atexit.register(_atexit_close_handles)

    _INITIALIZED = True

def _log_path():
    _ensure_resolved()   # no file I/O here
    return _LOG_PATH

def _write(line: str):
    _ensure_resolved()
    try:
        with _WRITE_LOCK:
            with open(_LOG_PATH, "a", encoding="utf-8", errors="replace") as f:
                f.write(line + "\n")
    except OSError:
        # Logging must never take the host down with it.
        pass

def _log(msg: str):
    ts = datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    _write(f"[{ts}] {msg}")

def _log_exc(prefix: str, exc_info=None):
    if exc_info is None:
        exc_info = sys.exc_info()
    tb = "".join(traceback.format_exception(*exc_info))
    _log(f"{prefix}\n{tb}")

def _dbg(msg: str):
    if not _DEBUG:
        return
    ts = datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    tid = threading.get_ident()
    pid = os.getpid()
    _write(f"[{ts}] [DBG pid={pid} tid={tid}] {msg}")

# audioroute/config.py
#
# Optional INI settings, read once at startup:
#
#   [routing]
#   settle_delay = 1.0        seconds to wait after a connect before enforcing
#   poll_interval = 0.5       watcher poll period (run command)
#   input_role = all          console | multimedia | communications | all
#   output_role = all
#   debug = false
#
# Missing file, missing keys and bad values all fall back to defaults.
import os
import configparser

from .compat import ROLES, DEFAULT_SETTLE_DELAY, DEFAULT_POLL_INTERVAL
from .logging_setup import _pkg_dir, _dbg

SECTION = "routing"

DEFAULTS = {
    "settle_delay": DEFAULT_SETTLE_DELAY,
    "poll_interval": DEFAULT_POLL_INTERVAL,
    "input_role": "all",
    "output_role": "all",
    "debug": False,
}

def default_config_path():
    return os.path.join(_pkg_dir(), "audioroute.ini")

def _non_negative_float(cfg, key, fallback):
    try:
        v = cfg.getfloat(SECTION, key, fallback=fallback)
    except (ValueError, configparser.Error):
        return fallback
    return v if v >= 0 else fallback

def _role(cfg, key, fallback):
    try:
        v = cfg.get(SECTION, key, fallback=fallback)
    except configparser.Error:
        return fallback
    v = v.strip().lower()
    return v if v in ROLES else "all"

def load_config(ini_path=None):
    """Return a settings dict; never raises for a missing or malformed file."""
    path = ini_path or default_config_path()
    settings = dict(DEFAULTS)
    # Raw values: a stray "%" is just a bad value, not an interpolation error.
    cfg = configparser.ConfigParser(interpolation=None)
    try:
        if not os.path.exists(path):
            return settings
        cfg.read(path, encoding="utf-8")
    except (OSError, configparser.Error) as e:
        _dbg(f"config: cannot read {path}: {e!r}")
        return settings
    if not cfg.has_section(SECTION):
        return settings

    settings["settle_delay"] = _non_negative_float(cfg, "settle_delay", DEFAULTS["settle_delay"])
    settings["poll_interval"] = _non_negative_float(cfg, "poll_interval", DEFAULTS["poll_interval"])
    settings["input_role"] = _role(cfg, "input_role", DEFAULTS["input_role"])
    settings["output_role"] = _role(cfg, "output_role", DEFAULTS["output_role"])
    try:
        settings["debug"] = cfg.getboolean(SECTION, "debug", fallback=False)
    except (ValueError, configparser.Error):
        settings["debug"] = False
    _dbg(f"config: loaded {path}: {settings}")
    return settings

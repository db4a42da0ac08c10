# audioroute/cli.py
import sys
import json
import argparse

from .compat import ROLES, FLOW_CAPTURE, FLOW_RENDER, is_admin
from .classify import device_class
from .config import load_config
from .context import initialize_modules
from .enforcer import RoutingEnforcer
from .plugin import BetterBluetoothAudio
from .resolver import ModuleRegistry
from .watcher import EndpointWatcher
from .logging_setup import _log, _log_exc, _log_path, set_debug, init_logging_runtime

def _windows_engine(settings):
    # Imported lazily: pycaw/comtypes only exist on Windows.
    from .devices import WindowsMediaEngine
    return WindowsMediaEngine(input_role=settings["input_role"], output_role=settings["output_role"])

def build_registry(engine, voice_connection=EndpointWatcher):
    """Expose the host objects the plugin resolves at start."""
    registry = ModuleRegistry()
    registry.register("MediaEngine", engine)
    registry.register("VoiceConnection", voice_connection)
    return registry

def _device_rows(engine):
    rows = []
    for flow, getter in ((FLOW_CAPTURE, engine.get_audio_input_devices),
                         (FLOW_RENDER, engine.get_audio_output_devices)):
        for d in getter():
            rows.append({
                "id": d["id"],
                "name": d.get("name"),
                "flow": flow,
                "class": device_class(d),
                "isDefault": d.get("isDefault", {}),
            })
    return rows

def cmd_list(args, settings, engine):
    rows = _device_rows(engine)
    if args.json:
        print(json.dumps({"devices": rows}, indent=2))
        return 0
    for flow, title in ((FLOW_CAPTURE, "--- Recording (Capture) ---"), (FLOW_RENDER, "--- Playback (Render) ---")):
        print(title)
        for i, d in enumerate(r for r in rows if r["flow"] == flow):
            flags = [k for k, v in d["isDefault"].items() if v]
            print(f"[{i}] {d['name']}  class={d['class']}  id={d['id']}  defaults={','.join(flags) if flags else '-'}")
        print()
    return 0

def cmd_enforce(args, settings, engine):
    ctx = initialize_modules(build_registry(engine))
    summary = RoutingEnforcer(ctx).enforce()
    if args.json:
        print(json.dumps(summary))
    else:
        print(f"input:  {summary['input'] or '-'}")
        print(f"output: {summary['output'] or '-'}")
    # Nothing to route to is not an error; a failed command already got logged.
    return 0

def cmd_run(args, settings, engine):
    settle = args.settle_delay if args.settle_delay is not None else settings["settle_delay"]
    interval = args.interval if args.interval is not None else settings["poll_interval"]

    ctx = initialize_modules(build_registry(engine))
    plugin = BetterBluetoothAudio(ctx, settle_delay=settle)
    watcher = EndpointWatcher(engine, interval=interval)
    plugin.start()
    try:
        # Start from a known-good state, then follow the platform's changes.
        plugin.enforcer.enforce()
        print(f"Routing enforced; watching every {watcher.interval:.2f}s (Ctrl+C to stop). Log: {_log_path()}",
              file=sys.stderr)
        watcher.run(once=args.once)
    finally:
        plugin.stop()
    return 0

def build_parser():
    p = argparse.ArgumentParser(
        prog="audioroute",
        description="Keep the built-in mic as input while Bluetooth headphones stay the output (pycaw-based)",
    )
    p.add_argument("--config", help="Path to audioroute.ini (default: next to the package)")
    p.add_argument("--debug", action="store_true", help="Verbose log output")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_list = sub.add_parser("list", help="List active devices and how they are classified")
    p_list.add_argument("--json", action="store_true")
    p_list.set_defaults(func=cmd_list)

    p_enf = sub.add_parser("enforce", help="Run a single enforcement pass")
    p_enf.add_argument("--json", action="store_true")
    p_enf.add_argument("--input-role", choices=list(ROLES.keys()))
    p_enf.add_argument("--output-role", choices=list(ROLES.keys()))
    p_enf.set_defaults(func=cmd_enforce)

    p_run = sub.add_parser("run", help="Enforce routing and keep correcting it until Ctrl+C")
    p_run.add_argument("--interval", type=float, help="Poll interval in seconds")
    p_run.add_argument("--settle-delay", type=float, help="Seconds to wait after a headset connects")
    p_run.add_argument("--input-role", choices=list(ROLES.keys()))
    p_run.add_argument("--output-role", choices=list(ROLES.keys()))
    p_run.add_argument("--once", action="store_true", help=argparse.SUPPRESS)
    p_run.set_defaults(func=cmd_run)

    return p

def main(argv=None, engine=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = load_config(args.config)
    if args.debug or settings["debug"]:
        set_debug(True)
    for key in ("input_role", "output_role"):
        if getattr(args, key, None):
            settings[key] = getattr(args, key)
    init_logging_runtime()
    _log(f"audioroute {args.cmd}: {settings}")

    if engine is None:
        if not sys.platform.startswith("win"):
            print("ERROR: the built-in media engine needs Windows (pycaw)", file=sys.stderr)
            return 1
        if args.cmd != "list" and not is_admin():
            print("WARNING: changing default devices might require Administrator privileges on this system.",
                  file=sys.stderr)
        engine = _windows_engine(settings)

    try:
        rc = args.func(args, settings, engine)
    except KeyboardInterrupt:
        rc = 130
    except Exception as e:
        _log_exc(f"audioroute {args.cmd} failed")
        print(f"ERROR: {e}", file=sys.stderr)
        rc = 1
    return rc

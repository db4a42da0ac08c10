# audioroute/patcher.py
#
# Minimal before/after method interception on live objects.
#
#   before(name, target, handler)  handler(args) runs first; it may mutate the
#                                  `args` list to change what the original gets.
#   after(name, target, handler)   handler(args, result) runs once the original
#                                  returned; the result is passed through untouched.
#
# `target` may be a class (every instance is intercepted and `self` is not part
# of `args`), an instance, or a module. Each call returns an unpatch callable.
#
# A failing handler is logged and the original call still happens: hooks must
# never break the host's own audio calls.
import functools
import inspect
from .logging_setup import _log_exc, _dbg

_MISSING = object()

def _name(target):
    return getattr(target, "__name__", type(target).__name__)

def _install(method_name, target, make_wrapper):
    original = getattr(target, method_name, _MISSING)
    if original is _MISSING or not callable(original):
        raise AttributeError(f"{type(target).__name__} has no method {method_name!r} to patch")

    # Remember what was stored on the target itself so unpatch can restore it
    # exactly (or drop our override when the method was inherited).
    own = getattr(target, "__dict__", {}).get(method_name, _MISSING)
    is_class = inspect.isclass(target)

    # Shared with the wrapper: an unpatched wrapper that is still buried under
    # a newer hook turns into a pass-through.
    state = {"active": True, "own": own}
    wrapper = make_wrapper(original, is_class, state)
    functools.update_wrapper(wrapper, original)
    wrapper._patch_state = state
    setattr(target, method_name, wrapper)
    _dbg(f"patched {_name(target)}.{method_name}")

    def unpatch():
        if not state["active"]:
            return
        state["active"] = False
        if getattr(target, "__dict__", {}).get(method_name) is wrapper:
            _restore(target, method_name, state["own"])
        _dbg(f"unpatched {_name(target)}.{method_name}")

    return unpatch

def _restore(target, method_name, value):
    # Skip over wrappers that were already unpatched while stacked below us.
    while value is not _MISSING and getattr(value, "_patch_state", None) and not value._patch_state["active"]:
        value = value._patch_state["own"]
    if value is _MISSING:
        try:
            delattr(target, method_name)
        except AttributeError:
            pass
    else:
        setattr(target, method_name, value)

def _run_handler(state, handler, method_name, *handler_args):
    if not state["active"]:
        return
    try:
        handler(*handler_args)
    except Exception:
        _log_exc(f"hook for {method_name} raised; continuing with the original call")

def before(method_name, target, handler):
    def make_wrapper(original, is_class, state):
        if is_class:
            def wrapper(self, *args, **kwargs):
                call_args = list(args)
                _run_handler(state, handler, method_name, call_args)
                return original(self, *call_args, **kwargs)
        else:
            def wrapper(*args, **kwargs):
                call_args = list(args)
                _run_handler(state, handler, method_name, call_args)
                return original(*call_args, **kwargs)
        return wrapper
    return _install(method_name, target, make_wrapper)

def after(method_name, target, handler):
    def make_wrapper(original, is_class, state):
        if is_class:
            def wrapper(self, *args, **kwargs):
                result = original(self, *args, **kwargs)
                _run_handler(state, handler, method_name, list(args), result)
                return result
        else:
            def wrapper(*args, **kwargs):
                result = original(*args, **kwargs)
                _run_handler(state, handler, method_name, list(args), result)
                return result
        return wrapper
    return _install(method_name, target, make_wrapper)

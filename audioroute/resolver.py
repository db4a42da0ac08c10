# audioroute/resolver.py
#
# In-process module registry: the host registers the objects it exposes and
# the plugin looks them up by capability (method names) or by name.
# Either lookup may come back empty; callers treat None as "not available".
from .logging_setup import _dbg

class ModuleRegistry:
    def __init__(self):
        self._modules = []   # [(name, obj)] in registration order

    def register(self, name, obj):
        self._modules.append((name, obj))
        _dbg(f"registry: registered {name!r} ({type(obj).__name__})")
        return obj

    def unregister(self, name):
        self._modules = [(n, o) for n, o in self._modules if n != name]

    def find_by_props(self, *props):
        """First registered object exposing every named attribute as a callable."""
        if not props:
            return None
        for _name, obj in self._modules:
            if all(callable(getattr(obj, p, None)) for p in props):
                return obj
        return None

    def find_by_name(self, name):
        for n, obj in self._modules:
            if n == name:
                return obj
        return None

    def __len__(self):
        return len(self._modules)

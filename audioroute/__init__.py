# audioroute/__init__.py

# Package-level exports: the CLI dispatcher plus the pieces a host needs to
# embed the routing policy without going through the CLI.
from .cli import main
from .context import RoutingContext, initialize_modules
from .plugin import BetterBluetoothAudio
from .resolver import ModuleRegistry

__all__ = ["main", "RoutingContext", "initialize_modules", "BetterBluetoothAudio", "ModuleRegistry"]

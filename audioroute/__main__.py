# audioroute/__main__.py
# `python -m audioroute ...` forwards into the shared CLI dispatcher.

from .cli import main

if __name__ == "__main__":
    import sys
    sys.exit(main())

"""Module entrypoint to run `python -m psqlgate`."""

from __future__ import annotations

from .diagnostics import main

if __name__ == "__main__":
    raise SystemExit(main())

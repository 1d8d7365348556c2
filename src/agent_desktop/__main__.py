"""Allow ``python -m agent_desktop`` to behave like the launcher."""

from __future__ import annotations

from agent_desktop.launcher import main

if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())

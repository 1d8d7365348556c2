"""agent-desktop - Python distribution shim for the agent-desktop native binary.

The real program is a platform-specific compiled executable published on the
project's GitHub releases. This package downloads, verifies and installs that
executable (``agent-desktop-install``) and launches it transparently on every
invocation (``agent-desktop``).
"""

from __future__ import annotations

__version__ = "0.1.0"

__all__ = ["__version__"]

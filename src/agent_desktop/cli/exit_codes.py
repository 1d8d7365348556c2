"""Exit codes for agent-desktop commands.

- 0: Success. The installer also exits 0 when the native binary could not be
  installed, so that the surrounding package installation is never blocked.
- 1: The launcher could not locate or start the native binary.
- 2: Invalid usage (bad arguments, unreadable config file).

The launcher otherwise exits with the native binary's own exit code.
"""

from __future__ import annotations

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_INVALID_USAGE = 2

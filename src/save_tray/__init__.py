"""Save Tray: a coordinator-delegated participant ledger.

Peers in a shared session record who is taking part in a check and how each
participant fared.  Only the elected coordinator may persist the ledger; every
other peer merges locally and hands the complete snapshot to the coordinator.

Version Management
------------------
``__version__`` is read from the installed package metadata at import time.
The single source of truth is the ``version`` field in ``pyproject.toml``.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__: str = version("save-tray")
except PackageNotFoundError:
    __version__ = "0.3.0"

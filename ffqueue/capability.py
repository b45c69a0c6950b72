"""
ffqueue.capability
~~~~~~~~~~~~~~~~~~
Scoped write access to the output directory.

The orchestrator holds one capability for exactly one batch run:
``acquire()`` before the first item, ``release()`` on every way out.
Anything with a ``directory`` attribute and those two methods can be
passed in its place.
"""

from __future__ import annotations

import os
from pathlib import Path

from ffqueue.errors import CapabilityError


class DirectoryCapability:
    """Plain-filesystem capability: create the folder and check it is writable."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)
        self.held = False

    def acquire(self) -> None:
        """
        Raises:
            CapabilityError – the directory cannot be created or written to
        """
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise CapabilityError(f"Cannot create output directory {self.directory}: {exc}") from exc

        if not os.access(self.directory, os.W_OK | os.X_OK):
            raise CapabilityError(f"Output directory is not writable: {self.directory}")

        self.held = True
        print(f"[CAPABILITY] Acquired '{self.directory}'")

    def release(self) -> None:
        if not self.held:
            return
        self.held = False
        print(f"[CAPABILITY] Released '{self.directory}'")

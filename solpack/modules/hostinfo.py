# solpack/modules/hostinfo.py
"""
Host information used to pick package architectures and stamp pkginfo files.
"""

from __future__ import annotations

import platform
import socket
from dataclasses import dataclass

_INTEL_MACHINES = {"i86pc", "i386", "i486", "i586", "i686", "x86", "x86_64", "amd64"}


@dataclass(frozen=True)
class HostInfo:
    hostname: str
    machine: str     # kernel machine name (uname -m)
    processor: str   # processor type (uname -p)

    @property
    def intel(self) -> bool:
        return self.machine.lower() in _INTEL_MACHINES or self.processor.lower() in ("i386", "x86_64", "amd64")

    @property
    def sparc(self) -> bool:
        return self.machine.lower().startswith("sun4") or self.processor.lower().startswith("sparc")


def detect() -> HostInfo:
    """Collect host information from the running system."""
    machine = platform.machine() or ""
    processor = platform.processor() or machine
    return HostInfo(hostname=socket.gethostname(), machine=machine, processor=processor)

# solpack/modules/normalize.py
"""
Name, version and architecture normalization.

Every function here is pure: the same project and host always give the same
strings, and none of them fail on odd input.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional

from solpack.modules.hostinfo import HostInfo
from solpack.modules.logging import get_logger

logger = get_logger("normalize")

SAFE_NAME_RE = re.compile(r"\A[a-z0-9.+\-]+\Z")
_UNSAFE_RUN_RE = re.compile(r"[^a-z0-9.+\-]+")
_NON_DIGIT_RE = re.compile(r"[^\d]")

# Known limitation: IPS FMRIs carry this fixed timestamp, not the build time.
FMRI_TIMESTAMP = "20160226T100948Z"


@dataclass(frozen=True)
class PackageDescriptor:
    safe_name: str
    version: str
    iteration: str
    architecture: str
    fmri: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def safe_base_package_name(raw: str, log=None) -> str:
    """
    Return a package name containing only ``[a-z0-9.+-]``.

    Names that already qualify are returned unchanged. Anything else is
    lower-cased and every run of other characters becomes a single dash.
    """
    if SAFE_NAME_RE.match(raw):
        return raw
    converted = _UNSAFE_RUN_RE.sub("-", raw.lower())
    (log or logger).warning(
        "The `name' component of package names can only include lowercase alphabetical "
        "characters (a-z), numbers (0-9), dots (.), plus signs (+), and dashes (-). "
        "Converting `%s' to `%s'.", raw, converted
    )
    return converted


def safe_architecture(host: HostInfo) -> str:
    if host.intel:
        return "i386"
    if host.sparc:
        return "sparc"
    return host.machine


def _split_version(build_version: str) -> List[str]:
    parts = _NON_DIGIT_RE.split(build_version)
    while parts and parts[-1] == "":
        parts.pop()
    return parts


def fmri_package_name(safe_name: str, build_version: str, build_iteration: str,
                      timestamp: str = FMRI_TIMESTAMP) -> str:
    """
    Build the IPS FMRI ``name@v,v-iteration:timestamp``.

    ``v`` is the second and third numeric fields of the build version, so
    ``2.3.4.5`` gives ``3.4``.
    """
    version = ".".join(_split_version(build_version)[1:3])
    return f"{safe_name}@{version},{version}-{build_iteration}:{timestamp}"


def pkgmk_version(build_version: str, build_iteration: str) -> str:
    return f"{build_version}-{build_iteration}"


def describe(project, host: HostInfo, flavor: str = "solaris", fmri_timestamp: str = FMRI_TIMESTAMP) -> PackageDescriptor:
    safe_name = safe_base_package_name(project.package_name)
    fmri = None
    if flavor == "ips":
        fmri = fmri_package_name(safe_name, project.build_version, project.build_iteration, fmri_timestamp)
    return PackageDescriptor(
        safe_name=safe_name,
        version=project.build_version,
        iteration=project.build_iteration,
        architecture=safe_architecture(host),
        fmri=fmri,
    )

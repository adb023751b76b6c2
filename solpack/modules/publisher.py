# solpack/modules/publisher.py
# -*- coding: utf-8 -*-
"""
publisher.py - upload built packages to a remote repository

API:
  pub = PackagecloudPublisher("pkg/*.solaris", repo="acme/stable", distros="el/7,ubuntu/trusty")
  pub.publish(lambda package: print("uploaded", package.name))

Uploads are fail-fast: the first rejected upload raises PublishFailure and
nothing further is sent. The callback runs once per package, after it has been
uploaded to every distribution.
"""

from __future__ import annotations

import glob
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

import requests

from solpack.modules.artifact import METADATA_SUFFIX, Package
from solpack.modules.config import Config, get_config
from solpack.modules.errors import PublishFailure, ValidationError
from solpack.modules.logging import get_logger

logger = get_logger("publisher")


def parse_distros(value: Union[str, List[str], None]) -> List[str]:
    if not value:
        return []
    items = value.split(",") if isinstance(value, str) else list(value)
    return [d.strip() for d in items if d and d.strip()]


class Publisher:
    """Resolves a glob pattern into packages; subclasses implement ``publish``."""

    id = "base"

    def __init__(self, pattern: str, config: Optional[Config] = None):
        self.pattern = pattern
        self.config = config or get_config()

    @property
    def packages(self) -> List[Package]:
        found = []
        for path in sorted(glob.glob(self.pattern)):
            if path.endswith(METADATA_SUFFIX) or not Path(path).is_file():
                continue
            found.append(Package(path))
        if not found:
            logger.warning("No packages found matching `%s'", self.pattern)
        return found

    def publish(self, callback: Optional[Callable[[Package], Any]] = None) -> List[Package]:
        raise NotImplementedError


class PackagecloudPublisher(Publisher):
    id = "packagecloud"

    def __init__(self, pattern: str, *, repo: Optional[str] = None,
                 distros: Union[str, List[str], None] = None,
                 user: Optional[str] = None, token: Optional[str] = None,
                 endpoint: Optional[str] = None, timeout: Optional[int] = None,
                 session: Optional[requests.Session] = None,
                 config: Optional[Config] = None):
        super().__init__(pattern, config=config)
        pc = self.config.section("publish.packagecloud")
        self.user = user or pc.get("user")
        self.token = token or pc.get("token")
        self.repo = repo or pc.get("repo")
        self.distros = parse_distros(distros if distros is not None else pc.get("distros"))
        self.endpoint = (endpoint or pc.get("endpoint") or "https://packagecloud.io").rstrip("/")
        self.timeout = timeout or pc.get("timeout") or 300
        self.session = session or requests.Session()
        self._distro_ids: Optional[Dict[str, int]] = None

    # --- helpers ---
    def _check_settings(self) -> None:
        missing = [k for k in ("user", "token", "repo") if not getattr(self, k)]
        if missing:
            raise ValidationError(f"packagecloud publisher missing settings: {', '.join(missing)}")
        if not self.distros:
            raise ValidationError("packagecloud publisher has no distributions to upload to")

    def _repo_path(self) -> str:
        # "user/repo" overrides the configured user
        if "/" in self.repo:
            return self.repo
        return f"{self.user}/{self.repo}"

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            return self.session.request(method, url, auth=(self.token, ""), timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as e:
            raise PublishFailure(f"{method} {url} failed: {e}") from e

    def distro_ids(self) -> Dict[str, int]:
        """Map ``index/version`` (for example ``el/7``) to packagecloud distro version ids."""
        if self._distro_ids is not None:
            return self._distro_ids
        url = f"{self.endpoint}/api/v1/distributions.json"
        resp = self._request("GET", url)
        if resp.status_code != 200:
            raise PublishFailure(f"cannot list distributions (HTTP {resp.status_code})",
                                 status=resp.status_code, body=resp.text)
        try:
            data = resp.json()
        except ValueError as e:
            raise PublishFailure(f"invalid distributions response: {e}", status=resp.status_code,
                                 body=resp.text) from e
        ids: Dict[str, int] = {}
        for distros in data.values():
            for distro in distros or []:
                for version in distro.get("versions", []):
                    ids[f"{distro.get('index_name')}/{version.get('index_name')}"] = version.get("id")
        self._distro_ids = ids
        return ids

    def distro_id(self, distro: str) -> int:
        ids = self.distro_ids()
        if distro not in ids:
            raise PublishFailure(f"unknown packagecloud distribution '{distro}'")
        return ids[distro]

    def upload(self, package: Package, distro: str) -> Dict[str, Any]:
        url = f"{self.endpoint}/api/v1/repos/{self._repo_path()}/packages.json"
        data = {"package[distro_version_id]": str(self.distro_id(distro))}
        with open(package.path, "rb") as fh:
            files = {"package[package_file]": (package.name, fh)}
            resp = self._request("POST", url, data=data, files=files)
        if resp.status_code != 201:
            raise PublishFailure(f"upload of '{package.name}' to '{distro}' rejected (HTTP {resp.status_code})",
                                 status=resp.status_code, body=resp.text)
        try:
            return resp.json()
        except ValueError:
            return {}

    # --- main ---
    def publish(self, callback: Optional[Callable[[Package], Any]] = None) -> List[Package]:
        logger.info("Starting packagecloud publisher")
        self._check_settings()
        published = []
        for package in self.packages:
            logger.debug("Validating '%s'", package.name)
            package.validate()
            for distro in self.distros:
                logger.info("Uploading '%s' to '%s' distribution in '%s' repository",
                            package.name, distro, self.repo)
                self.upload(package, distro)
            if callback:
                callback(package)
            published.append(package)
        return published

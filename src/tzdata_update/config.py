"""
Installer configuration.

The installer needs two paths: the system tzdata file used as the baseline,
and the directory it owns for installed bundles. Both can be overridden
through the environment or on the command line.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from .installer import BundleInstaller

DEFAULT_SYSTEM_TZDATA_FILE = Path("/system/usr/share/zoneinfo/tzdata")
DEFAULT_INSTALL_DIR = Path("/data/misc/zoneinfo")

ENV_SYSTEM_TZDATA = "TZUPDATE_SYSTEM_TZDATA"
ENV_INSTALL_DIR = "TZUPDATE_INSTALL_DIR"


@dataclass
class InstallerConfig:
    """Paths used to construct a BundleInstaller."""
    system_tzdata_file: Path = DEFAULT_SYSTEM_TZDATA_FILE
    install_dir: Path = DEFAULT_INSTALL_DIR

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "InstallerConfig":
        """Build a config from TZUPDATE_* variables, falling back to defaults."""
        env = os.environ if environ is None else environ
        return cls(
            system_tzdata_file=Path(env.get(ENV_SYSTEM_TZDATA) or DEFAULT_SYSTEM_TZDATA_FILE),
            install_dir=Path(env.get(ENV_INSTALL_DIR) or DEFAULT_INSTALL_DIR),
        )

    def create_installer(self) -> BundleInstaller:
        return BundleInstaller(self.system_tzdata_file, self.install_dir)

"""
Time Zone Data Update Installer

Installs externally supplied time zone bundles over the system tzdata:
- Crash-safe staging / active / retired directory swaps
- Bundle version, format and rules version checks
- tzdata content validation before activation
- Uninstall back to the system data
"""

from .installer import (
    BundleInstaller,
    InstallOutcome,
)
from .bundle import (
    TimeZoneBundle,
    TimeZoneBundleBuilder,
)
from .version import BundleVersion
from .tzdata import TzData, read_rules_version
from .config import InstallerConfig

__all__ = [
    "BundleInstaller",
    "InstallOutcome",
    "TimeZoneBundle",
    "TimeZoneBundleBuilder",
    "BundleVersion",
    "TzData",
    "read_rules_version",
    "InstallerConfig",
]

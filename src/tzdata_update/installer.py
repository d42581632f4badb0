"""
Time Zone Bundle Installer

Replaces the time zone data shipped in the system image with a newer bundle
and reverts to the system data on request.

The install directory holds up to three slots:

    staging/   bundle being unpacked and checked
    active/    installed bundle, read by the platform
    retired/   previous active bundle waiting to be deleted

Only ``active/`` is meaningful between operations. A leftover ``staging/`` or
``retired/`` means an earlier operation was interrupted; every operation
starts by deleting them. Swaps are whole-directory renames, so ``active/``
is never seen half written or half deleted.

The installer does no locking. Callers must make sure only one operation runs
against an install directory at a time.
"""

from __future__ import annotations

import logging
import os
from enum import IntEnum
from pathlib import Path
from typing import Optional, Union

from common.decorators import handle_errors, timed
from common.exceptions import BundleException, TzDataError
from common.logging_config import LogContext
from utils import file_utils

from .bundle import (
    BUNDLE_VERSION_FILE_NAME,
    ICU_DATA_FILE_NAME,
    TZDATA_FILE_NAME,
    TimeZoneBundle,
)
from .tzdata import TzData, read_rules_version
from .version import BUNDLE_VERSION_FILE_LENGTH, BundleVersion

logger = logging.getLogger(__name__)

STAGING_DIR_NAME = "staging"
ACTIVE_DIR_NAME = "active"
RETIRED_DIR_NAME = "retired"


class InstallOutcome(IntEnum):
    """Result of an install attempt."""
    SUCCESS = 0
    BAD_BUNDLE_STRUCTURE = 1
    INCOMPATIBLE_FORMAT = 2
    RULES_REGRESSION = 3
    VALIDATION_FAILED = 4

    @property
    def succeeded(self) -> bool:
        return self is InstallOutcome.SUCCESS


@handle_errors(OSError, default=False, log_level=logging.WARNING,
               message="Unable to delete")
def _delete_best_effort(path: Path) -> bool:
    """Delete ``path`` if present. Failures are logged, never raised."""
    if not os.path.lexists(path):
        return True
    logger.info(f"Deleting {path}")
    file_utils.delete_recursive(path)
    return True


class BundleInstaller:
    """
    Installs, uninstalls and reports time zone bundles.

    Install workflow:
    1. Delete leftover retired/ and staging/ directories
    2. Unpack the bundle into staging/
    3. Check the version record, format version, required files,
       rules version against the system data, and tzdata content
    4. Rename active/ to retired/, then staging/ to active/
    5. Delete retired/ and staging/, ignoring errors

    Rejected bundles are reported through ``InstallOutcome`` and leave the
    installed data untouched. Filesystem failures raise ``OSError``.
    """

    def __init__(
        self,
        system_tzdata_file: Union[str, Path],
        install_dir: Union[str, Path],
        logger: Optional[logging.Logger] = None,
    ):
        self.system_tzdata_file = Path(system_tzdata_file)
        self.install_dir = Path(install_dir)
        self.staging_dir = self.install_dir / STAGING_DIR_NAME
        self.active_dir = self.install_dir / ACTIVE_DIR_NAME
        self.retired_dir = self.install_dir / RETIRED_DIR_NAME
        self._log = logger or logging.getLogger(__name__)

    def _remove_stale_dirs(self, *dirs: Path) -> None:
        """Delete directories left by an interrupted operation. Errors propagate."""
        for stale in dirs:
            if os.path.lexists(stale):
                self._log.info(f"Removing leftover {stale}")
                file_utils.delete_recursive(stale)

    @timed
    def install(self, content: bytes) -> InstallOutcome:
        """
        Install a bundle.

        Args:
            content: Raw bundle archive bytes.

        Returns:
            InstallOutcome.SUCCESS, or the reason the bundle was rejected.

        Raises:
            OSError: if unpacking, reading or renaming fails.
        """
        with LogContext(operation="install", install_dir=str(self.install_dir)):
            self._remove_stale_dirs(self.retired_dir, self.staging_dir)

            self._log.info("Unpacking / verifying time zone update")
            self._unpack_bundle(content, self.staging_dir)
            try:
                outcome = self._check_staged_bundle()
                if outcome is not InstallOutcome.SUCCESS:
                    return outcome

                self._log.info("Applying time zone update")
                file_utils.make_world_readable(self.staging_dir)

                if os.path.lexists(self.active_dir):
                    self._log.info(f"Moving {self.active_dir} to {self.retired_dir}")
                    file_utils.rename(self.active_dir, self.retired_dir)
                self._log.info(f"Moving {self.staging_dir} to {self.active_dir}")
                file_utils.rename(self.staging_dir, self.active_dir)

                self._log.info(f"Update applied: {self.active_dir} successfully created")
                return InstallOutcome.SUCCESS
            finally:
                _delete_best_effort(self.retired_dir)
                _delete_best_effort(self.staging_dir)

    def install_succeeded(self, content: bytes) -> bool:
        """Install a bundle, returning True only if it was applied."""
        return self.install(content).succeeded

    def _check_staged_bundle(self) -> InstallOutcome:
        try:
            bundle_version = self._read_bundle_version(self.staging_dir)
        except BundleException as e:
            self._log.info(f"Update not applied: Invalid bundle version: {e.message}")
            return InstallOutcome.BAD_BUNDLE_STRUCTURE

        if not bundle_version.is_compatible():
            self._log.info(
                f"Update not applied: Bundle format version check failed: {bundle_version}"
            )
            return InstallOutcome.INCOMPATIBLE_FORMAT

        self._log.info("Verifying bundle contents")
        if not file_utils.files_exist(self.staging_dir, TZDATA_FILE_NAME, ICU_DATA_FILE_NAME):
            self._log.info("Update not applied: Bundle is missing required data file(s)")
            return InstallOutcome.BAD_BUNDLE_STRUCTURE

        if not self._check_rules_not_older_than_system(bundle_version):
            self._log.info("Update not applied: Bundle rules version check failed")
            return InstallOutcome.RULES_REGRESSION

        tzdata_file = self.staging_dir / TZDATA_FILE_NAME
        try:
            with TzData.load(tzdata_file) as tzdata:
                tzdata.validate()
        except (TzDataError, OSError) as e:
            self._log.info(f"Update not applied: {tzdata_file} failed validation: {e}")
            return InstallOutcome.VALIDATION_FAILED

        return InstallOutcome.SUCCESS

    def _check_rules_not_older_than_system(self, bundle_version: BundleVersion) -> bool:
        """
        Check the bundle rules version is >= the system rules version.

        Rules versions such as "2016c" are compared as strings.
        """
        self._log.info("Reading system rules version")
        system_rules_version = self.get_system_rules_version()
        bundle_rules_version = bundle_version.rules_version

        can_apply = bundle_rules_version >= system_rules_version
        result = "Passed" if can_apply else "Failed"
        self._log.info(
            f"{result} rules version check: bundleRulesVersion={bundle_rules_version}, "
            f"systemRulesVersion={system_rules_version}"
        )
        return can_apply

    @timed
    def uninstall(self) -> bool:
        """
        Remove the installed bundle, reverting to the system data.

        Returns:
            True if a bundle was removed, False if nothing was installed.

        Raises:
            OSError: if a leftover retired/ cannot be deleted or the rename fails.
        """
        with LogContext(operation="uninstall", install_dir=str(self.install_dir)):
            self._log.info("Uninstalling time zone update")

            # The active data is about to be moved here.
            self._remove_stale_dirs(self.retired_dir)

            if not os.path.lexists(self.active_dir):
                self._log.info(f"Nothing to uninstall at {self.active_dir}")
                return False

            self._log.info(f"Moving {self.active_dir} to {self.retired_dir}")
            # One rename so the installed data is never partially deleted in place.
            file_utils.rename(self.active_dir, self.retired_dir)

            _delete_best_effort(self.retired_dir)

            self._log.info("Time zone update uninstalled.")
            return True

    def get_installed_bundle_version(self) -> Optional[BundleVersion]:
        """
        Read the version of the installed bundle.

        Returns:
            The installed BundleVersion, or None if nothing is installed.

        Raises:
            BundleException: if the installed version record is missing or malformed.
            OSError: if the record cannot be read.
        """
        if not self.active_dir.exists():
            return None
        return self._read_bundle_version(self.active_dir)

    def get_system_rules_version(self) -> str:
        """
        Read the rules version of the system tzdata file.

        Raises:
            FileNotFoundError: if the system tzdata file is missing.
            TzDataError: if its header is malformed.
        """
        if not self.system_tzdata_file.exists():
            self._log.info(f"tzdata file cannot be found: {self.system_tzdata_file}")
        return read_rules_version(self.system_tzdata_file)

    def _unpack_bundle(self, content: bytes, target_dir: Path) -> None:
        self._log.info(f"Unpacking update content to: {target_dir}")
        TimeZoneBundle(content).extract_to(target_dir)

    def _read_bundle_version(self, bundle_dir: Path) -> BundleVersion:
        self._log.info("Reading bundle format version")
        version_file = bundle_dir / BUNDLE_VERSION_FILE_NAME
        if not version_file.exists():
            raise BundleException(f"No bundle version file found: {version_file}")
        # Read one byte past the record so oversized files are rejected.
        version_bytes = file_utils.read_bytes(version_file, BUNDLE_VERSION_FILE_LENGTH + 1)
        return BundleVersion.from_bytes(version_bytes)

"""
Time Zone Bundle Archive

A bundle is a ZIP archive holding a version record, the tzdata file and the
ICU time zone data file. This module unpacks bundles into a plain directory
and builds new ones.
"""

from __future__ import annotations

import io
import logging
import shutil
import zipfile
from pathlib import Path, PurePosixPath
from typing import Dict, Optional, Union

from common.exceptions import BundleExtractError
from utils import file_utils

from .version import BundleVersion

logger = logging.getLogger(__name__)

BUNDLE_VERSION_FILE_NAME = "bundle_version"
TZDATA_FILE_NAME = "tzdata"
ICU_DATA_FILE_NAME = "icu/icu_tzdata.dat"

_COPY_BUFFER_SIZE = 8192


class TimeZoneBundle:
    """
    An unparsed bundle held in memory.

    Nothing about the content is checked until it is extracted; structural
    and content checks are the installer's job.
    """

    def __init__(self, content: bytes):
        if content is None:
            raise ValueError("content must not be None")
        self._content = bytes(content)

    def get_bytes(self) -> bytes:
        return self._content

    def extract_to(self, target_dir: Union[str, Path]) -> None:
        """
        Unpack the bundle into ``target_dir``.

        The directory is created if needed. Entries are written as plain
        files; paths that would land outside ``target_dir`` are refused.

        Raises:
            BundleExtractError: if the archive is unreadable or an entry
                cannot be written.
        """
        target_dir = Path(target_dir)
        try:
            file_utils.ensure_directory_exists(target_dir)
            with zipfile.ZipFile(io.BytesIO(self._content), "r") as archive:
                for info in archive.infolist():
                    self._extract_entry(archive, info, target_dir)
        except BundleExtractError:
            raise
        except (zipfile.BadZipFile, zipfile.LargeZipFile, EOFError, OSError, RuntimeError) as e:
            raise BundleExtractError(str(target_dir), str(e) or type(e).__name__, cause=e) from e

    def _extract_entry(
        self,
        archive: zipfile.ZipFile,
        info: zipfile.ZipInfo,
        target_dir: Path,
    ) -> None:
        member_path = PurePosixPath(info.filename)
        if member_path.is_absolute() or ".." in member_path.parts:
            raise BundleExtractError(str(target_dir), f"unsafe entry name: {info.filename}")

        destination = file_utils.create_sub_file(target_dir, info.filename)
        if info.is_dir():
            file_utils.ensure_directory_exists(destination)
            return

        file_utils.ensure_directory_exists(destination.parent)
        logger.debug(f"Extracting {info.filename} ({info.file_size} bytes)")
        with archive.open(info, "r") as src, open(destination, "wb") as dst:
            shutil.copyfileobj(src, dst, _COPY_BUFFER_SIZE)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TimeZoneBundle):
            return NotImplemented
        return self._content == other._content

    def __hash__(self) -> int:
        return hash(self._content)

    def __repr__(self) -> str:
        return f"TimeZoneBundle({len(self._content)} bytes)"


class TimeZoneBundleBuilder:
    """
    Assembles bundle archives.

    Entries that were not set are simply left out, which makes it possible
    to build deliberately broken bundles for testing.

    Example:
        bundle = (
            TimeZoneBundleBuilder()
            .set_bundle_version(BundleVersion.create(1, 1, "2016c", 1))
            .set_tzdata_file(tzdata_bytes)
            .set_icu_data_file(icu_bytes)
            .build()
        )
    """

    def __init__(self, allow_missing_version: bool = False):
        self._allow_missing_version = allow_missing_version
        self._version_bytes: Optional[bytes] = None
        self._entries: Dict[str, bytes] = {}

    def set_bundle_version(self, version: BundleVersion) -> "TimeZoneBundleBuilder":
        self._version_bytes = version.to_bytes()
        return self

    def set_bundle_version_bytes(self, data: bytes) -> "TimeZoneBundleBuilder":
        """Use a raw version record, valid or not."""
        self._version_bytes = bytes(data)
        return self

    def set_tzdata_file(self, data: bytes) -> "TimeZoneBundleBuilder":
        return self.add_bundle_entry(TZDATA_FILE_NAME, data)

    def set_icu_data_file(self, data: bytes) -> "TimeZoneBundleBuilder":
        return self.add_bundle_entry(ICU_DATA_FILE_NAME, data)

    def add_bundle_entry(self, name: str, data: bytes) -> "TimeZoneBundleBuilder":
        self._entries[name] = bytes(data)
        return self

    def build(self) -> TimeZoneBundle:
        if self._version_bytes is None and not self._allow_missing_version:
            raise ValueError("Bundle version not set")

        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            if self._version_bytes is not None:
                archive.writestr(BUNDLE_VERSION_FILE_NAME, self._version_bytes)
            for name, data in self._entries.items():
                archive.writestr(name, data)
        return TimeZoneBundle(buffer.getvalue())

"""
Time Zone Data File

Reader and validator for the packed tzdata file shipped in the system image
and in bundles. The file holds a small header, a sorted index of zone ids,
the concatenated TZif data for each zone and a zone.tab section:

    header   "tzdata" + rules version (5 bytes) + NUL
             index_offset, data_offset, zonetab_offset (big-endian int32)
    index    40-byte zone id, offset, length, raw UTC offset per entry
    data     TZif blobs, entry offsets relative to data_offset
    zonetab  ASCII text up to end of file
"""

from __future__ import annotations

import io
import logging
import os
import struct
import zoneinfo
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, List, Optional, Union

from common.exceptions import TzDataError
from utils import file_utils

from .version import RULES_VERSION_PATTERN

logger = logging.getLogger(__name__)

TZDATA_MAGIC = b"tzdata"
HEADER_VERSION_LENGTH = len(TZDATA_MAGIC) + 5 + 1
_OFFSETS = struct.Struct(">iii")
HEADER_LENGTH = HEADER_VERSION_LENGTH + _OFFSETS.size

ZONE_ID_LENGTH = 40
_INDEX_ENTRY = struct.Struct(f">{ZONE_ID_LENGTH}siii")
INDEX_ENTRY_LENGTH = _INDEX_ENTRY.size

TZIF_MAGIC = b"TZif"
TZIF_VERSIONS = (b"\0", b"2", b"3", b"4")
# magic, version, 15 reserved bytes, then
# isutcnt, isstdcnt, leapcnt, timecnt, typecnt, charcnt
_TZIF_COUNTS = struct.Struct(">6l")
TZIF_HEADER_LENGTH = 20 + _TZIF_COUNTS.size


@dataclass(frozen=True)
class ZoneEntry:
    """One row of the tzdata index."""
    zone_id: str
    offset: int
    length: int
    raw_utc_offset: int


def _parse_rules_version(header: bytes, path: str) -> str:
    if len(header) < HEADER_VERSION_LENGTH:
        raise TzDataError(path, f"file too short ({len(header)} bytes)")
    if not header.startswith(TZDATA_MAGIC):
        raise TzDataError(path, "bad magic")
    if header[HEADER_VERSION_LENGTH - 1] != 0:
        raise TzDataError(path, "version string not NUL terminated")

    raw_version = header[len(TZDATA_MAGIC):HEADER_VERSION_LENGTH - 1]
    try:
        version = raw_version.decode("ascii")
    except UnicodeDecodeError:
        raise TzDataError(path, f"invalid rules version {raw_version!r}")
    if not RULES_VERSION_PATTERN.fullmatch(version):
        raise TzDataError(path, f"invalid rules version {version!r}")
    return version


def _tzif_block_end(data: bytes, start: int, time_size: int) -> int:
    """Return the end of the header and body starting at ``start``."""
    if len(data) < start + TZIF_HEADER_LENGTH:
        raise ValueError(f"truncated header at byte {start}")
    if data[start:start + 4] != TZIF_MAGIC:
        raise ValueError(f"magic not found at byte {start}")
    if data[start + 4:start + 5] not in TZIF_VERSIONS:
        raise ValueError(f"unsupported version {data[start + 4:start + 5]!r}")

    isutcnt, isstdcnt, leapcnt, timecnt, typecnt, charcnt = _TZIF_COUNTS.unpack_from(
        data, start + 20
    )
    if min(isutcnt, isstdcnt, leapcnt, timecnt, typecnt, charcnt) < 0 or typecnt == 0:
        raise ValueError("bad header counts")

    end = (
        start + TZIF_HEADER_LENGTH
        + timecnt * (time_size + 1)
        + typecnt * 6
        + charcnt
        + leapcnt * (time_size + 4)
        + isstdcnt
        + isutcnt
    )
    if end > len(data):
        raise ValueError(f"body runs past the end of the data ({end} > {len(data)})")
    return end


def check_tzif_framing(data: bytes) -> None:
    """
    Check TZif headers, body sizes and the footer fit inside ``data``.

    Version 2+ data repeats the header and body with 64-bit times and ends
    with a POSIX TZ string framed by newlines.

    Raises:
        ValueError: describing the first framing problem.
    """
    v1_end = _tzif_block_end(data, 0, 4)
    if data[4:5] == b"\0":
        return

    footer_start = _tzif_block_end(data, v1_end, 8)
    footer = data[footer_start:]
    if len(footer) < 2 or not footer.startswith(b"\n") or not footer.endswith(b"\n"):
        raise ValueError("footer is not framed by newlines")


def read_rules_version(path: Union[str, Path]) -> str:
    """
    Read the rules version from the header of a tzdata file.

    Raises:
        FileNotFoundError: if the file does not exist.
        TzDataError: if the header is malformed.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"tzdata file does not exist: {path}")
    header = file_utils.read_bytes(path, HEADER_VERSION_LENGTH)
    return _parse_rules_version(header, str(path))


class TzData:
    """
    An open tzdata file.

    Holds the file open until ``close()`` is called; use as a context
    manager so the handle is released on every path:

        with TzData.load(path) as tzdata:
            tzdata.validate()
    """

    def __init__(self, path: Path, fileobj: BinaryIO):
        self.path = path
        self._file: Optional[BinaryIO] = fileobj
        self._file_size = os.fstat(fileobj.fileno()).st_size
        self.rules_version = ""
        self.index_offset = 0
        self.data_offset = 0
        self.zonetab_offset = 0
        self._entries: List[ZoneEntry] = []

    @classmethod
    def load(cls, path: Union[str, Path]) -> "TzData":
        """
        Open a tzdata file and parse its header and index.

        Raises:
            TzDataError: if the header or index cannot be parsed.
            OSError: if the file cannot be opened or read.
        """
        path = Path(path)
        fileobj = open(path, "rb")
        try:
            tzdata = cls(path, fileobj)
            tzdata._read_header()
            tzdata._read_index()
        except BaseException:
            fileobj.close()
            raise
        return tzdata

    @property
    def closed(self) -> bool:
        return self._file is None

    def _require_open(self) -> BinaryIO:
        if self._file is None:
            raise ValueError(f"{self.path} is closed")
        return self._file

    def _read_at(self, offset: int, length: int) -> bytes:
        f = self._require_open()
        f.seek(offset)
        data = f.read(length)
        if len(data) != length:
            raise TzDataError(str(self.path), f"short read at offset {offset}")
        return data

    def _read_header(self) -> None:
        if self._file_size < HEADER_LENGTH:
            raise TzDataError(str(self.path), f"file too short ({self._file_size} bytes)")
        header = self._read_at(0, HEADER_LENGTH)
        self.rules_version = _parse_rules_version(header, str(self.path))
        self.index_offset, self.data_offset, self.zonetab_offset = _OFFSETS.unpack_from(
            header, HEADER_VERSION_LENGTH
        )

        if not (HEADER_LENGTH <= self.index_offset <= self.data_offset
                <= self.zonetab_offset <= self._file_size):
            raise TzDataError(
                str(self.path),
                f"bad section offsets: index={self.index_offset} data={self.data_offset} "
                f"zonetab={self.zonetab_offset} size={self._file_size}",
            )

    def _read_index(self) -> None:
        index_size = self.data_offset - self.index_offset
        if index_size % INDEX_ENTRY_LENGTH != 0:
            raise TzDataError(
                str(self.path),
                f"index size {index_size} is not a multiple of {INDEX_ENTRY_LENGTH}",
            )

        index = self._read_at(self.index_offset, index_size)
        entries = []
        for raw_id, offset, length, raw_utc_offset in _INDEX_ENTRY.iter_unpack(index):
            try:
                zone_id = raw_id.rstrip(b"\0").decode("ascii")
            except UnicodeDecodeError:
                raise TzDataError(str(self.path), f"zone id is not ASCII: {raw_id!r}")
            entries.append(ZoneEntry(zone_id, offset, length, raw_utc_offset))
        self._entries = entries

    @property
    def zone_ids(self) -> List[str]:
        return [entry.zone_id for entry in self._entries]

    def get_zone_data(self, zone_id: str) -> bytes:
        """Return the raw TZif data for ``zone_id``."""
        for entry in self._entries:
            if entry.zone_id == zone_id:
                return self._read_zone(entry)
        raise KeyError(zone_id)

    def _read_zone(self, entry: ZoneEntry) -> bytes:
        start = self.data_offset + entry.offset
        end = start + entry.length
        if entry.offset < 0 or entry.length <= 0 or end > self.zonetab_offset:
            raise TzDataError(
                str(self.path),
                f"zone {entry.zone_id} lies outside the data section "
                f"(offset={entry.offset}, length={entry.length})",
            )
        return self._read_at(start, entry.length)

    def read_zone_tab(self) -> str:
        data = self._read_at(self.zonetab_offset, self._file_size - self.zonetab_offset)
        try:
            return data.decode("ascii")
        except UnicodeDecodeError:
            raise TzDataError(str(self.path), "zone.tab section is not ASCII")

    def validate(self) -> None:
        """
        Check every zone in the file can be used.

        Raises:
            TzDataError: on the first problem found.
        """
        path = str(self.path)
        if not self._entries:
            raise TzDataError(path, "no zones in index")

        previous: Optional[str] = None
        for entry in self._entries:
            if not entry.zone_id:
                raise TzDataError(path, "empty zone id in index")
            if previous is not None and entry.zone_id <= previous:
                raise TzDataError(
                    path,
                    f"index not sorted or has duplicates: {previous!r} before {entry.zone_id!r}",
                )
            previous = entry.zone_id

            data = self._read_zone(entry)
            try:
                # zoneinfo does not bound its footer read; check framing first.
                check_tzif_framing(data)
                zoneinfo.ZoneInfo.from_file(io.BytesIO(data), key=entry.zone_id)
            except (ValueError, struct.error, EOFError, IndexError) as e:
                raise TzDataError(path, f"zone {entry.zone_id} is not valid TZif data: {e}")

        self.read_zone_tab()
        logger.debug(f"Validated {len(self._entries)} zones in {path}")

    def close(self) -> None:
        if self._file is not None:
            try:
                self._file.close()
            finally:
                self._file = None

    def __enter__(self) -> "TzData":
        return self

    def __exit__(self, *args) -> None:
        self.close()


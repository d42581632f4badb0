"""
Pytest configuration and shared fixtures for tzdata-update tests.

Provides builders for TZif zone data, packed tzdata files and bundle
archives, plus an installer wired to a temporary install directory.
"""

import logging
import struct
import pytest
from pathlib import Path
from typing import Callable, Iterable, Optional, Tuple
import sys

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


SYSTEM_RULES_VERSION = "2016b"
NEWER_RULES_VERSION = "2016c"
OLDER_RULES_VERSION = "2016a"


# ============ Builders ============

def make_tzif(abbr: bytes = b"UTC", utc_offset: int = 0) -> bytes:
    """Build a minimal version 2 TZif blob with one fixed offset and a footer."""
    charcnt = len(abbr) + 1

    def header() -> bytes:
        # isutcnt, isstdcnt, leapcnt, timecnt, typecnt, charcnt
        return b"TZif2" + b"\0" * 15 + struct.pack(">6l", 0, 0, 0, 0, 1, charcnt)

    body = struct.pack(">lbb", utc_offset, 0, 0) + abbr + b"\0"
    hours = -utc_offset // 3600
    footer = b"\n" + abbr + str(hours).encode("ascii") + b"\n"
    return header() + body + header() + body + footer


DEFAULT_ZONES = (
    ("Europe/London", make_tzif(b"GMT", 0)),
    ("Europe/Paris", make_tzif(b"CET", 3600)),
    ("UTC", make_tzif(b"UTC", 0)),
)

DEFAULT_ZONE_TAB = b"GB\t+513030-0000731\tEurope/London\nFR\t+4852+00220\tEurope/Paris\n"


def make_tzdata(
    rules_version: str = NEWER_RULES_VERSION,
    zones: Iterable[Tuple[str, bytes]] = DEFAULT_ZONES,
    zone_tab: bytes = DEFAULT_ZONE_TAB,
) -> bytes:
    """Pack zones, in the order given, into a tzdata file."""
    index = b""
    data = b""
    for zone_id, blob in zones:
        index += struct.pack(">40siii", zone_id.encode("ascii"), len(data), len(blob), 0)
        data += blob

    index_offset = 24
    data_offset = index_offset + len(index)
    zonetab_offset = data_offset + len(data)
    header = (
        b"tzdata" + rules_version.encode("ascii") + b"\0"
        + struct.pack(">iii", index_offset, data_offset, zonetab_offset)
    )
    return header + index + data + zone_tab


# ============ Environment Fixtures ============

@pytest.fixture(autouse=True)
def restore_root_logger():
    """Undo setup_logging() calls made by a test."""
    root = logging.getLogger()
    old_level = root.level
    old_handlers = list(root.handlers)

    yield

    root.setLevel(old_level)
    for handler in list(root.handlers):
        if handler not in old_handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in old_handlers:
        if handler not in root.handlers:
            root.addHandler(handler)


# ============ Fixtures ============

@pytest.fixture
def tzif_factory() -> Callable[..., bytes]:
    return make_tzif


@pytest.fixture
def tzdata_factory() -> Callable[..., bytes]:
    return make_tzdata


@pytest.fixture
def system_tzdata(tmp_path: Path) -> Path:
    """Baseline tzdata file with SYSTEM_RULES_VERSION."""
    path = tmp_path / "system" / "tzdata"
    path.parent.mkdir()
    path.write_bytes(make_tzdata(rules_version=SYSTEM_RULES_VERSION))
    return path


@pytest.fixture
def install_dir(tmp_path: Path) -> Path:
    path = tmp_path / "zoneinfo"
    path.mkdir()
    return path


@pytest.fixture
def installer(system_tzdata: Path, install_dir: Path):
    from tzdata_update.installer import BundleInstaller

    return BundleInstaller(system_tzdata, install_dir)


@pytest.fixture
def bundle_factory() -> Callable[..., bytes]:
    """
    Build bundle archive bytes.

    Pass ``tzdata=None`` or ``icu=None`` to leave a file out, and
    ``version_bytes`` to use a raw (possibly broken) version record.
    """
    from tzdata_update.bundle import TimeZoneBundleBuilder
    from tzdata_update.version import BundleVersion

    def build(
        rules_version: str = NEWER_RULES_VERSION,
        format_major: int = 1,
        format_minor: int = 1,
        revision: int = 1,
        tzdata: Optional[bytes] = b"",
        icu: Optional[bytes] = b"icu data",
        version_bytes: Optional[bytes] = None,
        omit_version: bool = False,
    ) -> bytes:
        builder = TimeZoneBundleBuilder(allow_missing_version=omit_version)
        if version_bytes is not None:
            builder.set_bundle_version_bytes(version_bytes)
        elif not omit_version:
            builder.set_bundle_version(
                BundleVersion(format_major, format_minor, rules_version, revision)
            )
        if tzdata == b"":
            tzdata = make_tzdata(rules_version=rules_version)
        if tzdata is not None:
            builder.set_tzdata_file(tzdata)
        if icu is not None:
            builder.set_icu_data_file(icu)
        return builder.build().get_bytes()

    return build

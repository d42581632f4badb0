"""
Bundle Version Record

Every bundle carries a fixed-length ASCII record describing its format
version, the IANA rules version it contains and a revision number:

    001.001|2016c|001
    ^^^^^^^ ^^^^^ ^^^
    format  rules revision
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Tuple

from common.exceptions import BundleException

# Format version this build understands. A bundle is compatible when its major
# version matches exactly and its minor version is at least this minor.
CURRENT_FORMAT_MAJOR_VERSION = 1
CURRENT_FORMAT_MINOR_VERSION = 1

FORMAT_VERSION_STRING_LENGTH = 7
RULES_VERSION_LENGTH = 5
REVISION_LENGTH = 3
BUNDLE_VERSION_FILE_LENGTH = (
    FORMAT_VERSION_STRING_LENGTH + 1 + RULES_VERSION_LENGTH + 1 + REVISION_LENGTH
)

RULES_VERSION_PATTERN = re.compile(r"[0-9]{4}[a-z]")
_FULL_VERSION_PATTERN = re.compile(
    r"([0-9]{3})\.([0-9]{3})\|([0-9]{4}[a-z])\|([0-9]{3})"
)


@dataclass(frozen=True)
class BundleVersion:
    """Parsed contents of a bundle version record."""
    format_major: int
    format_minor: int
    rules_version: str
    revision: int

    @classmethod
    def create(
        cls,
        format_major: int,
        format_minor: int,
        rules_version: str,
        revision: int,
    ) -> "BundleVersion":
        """Build a version, checking every field fits the record layout."""
        _check_three_digits("format_major", format_major)
        _check_three_digits("format_minor", format_minor)
        if not isinstance(rules_version, str) or not RULES_VERSION_PATTERN.fullmatch(rules_version):
            raise BundleException(f"Invalid rules version: {rules_version!r}")
        _check_three_digits("revision", revision)
        return cls(format_major, format_minor, rules_version, revision)

    @classmethod
    def from_bytes(cls, data: bytes) -> "BundleVersion":
        """
        Parse a version record.

        Raises:
            BundleException: if the record has the wrong length or layout.
        """
        if len(data) != BUNDLE_VERSION_FILE_LENGTH:
            raise BundleException(
                f"Bundle version record has length {len(data)}, "
                f"expected {BUNDLE_VERSION_FILE_LENGTH}"
            )
        try:
            text = data.decode("ascii")
        except UnicodeDecodeError as e:
            raise BundleException("Bundle version record is not ASCII", cause=e)

        match = _FULL_VERSION_PATTERN.fullmatch(text)
        if match is None:
            raise BundleException(f"Invalid bundle version record: {text!r}")

        return cls(
            format_major=int(match.group(1)),
            format_minor=int(match.group(2)),
            rules_version=match.group(3),
            revision=int(match.group(4)),
        )

    @property
    def format_version(self) -> Tuple[int, int]:
        return (self.format_major, self.format_minor)

    def is_compatible(self) -> bool:
        """Check the format version can be read by this build."""
        return (
            self.format_major == CURRENT_FORMAT_MAJOR_VERSION
            and self.format_minor >= CURRENT_FORMAT_MINOR_VERSION
        )

    def to_bytes(self) -> bytes:
        return str(self).encode("ascii")

    def __str__(self) -> str:
        return (
            f"{self.format_major:03d}.{self.format_minor:03d}"
            f"|{self.rules_version}|{self.revision:03d}"
        )


def _check_three_digits(name: str, value: int) -> None:
    if not isinstance(value, int) or not 0 <= value <= 999:
        raise BundleException(f"{name} must be between 0 and 999, got {value!r}")

"""
Tests for the bundle version record.
"""

import pytest


class TestBundleVersionParsing:

    @pytest.mark.unit
    def test_from_bytes(self):
        from tzdata_update.version import BundleVersion

        version = BundleVersion.from_bytes(b"001.002|2016c|003")

        assert version.format_major == 1
        assert version.format_minor == 2
        assert version.rules_version == "2016c"
        assert version.revision == 3
        assert version.format_version == (1, 2)

    def test_to_bytes_matches_record(self):
        from tzdata_update.version import BUNDLE_VERSION_FILE_LENGTH, BundleVersion

        data = BundleVersion.create(12, 345, "2017a", 99).to_bytes()

        assert data == b"012.345|2017a|099"
        assert len(data) == BUNDLE_VERSION_FILE_LENGTH

    @pytest.mark.parametrize("data", [
        b"",
        b"001.001|2016c|01",
        b"001.001|2016c|0001",
        b" 01.001|2016c|001",
        b"001,001|2016c|001",
        b"001.001|16c  |001",
        b"001.001|2016cc|01",
        b"001.001|2016c|00a",
    ])
    def test_malformed_records(self, data):
        from common.exceptions import BundleException
        from tzdata_update.version import BundleVersion

        with pytest.raises(BundleException):
            BundleVersion.from_bytes(data)

    def test_non_ascii_record(self):
        from common.exceptions import BundleException
        from tzdata_update.version import BundleVersion

        with pytest.raises(BundleException) as exc_info:
            BundleVersion.from_bytes("001.001|2016é|01".encode("utf-8"))
        assert exc_info.value.code == "BAD_BUNDLE"


class TestBundleVersionCreate:

    @pytest.mark.parametrize("args", [
        (1000, 1, "2016c", 1),
        (1, -1, "2016c", 1),
        (1, 1, "2016", 1),
        (1, 1, "2016C", 1),
        (1, 1, "2016c", 1000),
        (1, 1, None, 1),
    ])
    def test_rejects_out_of_range(self, args):
        from common.exceptions import BundleException
        from tzdata_update.version import BundleVersion

        with pytest.raises(BundleException):
            BundleVersion.create(*args)

    def test_str(self):
        from tzdata_update.version import BundleVersion

        assert str(BundleVersion.create(1, 1, "2016c", 1)) == "001.001|2016c|001"


class TestCompatibility:

    @pytest.mark.parametrize("major,minor,compatible", [
        (1, 1, True),
        (1, 2, True),
        (1, 999, True),
        (1, 0, False),
        (0, 1, False),
        (2, 1, False),
    ])
    def test_is_compatible(self, major, minor, compatible):
        from tzdata_update.version import BundleVersion

        assert BundleVersion.create(major, minor, "2016c", 1).is_compatible() is compatible

"""Unit tests for stamps and path-derived names."""

from datetime import datetime
from unittest.mock import patch

import pytest
from dailyctl.utils.naming import current_month, make_stamp, path_as_name


class TestMakeStamp:
    """Tests for make_stamp function."""

    def test_date_and_host(self) -> None:
        """The stamp is YYYYMMDD-host."""
        assert make_stamp(datetime(2024, 8, 15, 23, 59), "clovis") == "20240815-clovis"

    def test_uses_local_hostname(self) -> None:
        """Without a hostname, the short host name is used."""
        with patch("dailyctl.utils.naming.get_hostname", return_value="gaia"):
            assert make_stamp(datetime(2024, 1, 2)) == "20240102-gaia"


class TestCurrentMonth:
    """Tests for current_month function."""

    def test_month_folder_name(self) -> None:
        """Months are zero padded."""
        assert current_month(datetime(2024, 3, 31)) == "202403"


class TestPathAsName:
    """Tests for path_as_name function."""

    @pytest.mark.parametrize(
        ("path", "expected"),
        [
            ("/mnt/data/archive", "mnt-data-archive"),
            ("relative/dir", "relative-dir"),
            ("/home/alice/My Files", "home-alice-My_Files"),
            ("/tab\there", "tab_here"),
        ],
    )
    def test_conversion(self, path: str, expected: str) -> None:
        """Slashes become dashes and whitespace becomes underscores."""
        assert path_as_name(path) == expected

    def test_empty_path_rejected(self) -> None:
        """An empty path has no name."""
        with pytest.raises(ValueError):
            path_as_name("")

"""Tests for recording candidate path generation."""

from datetime import date

import pytest

from call_processor.remote.locator import RecordingLocator, locate

TODAY = date(2025, 3, 2)


@pytest.fixture
def locator():
    return RecordingLocator(
        base_dir="tsa-dialler",
        bucket_prefixes=("amazon-connect-b1a9c08821e5/",),
    )


class TestLocateOrdering:
    """Tests for candidate order and de-duplication."""

    def test_bucket_prefixed_hint(self, locator):
        """Prefix is stripped and the relative-root form comes first."""
        candidates = locator.locate(
            "amazon-connect-b1a9c08821e5/connect/2025/03/01/abc.wav", today=TODAY
        )

        assert candidates[0] == "./connect/2025/03/01/abc.wav"
        assert candidates[1] == "connect/2025/03/01/abc.wav"
        assert candidates[2] == "./tsa-dialler/2025/03/02/abc.wav"
        assert candidates[3] == "tsa-dialler/2025/03/02/abc.wav"
        assert candidates[-2:] == ["./abc.wav", "abc.wav"]

    def test_date_window_spans_today_and_seven_days_back(self, locator):
        candidates = locator.locate("abc.wav", today=TODAY)

        dated = [c for c in candidates if c.startswith("./tsa-dialler/")]
        assert dated == [
            "./tsa-dialler/2025/03/02/abc.wav",
            "./tsa-dialler/2025/03/01/abc.wav",
            "./tsa-dialler/2025/02/28/abc.wav",
            "./tsa-dialler/2025/02/27/abc.wav",
            "./tsa-dialler/2025/02/26/abc.wav",
            "./tsa-dialler/2025/02/25/abc.wav",
            "./tsa-dialler/2025/02/24/abc.wav",
            "./tsa-dialler/2025/02/23/abc.wav",
        ]
        # 8 days x 2 forms + 2 fallbacks
        assert len(candidates) == 18

    def test_bare_filename_has_no_path_candidates(self, locator):
        candidates = locator.locate("abc.wav", today=TODAY)
        assert candidates[0] == "./tsa-dialler/2025/03/02/abc.wav"
        assert candidates[-2:] == ["./abc.wav", "abc.wav"]

    @pytest.mark.parametrize(
        "hint",
        [
            "abc.wav",
            "./abc.wav",
            "/abc.wav",
            "./tsa-dialler/2025/03/02/abc.wav",
            "amazon-connect-b1a9c08821e5/abc.wav",
        ],
    )
    def test_no_duplicates_and_fallback_last(self, locator, hint):
        candidates = locator.locate(hint, today=TODAY)
        assert len(candidates) == len(set(candidates))
        assert candidates[-2:] == ["./abc.wav", "abc.wav"]

    def test_leading_slashes_and_dots_are_stripped(self, locator):
        candidates = locator.locate("/./recordings/abc.wav", today=TODAY)
        assert candidates[:2] == ["./recordings/abc.wav", "recordings/abc.wav"]

    def test_backslash_separators_are_normalized(self, locator):
        candidates = locator.locate("recordings\\abc.wav", today=TODAY)
        assert candidates[:2] == ["./recordings/abc.wav", "recordings/abc.wav"]


class TestLocateDecoding:
    """Tests for URL-decoding of hints."""

    def test_url_encoded_hint_is_decoded(self, locator):
        candidates = locator.locate("calls%2Fmy%20call.wav", today=TODAY)
        assert candidates[0] == "./calls/my call.wav"
        assert candidates[-1] == "my call.wav"

    def test_undecodable_hint_is_used_raw(self, locator):
        candidates = locator.locate("bad%E9name.wav", today=TODAY)
        assert candidates[-1] == "bad%E9name.wav"

    def test_empty_hint_still_builds_day_window(self, locator):
        candidates = locator.locate("", today=TODAY)
        assert candidates[0] == "./tsa-dialler/2025/03/02/"
        assert candidates[-2:] == ["./", ""]


class TestLocatorConfiguration:
    """Tests for environment configuration and the module helper."""

    def test_env_base_dir_and_prefixes(self, monkeypatch):
        monkeypatch.setenv("SFTP_BASE_DIR", "/archive/")
        monkeypatch.setenv("SFTP_BUCKET_PREFIXES", "bucket-a/, bucket-b/")
        locator = RecordingLocator()

        assert locator.base_dir == "archive"
        assert locator.bucket_prefixes == ("bucket-a/", "bucket-b/")
        candidates = locator.locate("bucket-b/x/abc.wav", today=TODAY)
        assert candidates[0] == "./x/abc.wav"
        assert "./archive/2025/03/02/abc.wav" in candidates

    def test_module_helper_uses_defaults(self, monkeypatch):
        monkeypatch.delenv("SFTP_BASE_DIR", raising=False)
        monkeypatch.delenv("SFTP_BUCKET_PREFIXES", raising=False)
        candidates = locate("abc.wav", today=TODAY)
        assert candidates[0] == "./tsa-dialler/2025/03/02/abc.wav"

    def test_custom_days_back(self):
        locator = RecordingLocator(base_dir="", days_back=1)
        candidates = locator.locate("abc.wav", today=TODAY)
        assert candidates == [
            "./2025/03/02/abc.wav",
            "2025/03/02/abc.wav",
            "./2025/03/01/abc.wav",
            "2025/03/01/abc.wav",
            "./abc.wav",
            "abc.wav",
        ]

"""Tests for the small helpers in utils."""

import pytest

from pdf_webhook_backend.utils import dig, pdf_file_name, sanitize_label, split_extension


class TestFileNames:
    @pytest.mark.parametrize(
        "slug,expected",
        [
            ("asthma-care", "asthma-care.pdf"),
            ("Asthma-Care", "Asthma-Care.pdf"),
            ("asthma care/kids", "asthma-care-kids.pdf"),
            ("  ", "document.pdf"),
        ],
    )
    def test_pdf_file_name(self, slug, expected):
        assert pdf_file_name(slug) == expected

    def test_sanitize_fallback(self):
        assert sanitize_label("@#$", "document") == "document"

    def test_split_extension(self):
        assert split_extension("asthma-care.PDF") == ("asthma-care", "pdf")
        assert split_extension("notes") == ("notes", "")


class TestDig:
    def test_nested_value(self):
        assert dig({"sys": {"space": {"sys": {"id": "S1"}}}}, "sys", "space", "sys", "id") == "S1"

    def test_missing_or_non_dict(self):
        assert dig({"sys": {}}, "sys", "space", "sys", "id") is None
        assert dig({"sys": "flat"}, "sys", "id") is None
        assert dig(None, "sys") is None

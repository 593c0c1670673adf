"""Tests for resource-name parsing."""

import pytest

from pdf_webhook_backend.urn import MalformedUrnError, ResourceCoordinates, build_urn, parse_urn


class TestParseUrn:
    def test_contentful_resource_name(self):
        urn = "crn:contentful:::content:spaces/space-7/environments/master/entries/abc123"
        assert parse_urn(urn) == ResourceCoordinates(space="space-7", environment="master", entry_id="abc123")

    def test_build_then_parse_round_trip(self):
        urn = build_urn("space-7", "develop", "entry-1")
        coordinates = parse_urn(urn)
        assert build_urn(coordinates.space, coordinates.environment, coordinates.entry_id) == urn

    def test_extra_segments_are_ignored(self):
        assert parse_urn("s/sp/e/env/x/id/extra").entry_id == "id"

    @pytest.mark.parametrize(
        "urn",
        [
            "",
            "crn",
            "crn:contentful:::content:spaces/space-7",
            "a/b/c/d/e",
        ],
    )
    def test_fewer_than_six_segments(self, urn):
        with pytest.raises(MalformedUrnError) as info:
            parse_urn(urn)
        assert info.value.code == "MALFORMED_URN"
        assert info.value.urn == urn

    @pytest.mark.parametrize("urn", ["s//e/env/x/id", "s/sp/e//x/id", "s/sp/e/env/x/"])
    def test_empty_coordinates(self, urn):
        with pytest.raises(MalformedUrnError):
            parse_urn(urn)

    def test_malformed_urn_is_value_error(self):
        with pytest.raises(ValueError):
            parse_urn("nope")

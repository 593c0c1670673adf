"""Tests for loading page content through the Delivery API."""

import httpx
import pytest

from pdf_webhook_backend.content_fetcher import ContentFetcher
from pdf_webhook_backend.contentful import ContentfulDeliveryClient
from pdf_webhook_backend.urn import build_urn


def _link(entry_id):
    return {"sys": {"type": "Link", "linkType": "Entry", "id": entry_id}}


def _resource_link(space, entry_id, environment="master"):
    return {"sys": {"type": "ResourceLink", "linkType": "Contentful:Entry", "urn": build_urn(space, environment, entry_id)}}


class FakeDeliveryApi:
    def __init__(self, items, includes=None, remote=None):
        self.items = items
        self.includes = includes or []
        self.remote = remote or {}
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/spaces/S1/environments/develop/entries":
            return httpx.Response(200, json={"items": self.items, "includes": {"Entry": self.includes}})
        entry = self.remote.get(path)
        if entry is None:
            return httpx.Response(404, json={"message": "The resource could not be found."})
        return httpx.Response(200, json=entry)


def _fetcher(api):
    client = ContentfulDeliveryClient(
        "cda-token",
        primary_space="S1",
        linked_space_token="linked-token",
        http_client=httpx.Client(transport=httpx.MockTransport(api)),
    )
    return ContentFetcher(client, space_id="S1", environment="develop")


@pytest.fixture
def page_entry():
    return {
        "sys": {"id": "E1"},
        "fields": {
            "title": "Asthma care",
            "slug": "asthma-care",
            "relatedConditions": [_link("C1"), _link("C-missing")],
            "relatedTreatments": [_resource_link("S2", "T1"), {"sys": {"type": "ResourceLink", "urn": "not-a-urn"}}],
        },
    }


class TestContentFetcher:
    def test_query_by_slug(self, page_entry):
        api = FakeDeliveryApi([page_entry])
        _fetcher(api).fetch_page("asthma-care", locale="en-US")

        query = api.requests[0].url.params
        assert query["content_type"] == "patientEducation"
        assert query["fields.slug"] == "asthma-care"
        assert query["include"] == "2"
        assert query["limit"] == "1"
        assert query["locale"] == "en-US"
        assert api.requests[0].headers["Authorization"] == "Bearer cda-token"

    def test_no_match_returns_none(self):
        assert _fetcher(FakeDeliveryApi([])).fetch_page("nothing-here") is None

    def test_links_resolved_from_includes(self, page_entry):
        condition = {"sys": {"id": "C1"}, "fields": {"name": "Asthma"}}
        page = _fetcher(FakeDeliveryApi([page_entry], includes=[condition])).fetch_page("asthma-care")

        assert page.entry["sys"]["id"] == "E1"
        assert page.related_conditions == [condition]

    def test_resource_links_fetched_from_linked_space(self, page_entry):
        treatment = {"sys": {"id": "T1"}, "fields": {"name": "Inhaler"}}
        api = FakeDeliveryApi([page_entry], remote={"/spaces/S2/environments/master/entries/T1": treatment})
        page = _fetcher(api).fetch_page("asthma-care")

        assert page.related_treatments == [treatment]
        remote_request = api.requests[1]
        assert remote_request.url.path == "/spaces/S2/environments/master/entries/T1"
        assert remote_request.headers["Authorization"] == "Bearer linked-token"

    def test_unreachable_resource_link_dropped(self, page_entry):
        page = _fetcher(FakeDeliveryApi([page_entry])).fetch_page("asthma-care")
        assert page.related_treatments == []

    def test_fetch_by_malformed_urn(self):
        api = FakeDeliveryApi([])
        assert _fetcher(api).fetch_by_urn("crn:contentful:::content:spaces/S2") is None
        assert api.requests == []

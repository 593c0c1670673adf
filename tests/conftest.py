"""
Pytest configuration and fixtures for PDF Webhook Backend tests.
"""

import copy
import os
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

# Set test environment variables before importing the app
os.environ["WEBHOOK_SECRET"] = ""
os.environ["CONTENTFUL_SYSTEM_USER_ID"] = "SYSTEM"
os.environ["PAGE_BASE_URL"] = "https://pages.example.org"
os.environ["DAM_BACKEND"] = "bynder"
os.environ["BYNDER_BASE_URL"] = "https://dam.example.org"

from pdf_webhook_backend.configuration import make_runtime_config
from pdf_webhook_backend.contentful import ContentfulError
from pdf_webhook_backend.dam import Asset, AssetMetadata, AssetRepository, AssetStore, AssetStoreError, SaveReceipt
from pdf_webhook_backend.entry_updater import EntryUpdater
from pdf_webhook_backend.main import app, get_orchestrator
from pdf_webhook_backend.renderer import RenderResult
from pdf_webhook_backend.webhook import WebhookOrchestrator


class FakeRenderer:
    """Renderer double returning a canned result and recording calls."""

    def __init__(self, result: Optional[RenderResult] = None):
        self.result = result or RenderResult(success=True, file_name="asthma-care.pdf", buffer=b"%PDF-1.4\n%%")
        self.calls: List[Dict[str, Any]] = []

    def render(self, url, slug, file_name=None):
        self.calls.append({"url": url, "slug": slug})
        return self.result


class FakeAssetStore(AssetStore):
    """In-memory DAM keyed by asset id."""

    def __init__(self):
        self.assets: Dict[str, Asset] = {}
        self.contents: Dict[str, bytes] = {}
        self.creates = 0
        self.updates = 0
        self.find_calls = 0
        self.fail_with: Optional[str] = None

    def find_by_name(self, name, metadata):
        self.find_calls += 1
        if self.fail_with:
            raise AssetStoreError(self.fail_with)
        for asset in self.assets.values():
            if asset.name == name and asset.metadata == metadata:
                return Asset(id=asset.id, name=asset.name, metadata=asset.metadata)
        return None

    def save(self, content, file_name, metadata, asset_id=None):
        if asset_id:
            self.updates += 1
        else:
            self.creates += 1
            asset_id = f"media-{self.creates}"
            self.assets[asset_id] = Asset(id=asset_id, name=file_name, metadata=metadata)
        self.contents[asset_id] = content
        return SaveReceipt(asset_id=asset_id, batch_id=f"batch-{self.creates + self.updates}")

    def get(self, asset_id):
        stored = self.assets[asset_id]
        return Asset(id=stored.id, name=stored.name, metadata=stored.metadata, location=f"https://dam.example.org/m/{asset_id}")


class FakeManagementClient:
    """Management API double holding entries in memory."""

    def __init__(self, entries: Optional[Dict[str, Dict[str, Any]]] = None):
        self.entries = entries or {}
        self.get_calls: List[str] = []
        self.updates: List[Dict[str, Any]] = []
        self.update_error: Optional[ContentfulError] = None
        self.closed = False

    def get_entry(self, space_id, environment, entry_id):
        self.get_calls.append(entry_id)
        if entry_id not in self.entries:
            raise ContentfulError(f"Loading entry {entry_id} failed with HTTP 404: NotFound", 404)
        return copy.deepcopy(self.entries[entry_id])

    def update_entry(self, space_id, environment, entry):
        if self.update_error:
            raise self.update_error
        self.updates.append(copy.deepcopy(entry))
        entry = copy.deepcopy(entry)
        entry["sys"]["version"] += 1
        self.entries[entry["sys"]["id"]] = entry
        return entry

    def close(self):
        self.closed = True


def make_entry(entry_id: str, content_type: str = "patientEducation", version: int = 3) -> Dict[str, Any]:
    return {
        "sys": {
            "id": entry_id,
            "version": version,
            "contentType": {"sys": {"type": "Link", "linkType": "ContentType", "id": content_type}},
        },
        "fields": {
            "title": {"en-US": "Asthma care"},
            "slug": {"en-US": "asthma-care"},
        },
    }


@pytest.fixture
def config():
    """Runtime configuration with a fixed base URL and no shared secret."""
    return make_runtime_config({"app": {"base_url": "https://pages.example.org"}, "webhook": {"secret": ""}})


@pytest.fixture
def renderer():
    return FakeRenderer(RenderResult(success=True, file_name="asthma-care.pdf", buffer=b"0123456789"))


@pytest.fixture
def asset_store():
    return FakeAssetStore()


@pytest.fixture
def cms():
    return FakeManagementClient({"E1": make_entry("E1")})


@pytest.fixture
def orchestrator(config, renderer, asset_store, cms):
    return WebhookOrchestrator(
        config,
        renderer=renderer,
        assets=AssetRepository(asset_store, organization="ChildrensHealth"),
        entries=EntryUpdater(cms, content_type="patientEducation", field_name="pdf", locale="en-US"),
    )


@pytest.fixture
def webhook_body():
    return {
        "entityId": "E1",
        "spaceId": "S1",
        "environment": "master",
        "actorId": "human-1",
        "slug": {"en-US": "asthma-care"},
        "parameters": {"text": "Entity version: 3"},
    }


@pytest.fixture
def client(orchestrator):
    """Create a test client with the orchestrator replaced by one wired to fakes."""
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def entry_factory():
    """Build Management API entry payloads."""
    return make_entry

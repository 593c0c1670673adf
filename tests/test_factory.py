"""Tests for wiring collaborators from configuration."""

from unittest.mock import MagicMock

from pdf_webhook_backend import factory
from pdf_webhook_backend.configuration import make_runtime_config
from pdf_webhook_backend.dam.bynder import BynderAssetStore
from pdf_webhook_backend.dam.s3 import S3AssetStore


class TestFactory:
    def test_orchestrator_from_defaults(self):
        config = make_runtime_config({"renderer": {"timeout_ms": 2500}, "contentful": {"pdf_field": "printable"}})
        orchestrator = factory.build_orchestrator(config)

        assert orchestrator.renderer.timeout_ms == 2500
        assert orchestrator.renderer.launch_args == ["--no-sandbox", "--disable-setuid-sandbox"]
        assert orchestrator.entries.field_name == "printable"
        assert orchestrator.entries.locale == "en-US"
        assert isinstance(orchestrator.assets.store, BynderAssetStore)
        assert orchestrator.assets.organization == "ChildrensHealth"

    def test_s3_backend(self, monkeypatch):
        boto_client = MagicMock()
        monkeypatch.setattr("pdf_webhook_backend.dam.s3.boto3.client", lambda service: boto_client)
        config = make_runtime_config({"dam": {"backend": "s3", "s3": {"bucket": "pdf-bucket"}}})
        store = factory.build_asset_store(config)

        assert isinstance(store, S3AssetStore)
        assert store.bucket == "pdf-bucket"
        assert store.prefix == "pdfs/"

    def test_content_fetcher(self):
        config = make_runtime_config({"contentful": {"delivery_space": "S1", "delivery_environment": "develop"}})
        fetcher = factory.build_content_fetcher(config)

        assert fetcher.space_id == "S1"
        assert fetcher.environment == "develop"
        assert fetcher.client.primary_space == "S1"

"""Tests for idempotent asset publication."""

from pdf_webhook_backend.dam import AssetMetadata, AssetRepository
from pdf_webhook_backend.models import ErrorCode


class TestAssetMetadata:
    def test_pdf_is_document(self):
        metadata = AssetMetadata.for_file("asthma-care.pdf", "E1", "ChildrensHealth")
        assert metadata == AssetMetadata(
            subject_id="E1",
            asset_category="Documents",
            file_extension="pdf",
            organization="ChildrensHealth",
        )

    def test_categories_by_extension(self):
        assert AssetMetadata.for_file("clip.MP4", "E1", "org").asset_category == "Videos"
        assert AssetMetadata.for_file("logo.svg", "E1", "org").asset_category == "Graphics"
        assert AssetMetadata.for_file("photo.jpg", "E1", "org").asset_category == "Photography"


class TestAssetRepository:
    def test_creates_when_absent(self, asset_store):
        repository = AssetRepository(asset_store, organization="ChildrensHealth")
        result = repository.upload(b"0123456789", "asthma-care.pdf", "E1")

        assert result.success is True
        assert result.reused_existing is False
        assert result.asset.id == "media-1"
        assert result.asset.location == "https://dam.example.org/m/media-1"
        assert result.asset.batch_id == "batch-1"
        assert result.asset.metadata.subject_id == "E1"
        assert asset_store.creates == 1

    def test_same_inputs_twice_yield_one_asset(self, asset_store):
        repository = AssetRepository(asset_store, organization="ChildrensHealth")
        first = repository.upload(b"0123456789", "asthma-care.pdf", "E1")
        second = repository.upload(b"0123456789", "asthma-care.pdf", "E1")

        assert first.asset.id == second.asset.id
        assert asset_store.creates == 1
        assert asset_store.updates == 1
        assert second.reused_existing is True

    def test_update_replaces_binary(self, asset_store):
        repository = AssetRepository(asset_store, organization="ChildrensHealth")
        repository.upload(b"old", "asthma-care.pdf", "E1")
        repository.upload(b"new", "asthma-care.pdf", "E1")
        assert asset_store.contents["media-1"] == b"new"

    def test_other_entry_gets_its_own_asset(self, asset_store):
        repository = AssetRepository(asset_store, organization="ChildrensHealth")
        first = repository.upload(b"a", "asthma-care.pdf", "E1")
        second = repository.upload(b"a", "asthma-care.pdf", "E2")
        assert first.asset.id != second.asset.id
        assert asset_store.creates == 2

    def test_store_error_surfaces_detail(self, asset_store):
        asset_store.fail_with = "Searching media failed with HTTP 401: invalid token"
        repository = AssetRepository(asset_store, organization="ChildrensHealth")
        result = repository.upload(b"a", "asthma-care.pdf", "E1")

        assert result.success is False
        assert result.error_code == ErrorCode.UPLOAD_FAILED
        assert "invalid token" in result.error
        assert asset_store.creates == 0

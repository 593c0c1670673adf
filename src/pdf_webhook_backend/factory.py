"""Construction of the pipeline's collaborators from configuration."""

from __future__ import annotations

from omegaconf import DictConfig, OmegaConf

from .content_fetcher import ContentFetcher
from .contentful import ContentfulDeliveryClient, ContentfulManagementClient
from .dam import AssetRepository, AssetStore
from .dam.bynder import BynderAssetStore
from .dam.s3 import S3AssetStore
from .entry_updater import EntryUpdater
from .renderer import PdfRenderer
from .webhook import WebhookOrchestrator


def build_asset_store(config: DictConfig) -> AssetStore:
    dam = config.dam
    if dam.backend == "s3":
        return S3AssetStore(
            bucket=dam.s3.bucket,
            prefix=dam.s3.prefix,
            presign_expiration=dam.s3.presign_expiration,
        )
    return BynderAssetStore(
        base_url=dam.bynder.base_url,
        permanent_token=dam.bynder.permanent_token,
        brand_id=dam.bynder.brand_id,
        metaproperty_names=OmegaConf.to_container(dam.bynder.metaproperties, resolve=True),  # type: ignore[arg-type]
        asset_subtype=dam.asset_subtype,
        chunk_size=dam.bynder.chunk_size,
        poll_attempts=dam.bynder.poll_attempts,
        poll_interval=dam.bynder.poll_interval,
        timeout=dam.timeout,
    )


def build_renderer(config: DictConfig) -> PdfRenderer:
    renderer = config.renderer
    return PdfRenderer(
        timeout_ms=renderer.timeout_ms,
        wait_until=renderer.wait_until,
        paper_format=renderer.format,
        print_background=renderer.print_background,
        margin=OmegaConf.to_container(renderer.margin, resolve=True),  # type: ignore[arg-type]
        user_agent=renderer.user_agent,
        launch_args=list(renderer.launch_args),
    )


def build_entry_updater(config: DictConfig) -> EntryUpdater:
    contentful = config.contentful
    client = ContentfulManagementClient(
        contentful.management_token,
        base_url=contentful.management_base_url,
        timeout=contentful.timeout,
    )
    return EntryUpdater(
        client,
        content_type=contentful.content_type,
        field_name=contentful.pdf_field,
        locale=config.webhook.canonical_locale,
    )


def build_orchestrator(config: DictConfig) -> WebhookOrchestrator:
    return WebhookOrchestrator(
        config,
        renderer=build_renderer(config),
        assets=AssetRepository(build_asset_store(config), organization=config.dam.organization),
        entries=build_entry_updater(config),
    )


def build_content_fetcher(config: DictConfig) -> ContentFetcher:
    contentful = config.contentful
    client = ContentfulDeliveryClient(
        contentful.delivery_token,
        primary_space=contentful.delivery_space,
        linked_space_token=contentful.linked_space_token,
        base_url=contentful.delivery_base_url,
        timeout=contentful.timeout,
    )
    return ContentFetcher(
        client,
        space_id=contentful.delivery_space,
        environment=contentful.delivery_environment,
        content_type=contentful.content_type,
    )

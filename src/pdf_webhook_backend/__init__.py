"""
PDF Webhook Backend - keeps CMS entries and their published PDFs in sync

This package provides a FastAPI-based web service that reacts to CMS change
webhooks. For every accepted delivery it:

- Renders the entry's public page to PDF with a headless browser
- Publishes the PDF to the digital-asset-management store, reusing the
  existing asset for the same entry instead of creating duplicates
- Links the published asset back into the entry's PDF field

Key Components:
    - main: FastAPI application and HTTP endpoint definitions
    - webhook: Payload normalisation and the render/upload/link orchestrator
    - renderer: Playwright-based URL to PDF rendering
    - dam: Asset stores (Bynder, S3) and the idempotent asset repository
    - entry_updater: Writes the asset link into the CMS entry
    - content_fetcher: Loads a page's entry and its linked entries
    - urn: Resource-name parsing for cross-space links
    - configuration: Config loading and merging logic
    - models: Pydantic models for events and pipeline outcomes

Usage:
    Run the API server with:
        uvicorn pdf_webhook_backend.main:app --host 0.0.0.0 --port 8000

    Or use the installed script:
        pdf-webhook-backend

Architecture Principles:
    - Changes made by the system actor never trigger the pipeline again
    - No side effects before authentication and validation pass
    - Stages run strictly in sequence and are never retried internally;
      webhook redelivery is the retry
    - Every delivery answers with one outcome describing every stage
"""

"""Bynder-backed asset store over the Bynder REST API."""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Iterator, List, Optional

import httpx

from .base import Asset, AssetMetadata, AssetStore, AssetStoreError, SaveReceipt

logger = logging.getLogger(__name__)

DEFAULT_METAPROPERTY_NAMES = {
    "subject_id": "PatientName",
    "asset_category": "assettype",
    "file_extension": "FileExtension",
    "organization": "Organization",
    "asset_subtype": "assetsubtype",
}


class BynderAssetStore(AssetStore):
    """
    Asset store for a Bynder portal authenticated with a permanent token.

    Binary uploads follow Bynder's chunked flow: the file is posted in chunks to
    the closest S3 upload endpoint, each chunk is registered, the upload is
    finalised and polled until Bynder has imported it, and the import is then
    saved either as a new asset or as a new version of an existing one. S3 chunk
    posts go through a separate client so the Bynder token never leaves Bynder.
    """

    def __init__(
        self,
        base_url: str,
        permanent_token: str,
        brand_id: str,
        *,
        metaproperty_names: Optional[Dict[str, str]] = None,
        asset_subtype: str = "dotcom",
        chunk_size: int = 5 * 1024 * 1024,
        poll_attempts: int = 60,
        poll_interval: float = 2.0,
        timeout: float = 60.0,
        http_client: httpx.Client | None = None,
        upload_client: httpx.Client | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("Bynder base_url must be configured")
        self._base_url = base_url.rstrip("/")
        self._brand_id = brand_id
        self._names = {**DEFAULT_METAPROPERTY_NAMES, **(metaproperty_names or {})}
        self._asset_subtype = asset_subtype
        self._chunk_size = chunk_size
        self._poll_attempts = poll_attempts
        self._poll_interval = poll_interval
        self._client = http_client or httpx.Client(timeout=timeout)
        self._owns_client = http_client is None
        self._upload_client = upload_client or httpx.Client(timeout=timeout)
        self._owns_upload_client = upload_client is None
        self._headers = {"Authorization": f"Bearer {permanent_token}"}
        self._metaproperty_ids: Optional[Dict[str, str]] = None

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _call(self, method: str, path: str, action: str, **kwargs: Any) -> Any:
        try:
            response = self._client.request(method, f"{self._base_url}{path}", headers=self._headers, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            raise AssetStoreError(f"{action} failed with HTTP {exc.response.status_code}: {exc.response.text}") from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise AssetStoreError(f"{action} failed: {exc}") from exc

    def metaproperty_ids(self) -> Dict[str, str]:
        """Map metaproperty names to their ids (fetched once per store)."""
        if self._metaproperty_ids is None:
            payload = self._call("GET", "/api/v4/metaproperties/", "Fetching metaproperties")
            properties = payload.values() if isinstance(payload, dict) else payload
            self._metaproperty_ids = {prop["name"]: prop["id"] for prop in properties}
        return self._metaproperty_ids

    def _metaproperty_values(self, metadata: AssetMetadata) -> Dict[str, str]:
        """Metadata keyed by metaproperty id; properties unknown to the portal are dropped."""
        ids = self.metaproperty_ids()
        values = {**metadata.as_dict(), "asset_subtype": self._asset_subtype}
        resolved = {}
        for key, value in values.items():
            prop_id = ids.get(self._names[key])
            if prop_id is None:
                logger.warning(f"Bynder metaproperty '{self._names[key]}' not found; not used for {key}")
                continue
            resolved[prop_id] = value
        return resolved

    @staticmethod
    def _to_asset(media: Dict[str, Any], metadata: Optional[AssetMetadata] = None) -> Asset:
        thumbnails = media.get("thumbnails") or {}
        return Asset(
            id=media["id"],
            name=media.get("name", ""),
            metadata=metadata,
            location=media.get("original") or thumbnails.get("webimage"),
            raw=media,
        )

    def _chunks(self, content: bytes) -> Iterator[bytes]:
        for offset in range(0, max(len(content), 1), self._chunk_size):
            yield content[offset : offset + self._chunk_size]

    def close(self) -> None:
        if self._owns_client:
            self._client.close()
        if self._owns_upload_client:
            self._upload_client.close()

    # ------------------------------------------------------------------
    # AssetStore
    # ------------------------------------------------------------------
    def search(self, name: str, metadata: AssetMetadata, limit: int = 100, page: int = 1) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {"keyword": name, "limit": limit, "page": page}
        for prop_id, value in self._metaproperty_values(metadata).items():
            params[f"property_{prop_id}"] = value
        return self._call("GET", "/api/v4/media/", f"Searching media '{name}'", params=params)

    def find_by_name(self, name: str, metadata: AssetMetadata) -> Optional[Asset]:
        for media in self.search(name, metadata):
            if media.get("name") == name:
                return self._to_asset(media, metadata)
        return None

    def get(self, asset_id: str) -> Asset:
        media = self._call("GET", f"/api/v4/media/{asset_id}/", f"Attempting to find Bynder asset ID [{asset_id}]", params={"versions": 1})
        return self._to_asset(media)

    def save(
        self,
        content: bytes,
        file_name: str,
        metadata: AssetMetadata,
        asset_id: Optional[str] = None,
    ) -> SaveReceipt:
        import_id = self._upload_binary(content, file_name)
        self._wait_for_import(import_id)

        data: Dict[str, Any] = {
            "brandId": self._brand_id,
            "name": file_name,
            "description": "",
            "isPublic": "true",
        }
        for prop_id, value in self._metaproperty_values(metadata).items():
            data[f"metaproperty.{prop_id}"] = value

        path = f"/api/v4/media/{asset_id}/save/{import_id}/" if asset_id else f"/api/v4/media/save/{import_id}/"
        result = self._call("POST", path, f"Saving '{file_name}'", data=data)
        media_id = result.get("mediaid") or asset_id
        if not media_id:
            raise AssetStoreError(f"Saving '{file_name}' returned no media id")
        return SaveReceipt(
            asset_id=media_id,
            batch_id=result.get("batchId"),
            location=result.get("originalFileS3location"),
        )

    # ------------------------------------------------------------------
    # chunked upload
    # ------------------------------------------------------------------
    def _upload_binary(self, content: bytes, file_name: str) -> str:
        endpoint = self._call("GET", "/api/upload/endpoint", "Resolving upload endpoint")
        init = self._call("POST", "/api/upload/init", f"Initialising upload of '{file_name}'", data={"filename": file_name})
        upload_id = init["s3file"]["uploadid"]
        target_id = init["s3file"]["targetid"]
        s3_filename = init["s3_filename"]
        multipart_params = dict(init["multipart_params"])
        key = multipart_params.get("key", s3_filename)

        chunks = list(self._chunks(content))
        total = len(chunks)
        for number, chunk in enumerate(chunks, start=1):
            form = {
                **multipart_params,
                "key": f"{key}/p{number}",
                "Filename": f"{key}/p{number}",
                "name": file_name,
                "chunk": str(number - 1),
                "chunks": str(total),
            }
            try:
                response = self._upload_client.post(endpoint, data=form, files={"file": (file_name, chunk)})
                response.raise_for_status()
            except httpx.HTTPError as exc:
                raise AssetStoreError(f"Uploading chunk {number}/{total} of '{file_name}' failed: {exc}") from exc

            self._call(
                "POST",
                "/api/v4/upload/",
                f"Registering chunk {number}/{total}",
                data={"id": upload_id, "targetid": target_id, "filename": f"{s3_filename}/p{number}", "chunkNumber": number},
            )

        finalised = self._call(
            "POST",
            f"/api/v4/upload/{upload_id}/",
            f"Finalising upload of '{file_name}'",
            data={
                "id": upload_id,
                "targetid": target_id,
                "s3_filename": f"{s3_filename}/p{total}",
                "chunks": total,
                "original_filename": file_name,
            },
        )
        logger.debug(f"Uploaded '{file_name}' in {total} chunk(s), import {finalised['importId']}")
        return finalised["importId"]

    def _wait_for_import(self, import_id: str) -> None:
        for _ in range(self._poll_attempts):
            status = self._call("GET", "/api/v4/upload/poll/", "Polling import", params={"items": import_id})
            if import_id in (status.get("itemsFailed") or []) or import_id in (status.get("itemsRejected") or []):
                raise AssetStoreError(f"Bynder rejected import {import_id}")
            if import_id in (status.get("itemsDone") or []):
                return
            time.sleep(self._poll_interval)
        raise AssetStoreError(f"Import {import_id} not processed after {self._poll_attempts} polls")

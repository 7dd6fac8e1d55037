from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from pgxsheets.db.batch_insert import BatchInsertError
from pgxsheets.db.history import ProvenanceWriter
from pgxsheets.models.config_models import UploadConfig

"""Object storage publisher for finished artifacts.

Uploads are fire-and-forget: a failed upload (or a failed provenance row for
it) is logged and reported as ``None``, never raised, and never retried.
Credentials come from the usual boto3 chain (env, ~/.aws, instance role).
"""

__all__ = [
    "FileStoreClient",
]

logger = logging.getLogger(__name__)


class FileStoreClient:
    def __init__(
        self,
        config: UploadConfig,
        provenance: ProvenanceWriter | None = None,
        client: Any = None,
    ) -> None:
        self.config = config
        self.provenance = provenance
        if client is None:
            client_kwargs: dict[str, Any] = {
                "service_name": "s3",
                # one attempt only
                "config": Config(signature_version="s3v4", retries={"mode": "standard", "total_max_attempts": 1}),
            }
            if config.region:
                client_kwargs["region_name"] = config.region
            if config.endpoint_url:
                client_kwargs["endpoint_url"] = config.endpoint_url
            client = boto3.client(**client_kwargs)
        self.client = client

    def url_for(self, key: str) -> str:
        return self.config.url_format.format(bucket=self.config.bucket, key=key)

    def put_artifact(self, path: Path, prefix: str | None = None) -> str | None:
        """Upload ``path`` under ``prefix`` (default: configured key prefix).

        Returns:
            the public URL, or None when the upload failed
        """
        key = f"{self.config.key_prefix if prefix is None else prefix}{path.name}"
        try:
            self.client.upload_file(str(path), self.config.bucket, key)
        except (BotoCoreError, ClientError, OSError) as e:
            logger.error("upload of %s to s3://%s/%s failed: %s", path.name, self.config.bucket, key, e)
            return None
        url = self.url_for(key)
        logger.info("Uploaded s3://%s/%s", self.config.bucket, key)

        if self.provenance is not None:
            try:
                self.provenance.record_upload(path.name, url)
            except BatchInsertError as e:
                logger.error("Error updating file record in DB %s: %s", path.name, e)
        return url

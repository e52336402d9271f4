from __future__ import annotations

import logging
import os
import secrets
from contextlib import contextmanager
from io import BytesIO
from typing import Iterable, Iterator

import boto3
from botocore.client import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError
from PIL import Image, UnidentifiedImageError

from ...errors import UploadFailed, ValidationError

logger = logging.getLogger(__name__)

_EXTENSIONS = {"JPEG": "jpg", "PNG": "png", "WEBP": "webp", "GIF": "gif"}
_MIME = {"jpg": "image/jpeg", "png": "image/png", "webp": "image/webp", "gif": "image/gif"}


def sniff_image(data: bytes) -> str:
    """Return the file extension for ``data`` or raise if it is not a supported image."""
    if not data:
        raise ValidationError("Attachment is empty")
    try:
        with Image.open(BytesIO(data)) as img:
            fmt = (img.format or "").upper()
            img.verify()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError) as exc:
        raise ValidationError("Attachment is not a supported image") from exc
    ext = _EXTENSIONS.get(fmt)
    if not ext:
        raise ValidationError(f"Unsupported image format: {fmt or 'unknown'}")
    return ext


class MediaStore:
    """Pass-through blob storage for report photos, claim proofs and identity documents.

    Objects go to S3 when a bucket is configured, otherwise to the local upload
    folder served under ``/uploads``. Every S3 call is bounded by the configured
    timeout and attempt count.
    """

    def __init__(
        self,
        upload_folder: str,
        *,
        bucket: str | None = None,
        region: str | None = None,
        endpoint_url: str | None = None,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
        public_url_base: str | None = None,
        timeout: float = 10.0,
        max_attempts: int = 3,
        url_prefix: str = "/uploads",
        client=None,
    ):
        self.upload_folder = upload_folder
        self.bucket = bucket
        self.region = region
        self.endpoint_url = endpoint_url
        self.access_key_id = access_key_id
        self.secret_access_key = secret_access_key
        self.public_url_base = public_url_base
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.url_prefix = url_prefix.rstrip("/")
        self._client = client

    @classmethod
    def from_config(cls, config) -> "MediaStore":
        return cls(
            config["UPLOAD_FOLDER"],
            bucket=config.get("S3_BUCKET_NAME"),
            region=config.get("S3_REGION"),
            endpoint_url=config.get("S3_ENDPOINT_URL"),
            access_key_id=config.get("S3_ACCESS_KEY_ID"),
            secret_access_key=config.get("S3_SECRET_ACCESS_KEY"),
            public_url_base=config.get("S3_PUBLIC_URL_BASE"),
            timeout=config.get("MEDIA_TIMEOUT_SECONDS", 10.0),
            max_attempts=config.get("MEDIA_MAX_ATTEMPTS", 3),
        )

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client(
                "s3",
                region_name=self.region or None,
                aws_access_key_id=self.access_key_id or None,
                aws_secret_access_key=self.secret_access_key or None,
                endpoint_url=self.endpoint_url or None,
                config=BotoConfig(
                    connect_timeout=self.timeout,
                    read_timeout=self.timeout,
                    retries={"max_attempts": self.max_attempts, "mode": "standard"},
                    s3={"addressing_style": "virtual"},
                ),
            )
        return self._client

    @property
    def base_url(self) -> str:
        if not self.bucket:
            return self.url_prefix
        if self.public_url_base:
            return self.public_url_base.rstrip("/")
        region = self.region or "us-east-1"
        return f"https://{self.bucket}.s3.{region}.amazonaws.com"

    def store(self, data: bytes, category: str) -> str:
        """Persist ``data`` under ``category`` and return its stable URL."""
        ext = sniff_image(data)
        key = f"{category}/{secrets.token_hex(16)}.{ext}"
        if self.bucket:
            try:
                self.client.put_object(
                    Bucket=self.bucket,
                    Key=key,
                    Body=data,
                    ContentType=_MIME[ext],
                    ACL="public-read",
                )
            except (BotoCoreError, ClientError) as exc:
                logger.error("S3 upload of %s failed: %s", key, exc)
                raise UploadFailed() from exc
        else:
            path = os.path.join(self.upload_folder, key)
            try:
                os.makedirs(os.path.dirname(path), exist_ok=True)
                with open(path, "wb") as f:
                    f.write(data)
            except OSError as exc:
                logger.error("Local upload of %s failed: %s", key, exc)
                raise UploadFailed() from exc
        logger.debug("Stored attachment %s", key)
        return f"{self.base_url}/{key}"

    def discard(self, url: str) -> None:
        """Remove an object stored by this instance. Failures are logged, not raised."""
        base = self.base_url + "/"
        if not url or not url.startswith(base):
            return
        key = url[len(base):]
        try:
            if self.bucket:
                self.client.delete_object(Bucket=self.bucket, Key=key)
            else:
                os.remove(os.path.join(self.upload_folder, key))
        except (BotoCoreError, ClientError, OSError) as exc:
            logger.warning("Could not discard orphaned attachment %s: %s", key, exc)

    @contextmanager
    def staged(self, files: Iterable, category: str) -> Iterator[list[str]]:
        """Upload ``files`` and yield their URLs; discard them if the block raises."""
        urls: list[str] = []
        try:
            for f in files:
                if f is None:
                    continue
                data = f.read() if hasattr(f, "read") else bytes(f)
                urls.append(self.store(data, category))
            yield urls
        except BaseException:
            for url in urls:
                self.discard(url)
            raise

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote
from xml.etree import ElementTree
from xml.sax.saxutils import escape

from aioaws.core import AwsClient, RequestError
from aioaws.s3 import S3Config
from httpx import URL, AsyncClient, InvalidURL, Response

from s3kv.config import StorageConfig
from s3kv.errors import ConfigurationError, DeleteObjectsError, error_from_response, xmlns_re
from s3kv.storage import ListingPage, PutOptions, StorageBackend, Verb

logger = logging.getLogger(__name__)

DEFAULT_REGION = "us-east-1"
S3_XMLNS = "http://s3.amazonaws.com/doc/2006-03-01/"
# lifetime of the presigned URLs used for our own requests
REQUEST_URL_EXPIRY = 30


def endpoint_host(endpoint: str) -> str:
    try:
        url = URL(endpoint)
    except InvalidURL as exc:
        raise ConfigurationError(f"invalid endpoint {endpoint!r}: {exc}") from exc
    if url.scheme not in ("http", "https") or not url.host:
        raise ConfigurationError(f"endpoint must be an http(s) URL with a host, got {endpoint!r}")
    if url.port is None:
        return url.host
    return f"{url.host}:{url.port}"


def raise_for_status(response: Response) -> None:
    if not response.is_success:
        raise error_from_response(response.status_code, response.content)


def delete_objects_body(keys: list[str]) -> bytes:
    objects = "".join(f"<Object><Key>{escape(key)}</Key></Object>" for key in keys)
    return (
        f'<?xml version="1.0" encoding="UTF-8"?>'
        f'<Delete xmlns="{S3_XMLNS}"><Quiet>true</Quiet>{objects}</Delete>'
    ).encode()


@dataclass
class S3Storage(StorageBackend):
    """S3 backend.

    With a custom endpoint, buckets are addressed path-style
    (``{endpoint}/{bucket}/{key}``) over the endpoint's own scheme. Without
    one, AWS is addressed through the ``{bucket}.s3.{region}.amazonaws.com``
    virtual host.
    """

    client: AsyncClient
    access_key_id: str
    access_key_secret: str
    region: str
    endpoint: str | None

    @classmethod
    @asynccontextmanager
    async def connect(cls, config: StorageConfig) -> AsyncIterator[S3Storage]:
        if not config.access_key_id or not config.secret_access_key:
            raise ConfigurationError("both an access key id and a secret access key are required")
        if config.endpoint is not None:
            endpoint_host(config.endpoint)
        async with AsyncClient(**config.client_options) as client:
            yield cls(
                client,
                config.access_key_id,
                config.secret_access_key,
                config.region or DEFAULT_REGION,
                config.endpoint,
            )

    def _get_client(self, bucket: str) -> AwsClient:
        client = AwsClient(
            self.client,
            S3Config(
                aws_access_key=self.access_key_id,
                aws_secret_key=self.access_key_secret,
                aws_region=self.region,
                aws_s3_bucket=bucket,
                aws_host=endpoint_host(self.endpoint) if self.endpoint else None,
            ),
            "s3",
        )
        if self.endpoint:
            # aioaws always assumes https
            client.schema = URL(self.endpoint).scheme
        return client

    def _bucket_path(self, bucket: str) -> str:
        return f"/{bucket}" if self.endpoint else ""

    def _signed_url(self, bucket: str, key: str, method: Verb, expires_in: int = REQUEST_URL_EXPIRY) -> str:
        client = self._get_client(bucket)
        url = URL(f"{client.endpoint}{self._bucket_path(bucket)}/{quote(key, safe='/~')}")
        # the signer is typed for GET/HEAD/POST but signs any method
        return str(client.add_signed_download_params(method, url, expires_in))  # type: ignore[arg-type]

    async def put(self, bucket: str, key: str, body: bytes, options: PutOptions) -> None:
        url = self._signed_url(bucket, key, "PUT")
        response = await self.client.put(url, content=body, headers=options.headers())
        raise_for_status(response)

    async def get(self, bucket: str, key: str) -> bytes:
        url = self._signed_url(bucket, key, "GET")
        async with self.client.stream("GET", url) as response:
            if not response.is_success:
                await response.aread()
                raise_for_status(response)
            return b"".join([chunk async for chunk in response.aiter_bytes()])

    async def delete(self, bucket: str, key: str) -> None:
        url = self._signed_url(bucket, key, "DELETE")
        response = await self.client.delete(url)
        raise_for_status(response)

    async def list_page(self, bucket: str, cursor: str | None = None) -> ListingPage:
        params: dict[str, Any] = {"list-type": 2}
        if cursor is not None:
            params["continuation-token"] = cursor
        try:
            response = await self._get_client(bucket).get(self._bucket_path(bucket), params=params)
        except RequestError as exc:
            raise error_from_response(exc.response.status_code, exc.response.content) from exc
        root = ElementTree.fromstring(xmlns_re.sub(b"", response.content))
        keys = [
            key
            for key in (contents.findtext("Key") for contents in root.findall("Contents"))
            if key
        ]
        page = ListingPage(
            keys=keys,
            truncated=root.findtext("IsTruncated") == "true",
            next_cursor=root.findtext("NextContinuationToken") or None,
        )
        logger.debug("listed %d keys from %s (truncated=%s)", len(keys), bucket, page.truncated)
        return page

    async def delete_many(self, bucket: str, keys: list[str]) -> None:
        """Delete up to 1000 keys in one DeleteObjects request.

        S3 answers 200 even when some keys could not be deleted, listing them
        as ``<Error>`` entries; those raise ``DeleteObjectsError``.
        """
        try:
            response = await self._get_client(bucket).post(
                self._bucket_path(bucket),
                params={"delete": 1},
                data=delete_objects_body(keys),
                content_type="text/xml",
            )
        except RequestError as exc:
            raise error_from_response(exc.response.status_code, exc.response.content) from exc
        root = ElementTree.fromstring(xmlns_re.sub(b"", response.content))
        failed = {
            error.findtext("Key") or "": (error.findtext("Code"), error.findtext("Message"))
            for error in root.findall("Error")
        }
        if failed:
            raise DeleteObjectsError(response.status_code, failed)
        logger.debug("deleted %d keys from %s", len(keys), bucket)

    def sign_url(self, bucket: str, key: str, verb: Verb, expires_in: int) -> str:
        return self._signed_url(bucket, key, verb, expires_in)

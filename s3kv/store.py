from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, replace
from typing import Any, get_args
from urllib.parse import quote

from httpx import URL

from s3kv.config import StorageConfig
from s3kv.drain import PaginatedDrain
from s3kv.errors import NoSuchKeyError
from s3kv.storage import PutOptions, StorageBackend, Verb
from s3kv.storage.s3 import S3Storage

DEFAULT_LINK_EXPIRY = 3600
# longest lifetime SigV4 allows for a presigned URL
MAX_LINK_EXPIRY = 7 * 24 * 3600


@dataclass
class KeyValueStore:
    """A flat string-keyed namespace over one bucket of an object store."""

    bucket: str
    backend: StorageBackend
    endpoint: str | None = None

    @classmethod
    @asynccontextmanager
    async def connect(
        cls, bucket: str, config: StorageConfig | None = None, **overrides: Any
    ) -> AsyncIterator[KeyValueStore]:
        """Open an S3-backed store; the HTTP client is closed on exit.

        Keyword overrides (``endpoint``, ``region``, ``access_key_id``,
        ``secret_access_key``, ``client_options``) win over ``config``; without
        a config, the rest is read from the environment once, here.
        The bucket is not checked: a missing bucket shows up as
        ``NoSuchBucketError`` on first use.
        """
        if config is None:
            config = StorageConfig.resolve(**overrides)
        elif overrides:
            config = replace(config, **overrides)
        async with S3Storage.connect(config) as backend:
            yield cls(bucket, backend, config.endpoint)

    async def set_item(
        self, key: str, value: str | bytes, options: PutOptions | None = None
    ) -> None:
        _check_key(key)
        options = options or PutOptions()
        if isinstance(value, str):
            value = value.encode()
            if options.content_type is None:
                options = replace(options, content_type="text/plain")
        await self.backend.put(self.bucket, key, value, options)

    async def get_item(self, key: str, encoding: str | None = "utf-8") -> str | bytes | None:
        """Return the value at ``key``, or None if there is no such key.

        With ``encoding=None`` the stored bytes come back untouched.
        """
        _check_key(key)
        try:
            body = await self.backend.get(self.bucket, key)
        except NoSuchKeyError:
            return None
        if encoding is None:
            return body
        return body.decode(encoding)

    async def remove_item(self, key: str) -> None:
        _check_key(key)
        try:
            await self.backend.delete(self.bucket, key)
        except NoSuchKeyError:
            pass

    async def list(self) -> AsyncIterator[str]:
        async for key in PaginatedDrain(self.backend, self.bucket).keys():
            yield key

    async def clear(self) -> int:
        """Delete everything in the bucket.

        Not atomic: if a page fails, earlier pages stay deleted. Calling
        again starts over from the first page of what is left.
        """
        return await PaginatedDrain(self.backend, self.bucket).delete_all()

    def get_item_link(
        self, key: str, verb: Verb = "GET", expires_in: int = DEFAULT_LINK_EXPIRY
    ) -> str:
        _check_key(key)
        if verb not in get_args(Verb):
            raise ValueError(f"verb must be one of {get_args(Verb)}, got {verb!r}")
        if not 1 <= expires_in <= MAX_LINK_EXPIRY:
            raise ValueError(f"expires_in must be between 1 and {MAX_LINK_EXPIRY} seconds, got {expires_in}")
        return self.backend.sign_url(self.bucket, key, verb, expires_in)

    def get_item_public_link(self, key: str) -> str | None:
        # without a fixed endpoint there's no single public URL to give
        if self.endpoint is None:
            return None
        url = URL(self.endpoint)
        origin = f"{url.scheme}://{url.host}"
        if url.port is not None:
            origin = f"{origin}:{url.port}"
        return f"{origin}/{self.bucket}/{quote(key)}"


def _check_key(key: str) -> None:
    if not key:
        raise ValueError("key must be a non-empty string")

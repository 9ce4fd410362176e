from bisect import bisect_right
from collections import defaultdict
from dataclasses import dataclass, field

from s3kv.errors import NoSuchKeyError
from s3kv.storage import ListingPage, PutOptions, StorageBackend, Verb


@dataclass
class Object:
    body: bytes
    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class InMemoryBackend(StorageBackend):
    """Process-local backend that pages its listings like S3 does.

    Listings come back in key order, ``page_size`` keys at a time. The cursor
    is the last key of the previous page, so keys deleted between pages are
    simply not seen again.
    """

    page_size: int = 1000
    storage: dict[str, dict[str, Object]] = field(
        default_factory=lambda: defaultdict(dict)
    )

    async def put(self, bucket: str, key: str, body: bytes, options: PutOptions) -> None:
        self.storage[bucket][key] = Object(body=body, headers=options.headers())

    async def get(self, bucket: str, key: str) -> bytes:
        try:
            return self.storage[bucket][key].body
        except KeyError:
            raise NoSuchKeyError(404, "NoSuchKey", f"{key} does not exist") from None

    async def delete(self, bucket: str, key: str) -> None:
        self.storage[bucket].pop(key, None)

    async def list_page(self, bucket: str, cursor: str | None = None) -> ListingPage:
        keys = sorted(self.storage[bucket])
        start = 0 if cursor is None else bisect_right(keys, cursor)
        page = keys[start : start + self.page_size]
        truncated = start + self.page_size < len(keys)
        return ListingPage(
            keys=page,
            truncated=truncated,
            next_cursor=page[-1] if truncated else None,
        )

    async def delete_many(self, bucket: str, keys: list[str]) -> None:
        for key in keys:
            self.storage[bucket].pop(key, None)

    def sign_url(self, bucket: str, key: str, verb: Verb, expires_in: int) -> str:
        return f"memory://{bucket}/{key}?method={verb}&expires={expires_in}"

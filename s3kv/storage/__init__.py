from dataclasses import dataclass, field
from typing import Literal, Protocol

Verb = Literal["GET", "PUT", "DELETE"]


@dataclass
class ListingPage:
    keys: list[str]
    truncated: bool
    next_cursor: str | None = None


@dataclass
class PutOptions:
    """Request attributes for a put, other than bucket, key and body."""

    content_type: str | None = None
    cache_control: str | None = None
    content_disposition: str | None = None
    content_encoding: str | None = None
    content_language: str | None = None
    storage_class: str | None = None
    acl: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)

    def headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": self.content_type,
            "Cache-Control": self.cache_control,
            "Content-Disposition": self.content_disposition,
            "Content-Encoding": self.content_encoding,
            "Content-Language": self.content_language,
            "x-amz-storage-class": self.storage_class,
            "x-amz-acl": self.acl,
        }
        result = {name: value for name, value in headers.items() if value is not None}
        for name, value in self.metadata.items():
            result[f"x-amz-meta-{name}"] = value
        return result


class StorageBackend(Protocol):
    async def put(self, bucket: str, key: str, body: bytes, options: PutOptions) -> None: ...

    async def get(self, bucket: str, key: str) -> bytes: ...

    async def delete(self, bucket: str, key: str) -> None: ...

    async def list_page(self, bucket: str, cursor: str | None = None) -> ListingPage: ...

    async def delete_many(self, bucket: str, keys: list[str]) -> None: ...

    def sign_url(self, bucket: str, key: str, verb: Verb, expires_in: int) -> str: ...

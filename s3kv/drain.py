from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass

from s3kv.errors import DrainError
from s3kv.storage import ListingPage, StorageBackend

logger = logging.getLogger(__name__)


@dataclass
class PaginatedDrain:
    """Walks a bucket listing page by page until the backend says it is done.

    Pages are requested strictly one after another since each request needs
    the cursor from the previous response. Nothing is retried: the first
    failing request ends the drain with its error.
    """

    backend: StorageBackend
    bucket: str

    async def pages(self) -> AsyncIterator[ListingPage]:
        cursor: str | None = None
        truncated = True
        while truncated:
            page = await self.backend.list_page(self.bucket, cursor)
            # the consumer handles the page before the next one is requested
            yield page
            truncated = page.truncated
            cursor = page.next_cursor
            if truncated and cursor is None:
                raise DrainError(
                    f"listing of {self.bucket!r} is truncated but has no continuation token"
                )

    async def keys(self) -> AsyncIterator[str]:
        async for page in self.pages():
            for key in page.keys:
                yield key

    async def delete_all(self) -> int:
        """Delete every key, one batch request per non-empty page.

        Returns the number of keys deleted.
        """
        deleted = 0
        async for page in self.pages():
            if not page.keys:
                continue
            await self.backend.delete_many(self.bucket, page.keys)
            deleted += len(page.keys)
            logger.debug("cleared %d keys from %s", deleted, self.bucket)
        return deleted

from __future__ import annotations

import re
from xml.etree import ElementTree

xmlns_re = re.compile(rb' xmlns="[^"]+"')


class S3KVError(Exception):
    """Base error for s3kv."""


class ConfigurationError(S3KVError):
    """Raised when a storage backend cannot be built from its configuration."""


class DrainError(S3KVError):
    """Raised when a listing reports more pages but gives no cursor to fetch them."""


class BackendError(S3KVError):
    """A non-success response from the object store."""

    def __init__(self, status_code: int, code: str | None, message: str | None = None) -> None:
        self.status_code = status_code
        self.code = code
        self.message = message
        summary = f"{status_code} {code or 'UnknownError'}"
        super().__init__(f"{summary}: {message}" if message else summary)


class NoSuchKeyError(BackendError):
    pass


class NoSuchBucketError(BackendError):
    pass


class DeleteObjectsError(BackendError):
    """Some keys of a batch delete were refused.

    ``failed`` maps each refused key to its error code and message.
    """

    def __init__(self, status_code: int, failed: dict[str, tuple[str | None, str | None]]) -> None:
        self.failed = failed
        key, (code, message) = next(iter(failed.items()))
        super().__init__(status_code, code, f"{len(failed)} key(s) not deleted, first {key!r}: {message}")


ERROR_KINDS: dict[str, type[BackendError]] = {
    "NoSuchKey": NoSuchKeyError,
    "NoSuchBucket": NoSuchBucketError,
}


def error_from_response(status_code: int, body: bytes) -> BackendError:
    """Build a typed error from an S3 error response.

    S3 answers failures with an XML document like
    ``<Error><Code>NoSuchKey</Code><Message>...</Message></Error>``.
    HEAD responses and some S3-compatible stores send no body at all, in
    which case a bare 404 is taken to mean the key is missing.
    """
    code: str | None = None
    message: str | None = None
    if body:
        try:
            root = ElementTree.fromstring(xmlns_re.sub(b"", body))
        except ElementTree.ParseError:
            message = body.decode(errors="replace")
        else:
            code = root.findtext("Code")
            message = root.findtext("Message")
    if code is None and status_code == 404:
        return NoSuchKeyError(status_code, "NoSuchKey", message)
    kind = ERROR_KINDS.get(code or "", BackendError)
    return kind(status_code, code, message)

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

ENV_VARS = {
    "endpoint": "AWS_S3_ENDPOINT",
    "region": "AWS_REGION",
    "access_key_id": "AWS_ACCESS_KEY_ID",
    "secret_access_key": "AWS_SECRET_ACCESS_KEY",
}


@dataclass(frozen=True)
class StorageConfig:
    endpoint: str | None = None
    region: str | None = None
    access_key_id: str | None = None
    secret_access_key: str | None = None
    # passed straight to httpx.AsyncClient
    client_options: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def resolve(
        cls,
        environ: Mapping[str, str] | None = None,
        *,
        endpoint: str | None = None,
        region: str | None = None,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
        client_options: dict[str, Any] | None = None,
    ) -> StorageConfig:
        """Build a config, taking each field from the explicit argument first,
        then from the environment, and leaving it unset otherwise.

        Resolution happens once; the result is frozen.
        """
        if environ is None:
            environ = os.environ
        explicit = {
            "endpoint": endpoint,
            "region": region,
            "access_key_id": access_key_id,
            "secret_access_key": secret_access_key,
        }
        values = {
            name: value if value is not None else (environ.get(ENV_VARS[name]) or None)
            for name, value in explicit.items()
        }
        return cls(**values, client_options=dict(client_options or {}))

from __future__ import annotations

import os
from dataclasses import dataclass, field

API_KEY_ENV = "BITKUB_API_KEY"
API_SECRET_ENV = "BITKUB_API_SECRET"


@dataclass(frozen=True)
class BitkubConfig:
    base_url: str = "https://api.bitkub.com"
    # seconds, passed to requests as the per-call deadline
    timeout: float = 10.0
    user_agent: str = "bitkub-python/1.0"


@dataclass(frozen=True)
class Credentials:
    api_key: str = ""
    api_secret: str = field(default="", repr=False)

    @classmethod
    def from_env(cls) -> "Credentials":
        return cls(
            api_key=os.environ.get(API_KEY_ENV, ""),
            api_secret=os.environ.get(API_SECRET_ENV, ""),
        )


@dataclass(frozen=True)
class OrderOptions:
    # forwarded as "client_id" on order placement when set
    client_id: str | None = None

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from typing import Any, Callable, Mapping

logger = logging.getLogger(__name__)

ENV_PREFIX = "CERTCHECK_"


@dataclass(frozen=True)
class Settings:
    """
    Tunables for a single check. Defaults mirror what a mobile client uses.
    """
    connect_timeout: float = 10.0
    read_timeout: float = 10.0
    expiry_warning_days: int = 30
    max_chain_length: int = 5
    default_port: int = 443

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ
        base = cls()
        overrides: dict[str, Any] = {}
        for field_name, cast in _FIELDS.items():
            raw = env.get(ENV_PREFIX + field_name.upper())
            if raw is None or not raw.strip():
                continue
            try:
                value = cast(raw.strip())
            except ValueError:
                logger.warning(
                    "Ignoring malformed %s%s=%r, using default %r",
                    ENV_PREFIX, field_name.upper(), raw, getattr(base, field_name),
                )
                continue
            if value <= 0:
                logger.warning(
                    "Ignoring non-positive %s%s=%r, using default %r",
                    ENV_PREFIX, field_name.upper(), raw, getattr(base, field_name),
                )
                continue
            overrides[field_name] = value
        return replace(base, **overrides)

    def with_overrides(self, **kwargs: Any) -> "Settings":
        return replace(self, **{k: v for k, v in kwargs.items() if v is not None})


_FIELDS: dict[str, Callable[[str], Any]] = {
    "connect_timeout": float,
    "read_timeout": float,
    "expiry_warning_days": int,
    "max_chain_length": int,
    "default_port": int,
}

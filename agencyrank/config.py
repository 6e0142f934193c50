"""
Runtime settings read from AGENCYRANK_* environment variables.

Call env.load_env() first if a .env file should be honoured.
"""

import os
from dataclasses import dataclass, replace
from typing import Callable, Mapping, Optional, TypeVar

DEFAULT_BASE_URL = "https://www.ecfr.gov"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

T = TypeVar("T")


@dataclass(frozen=True)
class Settings:
    base_url: str = DEFAULT_BASE_URL
    timeout: float = 15.0
    cap: int = 50
    concurrency: int = 5
    max_attempts: int = 3
    base_delay: float = 1.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from the environment, falling back to defaults.

        Raises:
            ValueError: If a variable is set but not a valid number, or a
                value is out of range.
        """
        env = os.environ if environ is None else environ
        defaults = cls()
        settings = cls(
            base_url=env.get("AGENCYRANK_BASE_URL", defaults.base_url).rstrip("/"),
            timeout=_read(env, "AGENCYRANK_TIMEOUT", float, defaults.timeout),
            cap=_read(env, "AGENCYRANK_CAP", int, defaults.cap),
            concurrency=_read(env, "AGENCYRANK_CONCURRENCY", int, defaults.concurrency),
            max_attempts=_read(env, "AGENCYRANK_MAX_ATTEMPTS", int, defaults.max_attempts),
            base_delay=_read(env, "AGENCYRANK_BASE_DELAY", float, defaults.base_delay),
            log_level=env.get("AGENCYRANK_LOG_LEVEL", defaults.log_level).upper(),
        )
        settings.validate()
        return settings

    def with_overrides(self, **overrides) -> "Settings":
        """Return a copy with non-None overrides applied (CLI flags)."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        updated = replace(self, **changes)
        updated.validate()
        return updated

    def validate(self) -> None:
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")
        if self.cap < 0:
            raise ValueError(f"cap must be non-negative, got {self.cap}")
        if self.concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {self.concurrency}")
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")
        if self.base_delay < 0:
            raise ValueError(f"base_delay must be non-negative, got {self.base_delay}")
        if self.log_level not in LOG_LEVELS:
            raise ValueError(
                f"log_level must be one of {', '.join(LOG_LEVELS)}, got {self.log_level!r}"
            )


def _read(env: Mapping[str, str], key: str, cast: Callable[[str], T], default: T) -> T:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw.strip())
    except ValueError:
        raise ValueError(f"{key} must be a valid {cast.__name__}, got {raw!r}")

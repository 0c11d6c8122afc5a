"""
Client configuration for transloader.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional, Tuple

from .cache import strip_file_scheme
from .property_cache import MATCHING_MODES

# Source files can be large and entity stores slow; half an hour per call
DEFAULT_TIMEOUT = 1800.0


def _default_user_agent() -> str:
    from . import __version__

    return f"transloader/{__version__}"


@dataclass
class ClientConfig:
    """Settings shared by the HTTP client, caches and uploader."""

    cache_root: Path = field(default_factory=lambda: Path("datastore"))
    timeout: float = DEFAULT_TIMEOUT
    user_agent: str = field(default_factory=_default_user_agent)
    auth: Optional[Tuple[str, str]] = None
    matching: str = "contains"

    def __post_init__(self) -> None:
        self.cache_root = strip_file_scheme(self.cache_root)
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")
        if self.matching not in MATCHING_MODES:
            raise ValueError(
                f"matching must be one of {', '.join(MATCHING_MODES)}, got {self.matching!r}"
            )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ClientConfig":
        """Build a config from ``TRANSLOADER_*`` environment variables.

        Recognized variables:
            TRANSLOADER_CACHE: cache root directory or ``file://`` URL
            TRANSLOADER_TIMEOUT: request timeout in seconds
            TRANSLOADER_USER_AGENT: User-Agent header value
            TRANSLOADER_AUTH: HTTP Basic credentials as ``user:password``
            TRANSLOADER_MATCHING: ``contains`` or ``exact`` property matching
        """
        env = os.environ if environ is None else environ
        kwargs = {}

        if env.get("TRANSLOADER_CACHE"):
            kwargs["cache_root"] = strip_file_scheme(env["TRANSLOADER_CACHE"])

        if env.get("TRANSLOADER_TIMEOUT"):
            try:
                kwargs["timeout"] = float(env["TRANSLOADER_TIMEOUT"])
            except ValueError as e:
                raise ValueError(
                    f"TRANSLOADER_TIMEOUT must be a number, got {env['TRANSLOADER_TIMEOUT']!r}"
                ) from e

        if env.get("TRANSLOADER_USER_AGENT"):
            kwargs["user_agent"] = env["TRANSLOADER_USER_AGENT"]

        if env.get("TRANSLOADER_AUTH"):
            user, sep, password = env["TRANSLOADER_AUTH"].partition(":")
            if not sep:
                raise ValueError("TRANSLOADER_AUTH must be in 'user:password' format")
            kwargs["auth"] = (user, password)

        if env.get("TRANSLOADER_MATCHING"):
            kwargs["matching"] = env["TRANSLOADER_MATCHING"].lower()

        return cls(**kwargs)

"""Service configuration for fleetsync."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fleetsync._constants import DEFAULT_TAG_DATASET_ID, DEFAULT_TIME_ZONE
from fleetsync.exceptions import ConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_seconds_from_ms(env: Mapping[str, str], key: str, default: float) -> float:
    """Read a millisecond env var and return seconds, falling back on bad input."""
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip()) / 1000.0
    except ValueError:
        return default


def _env_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


@dataclasses.dataclass(frozen=True)
class DestinationConfig:
    """Sankhya ERP endpoints and credentials.

    Parameters
    ----------
    url : str
        Primary endpoint base URL (``/service.sbr`` is appended).
    username : str
        Sankhya user (``NOMUSU``).
    password : str
        Sankhya password (``INTERNO``).
    contingency_url : str or None
        Optional equivalent endpoint used after repeated network failures
        on the primary.
    tag_dataset_id : str
        ``dataSetID`` used when saving tag rows.
    retry_limit_before_swap : int
        Consecutive transient failures on the primary before switching to
        the contingency endpoint.
    """

    url: str
    username: str
    password: str
    contingency_url: str | None = None
    tag_dataset_id: str = DEFAULT_TAG_DATASET_ID
    retry_limit_before_swap: int = 2


@dataclasses.dataclass(frozen=True)
class AtualcargoConfig:
    """Atualcargo provider settings (vehicles and tags, token-based)."""

    url: str
    api_key: str
    username: str
    password: str
    token_ttl: float = 270.0
    interval: float = 300.0
    manufacturer_id: str = "2"


@dataclasses.dataclass(frozen=True)
class SitraxConfig:
    """Sitrax provider settings (tags only, credentials sent per request)."""

    url: str
    login: str
    cgru_chave: str = ""
    cusu_chave: str = ""
    interval: float = 300.0
    manufacturer_id: str = "3"


@dataclasses.dataclass(frozen=True)
class SyncConfig:
    """Top-level configuration.

    Parameters
    ----------
    destination : DestinationConfig
        ERP settings shared by every job.
    atualcargo : AtualcargoConfig or None
        Atualcargo job settings, ``None`` when the job is disabled.
    sitrax : SitraxConfig or None
        Sitrax job settings, ``None`` when the job is disabled.
    request_timeout : float
        Timeout in seconds applied to every outbound HTTP call.
    error_delay : float
        Seconds to wait after a failed cycle before the next one.
    wait_after_login : float
        Seconds to wait after a fresh provider login before fetching.
    time_zone : str
        IANA zone used to interpret naive provider and ERP timestamps.
    log_level : str
        Root logging level used by the command line entry point.
    """

    destination: DestinationConfig
    atualcargo: AtualcargoConfig | None = None
    sitrax: SitraxConfig | None = None
    request_timeout: float = 120.0
    error_delay: float = 60.0
    wait_after_login: float = 0.0
    time_zone: str = DEFAULT_TIME_ZONE
    log_level: str = "INFO"

    @property
    def tzinfo(self) -> ZoneInfo:
        try:
            return ZoneInfo(self.time_zone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ConfigError(f"Unknown time zone: {self.time_zone!r}") from exc

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None, **overrides: Any) -> SyncConfig:
        """Create configuration from environment variables.

        Reads the ``SANKHYA_*``, ``ATUALCARGO_*``, ``SITRAX_*`` and job timing
        variables. Durations are given in milliseconds in the environment and
        stored in seconds. Explicit keyword arguments override environment
        values.

        Raises
        ------
        ConfigError
            If the destination URL, user or password is missing.
        """
        env = os.environ if env is None else env

        missing = [key for key in ("SANKHYA_URL", "SANKHYA_USER", "SANKHYA_PASSWORD") if not env.get(key)]
        if missing and "destination" not in overrides:
            raise ConfigError(f"Missing required environment variables: {', '.join(missing)}")

        config_kwargs: dict[str, Any] = {}
        if "destination" not in overrides:
            config_kwargs["destination"] = DestinationConfig(
                url=env["SANKHYA_URL"].rstrip("/"),
                username=env["SANKHYA_USER"],
                password=env["SANKHYA_PASSWORD"],
                contingency_url=(env.get("SANKHYA_CONTINGENCY_URL") or "").rstrip("/") or None,
                tag_dataset_id=env.get("SANKHYA_ISCA_DATASET_ID") or DEFAULT_TAG_DATASET_ID,
                retry_limit_before_swap=_env_int(env, "SANKHYA_RETRY_LIMIT_BEFORE_SWAP", 2),
            )

        atualcargo_present = bool(env.get("ATUALCARGO_URL") and env.get("ATUALCARGO_API_KEY"))
        if _env_bool(env.get("ATUALCARGO_ENABLED"), atualcargo_present) and atualcargo_present:
            config_kwargs["atualcargo"] = AtualcargoConfig(
                url=env["ATUALCARGO_URL"].rstrip("/"),
                api_key=env["ATUALCARGO_API_KEY"],
                username=env.get("ATUALCARGO_USERNAME", ""),
                password=env.get("ATUALCARGO_PASSWORD", ""),
                token_ttl=_env_seconds_from_ms(env, "ATUALCARGO_TOKEN_EXPIRATION_MS", 270.0),
                interval=_env_seconds_from_ms(env, "JOB_INTERVAL_ATUALCARGO", 300.0),
                manufacturer_id=env.get("SANKHYA_ISCA_FABRICANTE_ID_ATUALCARGO") or "2",
            )

        sitrax_present = bool(env.get("SITRAX_URL") and env.get("SITRAX_LOGIN"))
        if _env_bool(env.get("SITRAX_ENABLED"), sitrax_present) and sitrax_present:
            config_kwargs["sitrax"] = SitraxConfig(
                url=env["SITRAX_URL"].rstrip("/"),
                login=env["SITRAX_LOGIN"],
                cgru_chave=env.get("SITRAX_CGRUCHAVE", ""),
                cusu_chave=env.get("SITRAX_CUSUCHAVE", ""),
                interval=_env_seconds_from_ms(env, "JOB_INTERVAL_SITRAX", 300.0),
                manufacturer_id=env.get("SANKHYA_ISCA_FABRICANTE_ID_SITRAX") or "3",
            )

        config_kwargs["request_timeout"] = _env_seconds_from_ms(env, "REQUEST_TIMEOUT_MS", 120.0)
        config_kwargs["error_delay"] = _env_seconds_from_ms(env, "JOB_RETRY_DELAY_MS", 60.0)
        config_kwargs["wait_after_login"] = _env_seconds_from_ms(env, "WAIT_AFTER_LOGIN_MS", 0.0)
        config_kwargs["time_zone"] = env.get("TIME_ZONE") or DEFAULT_TIME_ZONE
        config_kwargs["log_level"] = (env.get("LOG_LEVEL") or "INFO").upper()

        config_kwargs.update(overrides)

        return cls(**config_kwargs)

"""YAML configuration loading for calendar settings and credentials."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from .aggregator import DEFAULT_FETCH_TIMEOUT
from .models import (
    DASHBOARD_KINDS,
    CalendarSource,
    Credentials,
    LegacySettings,
    ModernSettings,
    SourceKind,
    UserCalendarSettings,
    settings_from_mapping,
    source_from_mapping,
)

logger = logging.getLogger("flohub-calendar")

CONFIG_PATH = os.environ.get("CALENDAR_CONFIG", "/config/calendar_settings.yaml")

GOOGLE_SCOPES = ["https://www.googleapis.com/auth/calendar"]
VALID_KINDS = {k.value for k in SourceKind} | set(DASHBOARD_KINDS) | {"o365"}
URL_SCHEMES = {
    SourceKind.WEBHOOK: ("http://", "https://"),
    SourceKind.ICAL: ("http://", "https://", "webcal://"),
}


@dataclass
class CredentialSettings:
    """Where to find the already-issued provider tokens."""

    google_token_file: str | None = None
    google_token_env: str = "GOOGLE_ACCESS_TOKEN"
    exchange_token_env: str = "EXCHANGE_ACCESS_TOKEN"
    exchange_mailbox: str | None = None
    exchange_server: str = "outlook.office365.com"


@dataclass
class EngineConfig:
    settings: UserCalendarSettings = field(default_factory=LegacySettings)
    timezone: str = "UTC"
    fetch_timeout: float = DEFAULT_FETCH_TIMEOUT
    include_placeholders: bool = False
    cache_ttl: float = 60.0
    credentials: CredentialSettings = field(default_factory=CredentialSettings)


def _parse_sources(entries: list[Any]) -> tuple[CalendarSource, ...]:
    sources: list[CalendarSource] = []
    seen_ids: set[str] = set()

    for entry in entries:
        if not isinstance(entry, dict):
            raise ValueError(f"Calendar source must be a mapping, got: {entry!r}")
        source_id = str(entry.get("id", "")).strip()
        if not source_id:
            raise ValueError("Calendar source missing 'id' field")
        if source_id in seen_ids:
            raise ValueError(f"Duplicate calendar source id: '{source_id}'")
        seen_ids.add(source_id)

        kind = str(entry.get("kind", entry.get("type", ""))).strip().lower()
        if kind not in VALID_KINDS:
            raise ValueError(
                f"Calendar source '{source_id}': unknown kind '{kind}'. Must be one of: {sorted(VALID_KINDS)}"
            )

        tags = entry.get("tags", [])
        if not isinstance(tags, list):
            raise ValueError(f"Calendar source '{source_id}': 'tags' must be a list")

        source = source_from_mapping(entry)

        schemes = URL_SCHEMES.get(source.kind)
        if schemes and not source.connection.startswith(schemes):
            raise ValueError(
                f"Calendar source '{source_id}' ({kind}): 'connection' must be a URL starting with one of {schemes}"
            )
        sources.append(source)

    return tuple(sources)


def _parse_credentials(raw: Any) -> CredentialSettings:
    if not raw:
        return CredentialSettings()
    if not isinstance(raw, dict):
        raise ValueError("'credentials' must be a mapping")
    known = CredentialSettings.__dataclass_fields__
    unknown = set(raw) - set(known)
    if unknown:
        raise ValueError(f"Unknown credentials keys: {sorted(unknown)}")
    creds = CredentialSettings(**raw)
    for env_var in (creds.google_token_env, creds.exchange_token_env):
        if env_var and not os.environ.get(env_var):
            logger.warning("Credential env var '%s' not set", env_var)
    return creds


def load_config() -> EngineConfig:
    """Load and validate the calendar settings YAML file."""
    path = CONFIG_PATH
    if not os.path.isfile(path):
        logger.warning("Config file not found: %s", path)
        return EngineConfig()

    with open(path, "r") as f:
        raw = yaml.safe_load(f)

    if not raw:
        logger.warning("Config file is empty: %s", path)
        return EngineConfig()
    if not isinstance(raw, dict):
        raise ValueError("Config file must contain a mapping")

    timezone = str(raw.get("timezone", "UTC"))
    try:
        ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Unknown timezone '{timezone}'") from None

    sources = raw.get("sources") or []
    if not isinstance(sources, list):
        raise ValueError("'sources' must be a list")
    if sources:
        settings: UserCalendarSettings = ModernSettings(_parse_sources(sources))
    else:
        settings = settings_from_mapping(raw)

    return EngineConfig(
        settings=settings,
        timezone=timezone,
        fetch_timeout=float(raw.get("fetch_timeout", DEFAULT_FETCH_TIMEOUT)),
        include_placeholders=bool(raw.get("include_placeholders", False)),
        cache_ttl=float(raw.get("cache_ttl", 60.0)),
        credentials=_parse_credentials(raw.get("credentials")),
    )


def _load_google_credentials(settings: CredentialSettings):
    from google.oauth2.credentials import Credentials as GoogleCredentials

    token = os.environ.get(settings.google_token_env, "") if settings.google_token_env else ""
    if token:
        return GoogleCredentials(token=token)

    token_file = settings.google_token_file
    if not token_file or not os.path.isfile(token_file):
        return None
    with open(token_file, "r") as f:
        token_data = json.load(f)
    try:
        creds = GoogleCredentials.from_authorized_user_info(token_data, GOOGLE_SCOPES)
    except ValueError as e:
        logger.warning("Google token file %s is not usable: %s", token_file, e)
        return None
    if not creds.valid:
        logger.warning("Google token in %s is expired", token_file)
    return creds


def load_credentials(config: EngineConfig) -> Credentials:
    """Collect the provider credentials named by the config."""
    settings = config.credentials
    exchange_token = os.environ.get(settings.exchange_token_env, "") if settings.exchange_token_env else ""
    return Credentials(
        google=_load_google_credentials(settings),
        exchange_token=exchange_token or None,
        exchange_mailbox=settings.exchange_mailbox,
        exchange_server=settings.exchange_server,
    )

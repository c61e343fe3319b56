"""
Configuration for catalog synchronization.

Settings can be loaded from a YAML file or from environment variables. The
sync core never sees connection details: this module turns them into a
ready-to-use catalog client once, and hands that client to the coordinator.

Example settings file (catalogsync.yml):
    host: https://adb-1234567890.azuredatabricks.net
    token: dapi...
    verify_ssl: true
    polling_interval_seconds: 300
    table_pattern: "*"
    max_workers: 8
    emit:
      max_retries: 3
      backoff_seconds: 1.0
      timeout_seconds: 30
    snapshot_path: ./snapshots
    scopes:
      - catalog: main
        database: sales
      - catalog: main
        database: finance
"""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from databricks.sdk import WorkspaceClient
from databricks.sdk.config import Config
from pydantic import BaseModel, Field, ValidationError, field_validator

from catalogsync.client import CatalogClient, UnityCatalogClient
from catalogsync.coordinator import SyncCoordinator
from catalogsync.emitter import BatchEmitter
from catalogsync.errors import ConfigurationError
from catalogsync.models import Scope
from catalogsync.sink import NotificationSink
from catalogsync.store import InMemorySnapshotStore, JsonFileSnapshotStore, SnapshotStore

logger = logging.getLogger(__name__)

ENV_PREFIX = "CATALOGSYNC_"


class EmitSettings(BaseModel):
    """Retry and timeout policy for the batch emitter."""

    max_retries: int = Field(3, ge=1, description="Delivery attempts per batch")
    backoff_seconds: float = Field(1.0, ge=0, description="Base backoff between attempts")
    timeout_seconds: Optional[float] = Field(30.0, gt=0, description="Bound on one sink call")


class SyncSettings(BaseModel):
    """
    Settings for a catalog sync deployment.

    Attributes:
        host: Workspace / metadata service endpoint address
        token: Personal access token
        username: Basic-auth user, used when no token is given
        password: Basic-auth password
        verify_ssl: Verify the endpoint's TLS certificate
        scopes: Catalog + database pairs to synchronize
        table_pattern: Glob pattern for table listing
        polling_interval_seconds: Wait between poll passes
        max_workers: Concurrent table fetches per cycle
        max_parallel_scopes: Scopes synchronized at once
        emit: Emitter retry policy
        snapshot_path: Directory for JSON snapshots; in-memory when unset
    """

    host: Optional[str] = None
    token: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    verify_ssl: bool = True
    scopes: List[Scope] = Field(default_factory=list)
    table_pattern: str = "*"
    polling_interval_seconds: float = Field(300.0, gt=0)
    max_workers: int = Field(8, ge=1)
    max_parallel_scopes: int = Field(4, ge=1)
    emit: EmitSettings = Field(default_factory=EmitSettings)
    snapshot_path: Optional[Path] = None

    @field_validator("host")
    @classmethod
    def strip_host(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip().rstrip("/")
        return v or None

    def validate_for_connection(self) -> None:
        """
        Check the settings needed to reach the external catalog.

        Raises:
            ConfigurationError: If the endpoint or credentials are missing
        """
        if not self.host:
            raise ConfigurationError("Endpoint address (host) is not configured")
        if not self.token and not (self.username and self.password):
            raise ConfigurationError("Either a token or a username and password must be configured")


def load_settings(path: Union[str, Path]) -> SyncSettings:
    """
    Load settings from a YAML file.

    Args:
        path: Path to the settings file

    Returns:
        Validated SyncSettings

    Raises:
        ConfigurationError: If the file is missing, unreadable or invalid
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"Settings file not found: {path}")

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in settings file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Settings file {path} must contain a mapping")

    return _validate(data, source=str(path))


def settings_from_env(environ: Optional[Dict[str, str]] = None) -> SyncSettings:
    """
    Build settings from CATALOGSYNC_* environment variables.

    Scopes are given as a comma-separated list of catalog.database pairs in
    CATALOGSYNC_SCOPES.
    """
    env = os.environ if environ is None else environ
    data: Dict[str, Any] = {}

    for key in ("host", "token", "username", "password", "table_pattern",
                "polling_interval_seconds", "max_workers", "max_parallel_scopes", "snapshot_path"):
        value = env.get(f"{ENV_PREFIX}{key.upper()}")
        if value:
            data[key] = value

    verify = env.get(f"{ENV_PREFIX}VERIFY_SSL")
    if verify:
        data["verify_ssl"] = verify.strip().lower() not in ("0", "false", "no")

    scopes = env.get(f"{ENV_PREFIX}SCOPES")
    if scopes:
        data["scopes"] = [_parse_scope(s) for s in scopes.split(",") if s.strip()]

    return _validate(data, source="environment")


def build_workspace_client(settings: SyncSettings) -> WorkspaceClient:
    """Create the Databricks SDK client once for the whole process."""
    settings.validate_for_connection()
    kwargs: Dict[str, Any] = {"host": settings.host, "skip_verify": not settings.verify_ssl}
    if settings.token:
        kwargs["token"] = settings.token
    else:
        kwargs["username"] = settings.username
        kwargs["password"] = settings.password

    try:
        return WorkspaceClient(config=Config(**kwargs))
    except ValueError as e:
        raise ConfigurationError(f"Cannot configure workspace client for {settings.host}: {e}") from e


def build_store(settings: SyncSettings) -> SnapshotStore:
    if settings.snapshot_path is not None:
        return JsonFileSnapshotStore(settings.snapshot_path)
    return InMemorySnapshotStore()


def build_coordinator(
    settings: SyncSettings,
    sink: NotificationSink,
    client: Optional[CatalogClient] = None,
    store: Optional[SnapshotStore] = None,
) -> SyncCoordinator:
    """
    Wire a SyncCoordinator from settings.

    Args:
        settings: Validated settings
        sink: Notification sink receiving change batches
        client: Catalog client; a Unity Catalog client is built from settings when omitted
        store: Snapshot store; chosen from settings when omitted

    Raises:
        ConfigurationError: If a client must be built and the settings are incomplete
    """
    if client is None:
        client = UnityCatalogClient(build_workspace_client(settings))

    emitter = BatchEmitter(
        sink,
        max_retries=settings.emit.max_retries,
        backoff_seconds=settings.emit.backoff_seconds,
        timeout_seconds=settings.emit.timeout_seconds,
    )
    return SyncCoordinator(
        client=client,
        store=store or build_store(settings),
        emitter=emitter,
        table_pattern=settings.table_pattern,
        max_workers=settings.max_workers,
        max_parallel_scopes=settings.max_parallel_scopes,
    )


def run_polling(
    settings: SyncSettings,
    sink: NotificationSink,
    stop_event: threading.Event,
    client: Optional[CatalogClient] = None,
    store: Optional[SnapshotStore] = None,
    max_passes: Optional[int] = None,
) -> int:
    """
    Poll every configured scope at the configured interval until stop_event is set.

    Args:
        settings: Validated settings; scopes and polling_interval_seconds drive the loop
        sink: Notification sink receiving change batches
        stop_event: Stops polling and cancels in-progress cycles
        client: Optional catalog client, as for build_coordinator
        store: Optional snapshot store, as for build_coordinator
        max_passes: Optional bound on the number of passes

    Returns:
        Number of passes run

    Raises:
        ConfigurationError: If no scopes are configured or a client cannot be built
    """
    if not settings.scopes:
        raise ConfigurationError("No scopes configured for polling")

    coordinator = build_coordinator(settings, sink, client=client, store=store)
    return coordinator.poll(
        settings.scopes,
        settings.polling_interval_seconds,
        stop_event,
        max_passes=max_passes,
    )


def _parse_scope(value: str) -> Dict[str, str]:
    parts = value.strip().split(".")
    if len(parts) != 2 or not all(parts):
        raise ConfigurationError(f"Scope must be in the form `catalog.database`, got '{value}'")
    return {"catalog": parts[0], "database": parts[1]}


def _validate(data: Dict[str, Any], source: str) -> SyncSettings:
    try:
        settings = SyncSettings.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid settings from {source}: {e}") from e
    logger.debug(f"Loaded settings from {source} with {len(settings.scopes)} scope(s)")
    return settings

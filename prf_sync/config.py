"""Configuration loader and validator for PRF cloud sync.

Values come from a YAML file, and environment variables override them:

    AZURE_TENANT_ID, AZURE_CLIENT_ID, AZURE_CLIENT_SECRET,
    GRAPH_TOKEN_CACHE_PATH, ONEDRIVE_SHARED_EXCEL_LINK, ONEDRIVE_FILE_NAME,
    ONEDRIVE_WORKSHEET_NAME, ONEDRIVE_WORKSHEET_PREFIX, DATABASE_URL
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

import yaml

from .errors import ConfigurationError

DEFAULT_WORKSHEET = "PRF Detail"
DEFAULT_TOKEN_CACHE = "./secrets/token_cache.json"
DEFAULT_DATABASE_URL = "sqlite:///./data/prf.db"


@dataclass
class GraphConfig:
    tenant_id: str = ""
    client_id: str = ""
    client_secret: Optional[str] = None
    token_cache_path: str = DEFAULT_TOKEN_CACHE
    authority_host: str = "https://login.microsoftonline.com"
    graph_base: str = "https://graph.microsoft.com/v1.0"

    @property
    def app_only_configured(self) -> bool:
        return bool(self.client_secret)

    @property
    def authority(self) -> str:
        return f"{self.authority_host.rstrip('/')}/{self.tenant_id}"


@dataclass
class WorkbookConfig:
    share_link: Optional[str] = None
    file_name: Optional[str] = None
    worksheet_name: str = DEFAULT_WORKSHEET
    worksheet_prefix: Optional[str] = None

    @property
    def sheet_token(self) -> str:
        """Substring used to pick candidate sheets in scan mode."""
        return (self.worksheet_prefix or self.worksheet_name or DEFAULT_WORKSHEET).strip()


@dataclass
class DatabaseConfig:
    url: str = DEFAULT_DATABASE_URL


@dataclass
class Config:
    graph: GraphConfig = field(default_factory=GraphConfig)
    workbook: WorkbookConfig = field(default_factory=WorkbookConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    log_dir: str = "./logs"
    config_path: str = ""

    @staticmethod
    def load(config_path: str, env: Optional[Mapping[str, str]] = None) -> "Config":
        """Load config from YAML file, apply env overrides, and validate."""
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(path, "r", encoding="utf-8") as f:
            try:
                raw = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Config file is not valid YAML: {config_path}: {e}")

        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            raise ConfigurationError(f"Config file is empty or invalid: {config_path}")

        for section in ["graph", "workbook", "database"]:
            if raw.get(section) is not None and not isinstance(raw[section], dict):
                raise ConfigurationError(f"Config section '{section}' must be a mapping.")

        cfg = Config._from_raw(raw)
        cfg.config_path = str(path.resolve())
        cfg.apply_env(os.environ if env is None else env)
        cfg.validate()
        return cfg

    @staticmethod
    def from_env(env: Optional[Mapping[str, str]] = None) -> "Config":
        """Build config purely from environment variables."""
        cfg = Config()
        cfg.apply_env(os.environ if env is None else env)
        cfg.validate()
        return cfg

    @staticmethod
    def _from_raw(raw: dict) -> "Config":
        graph_raw = raw.get("graph") or {}
        workbook_raw = raw.get("workbook") or {}
        database_raw = raw.get("database") or {}

        graph = GraphConfig(
            tenant_id=str(graph_raw.get("tenant_id", "") or ""),
            client_id=str(graph_raw.get("client_id", "") or ""),
            client_secret=graph_raw.get("client_secret") or None,
            token_cache_path=graph_raw.get("token_cache_path", DEFAULT_TOKEN_CACHE),
            authority_host=graph_raw.get("authority_host", "https://login.microsoftonline.com"),
            graph_base=graph_raw.get("graph_base", "https://graph.microsoft.com/v1.0"),
        )
        workbook = WorkbookConfig(
            share_link=workbook_raw.get("share_link") or None,
            file_name=workbook_raw.get("file_name") or None,
            worksheet_name=workbook_raw.get("worksheet_name") or DEFAULT_WORKSHEET,
            worksheet_prefix=workbook_raw.get("worksheet_prefix") or None,
        )
        database = DatabaseConfig(url=database_raw.get("url", DEFAULT_DATABASE_URL))
        return Config(
            graph=graph,
            workbook=workbook,
            database=database,
            log_dir=raw.get("log_dir", "./logs"),
        )

    def apply_env(self, env: Mapping[str, str]):
        """Override fields from environment variables that are set and non-empty."""
        def _get(name):
            value = env.get(name)
            if value is None or not str(value).strip():
                return None
            return str(value).strip()

        overrides = [
            ("AZURE_TENANT_ID", self.graph, "tenant_id"),
            ("AZURE_CLIENT_ID", self.graph, "client_id"),
            ("AZURE_CLIENT_SECRET", self.graph, "client_secret"),
            ("GRAPH_TOKEN_CACHE_PATH", self.graph, "token_cache_path"),
            ("ONEDRIVE_SHARED_EXCEL_LINK", self.workbook, "share_link"),
            ("ONEDRIVE_FILE_NAME", self.workbook, "file_name"),
            ("ONEDRIVE_WORKSHEET_NAME", self.workbook, "worksheet_name"),
            ("ONEDRIVE_WORKSHEET_PREFIX", self.workbook, "worksheet_prefix"),
            ("DATABASE_URL", self.database, "url"),
        ]
        for env_var, section, attr in overrides:
            value = _get(env_var)
            if value is not None:
                setattr(section, attr, value)

    def validate(self):
        """Raise ConfigurationError when a required setting is missing."""
        if not self.graph.tenant_id or not self.graph.client_id:
            raise ConfigurationError(
                "Azure credentials not configured. Set AZURE_TENANT_ID and AZURE_CLIENT_ID "
                "(and AZURE_CLIENT_SECRET for application-only access)."
            )
        if not self.workbook.share_link and not self.workbook.file_name:
            raise ConfigurationError(
                "No workbook configured. Set ONEDRIVE_SHARED_EXCEL_LINK "
                "or ONEDRIVE_FILE_NAME."
            )

    def ensure_dirs(self):
        """Create the token-cache and log directories if they don't exist."""
        for d in [os.path.dirname(self.graph.token_cache_path), self.log_dir]:
            if d:
                os.makedirs(d, exist_ok=True)

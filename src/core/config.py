"""
Configuration
=============
Typed settings and resources, loaded from YAML and validated with pydantic.

  settings.yaml  : run timeout, baseline threshold, output and logging options
  resources.yaml : the ordered list of APIs and their endpoint contracts

File locations default to config/settings.yaml and config/resources.yaml at
the project root and can be overridden with SETTINGS_PATH / RESOURCES_PATH.
"""

import os
import re
import logging
from typing import Any, Dict, List, Literal, Optional
from urllib.parse import urlparse

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

logger = logging.getLogger("baseline_monitor")

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))

HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]

METHODS_REQUIRING_BODY = ("POST", "PUT", "PATCH")

_HOSTNAME_RE = re.compile(r"^([a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?$")
_IPV4_RE = re.compile(r"^(\d{1,3}\.){3}\d{1,3}$")


class ConfigError(Exception):
    """Raised when a settings or resources file cannot be loaded or is invalid."""

    def __init__(self, path: str, problems: List[str]):
        self.path = path
        self.problems = problems
        super().__init__(f"Invalid configuration in {path}:\n  - " + "\n  - ".join(problems))


# ── Settings ───────────────────────────────────────────────────────────────────

class BaselineSettings(BaseModel):
    required_successful_probes: int = Field(default=5, gt=0)


class RunSettings(BaseModel):
    mode: Literal["manual", "scheduled"] = "manual"
    interval_minutes: int = Field(default=60, gt=0)
    timeout_seconds: float = Field(default=5, gt=0)


class OutputSettings(BaseModel):
    format: Literal["console", "json"] = "console"
    save_results: bool = True
    results_path: str = "./baseline_results/"


class LoggingSettings(BaseModel):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"


class SettingsBlock(BaseModel):
    baseline: BaselineSettings = Field(default_factory=BaselineSettings)
    run: RunSettings = Field(default_factory=RunSettings)
    output: OutputSettings = Field(default_factory=OutputSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


class SettingsConfig(BaseModel):
    version: str = "1"
    name: str = "baseline-monitor"
    settings: SettingsBlock = Field(default_factory=SettingsBlock)


# ── Resources ──────────────────────────────────────────────────────────────────

class RequestFixture(BaseModel):
    query: Optional[Dict[str, Any]] = None
    body: Optional[Dict[str, Any]] = None
    body_params: Optional[List[Any]] = None


class EndpointRequest(BaseModel):
    fixture: RequestFixture = Field(default_factory=RequestFixture)


class EndpointConfig(BaseModel):
    path: str
    method: HttpMethod
    expected_status: int = Field(ge=100, le=599)
    expected_fields: List[str] = Field(default_factory=list)
    request: Optional[EndpointRequest] = None
    stash: Optional[Dict[str, str]] = None

    @field_validator("path")
    @classmethod
    def _path_starts_with_slash(cls, value: str) -> str:
        if not value:
            raise ValueError("Endpoint path cannot be empty")
        if not value.startswith("/"):
            raise ValueError("Endpoint path must start with '/'")
        return value

    @field_validator("expected_fields")
    @classmethod
    def _fields_not_empty(cls, value: List[str]) -> List[str]:
        if any(not field for field in value):
            raise ValueError("Expected field names cannot be empty")
        return value

    @model_validator(mode="after")
    def _body_for_write_methods(self):
        if self.method in METHODS_REQUIRING_BODY and self.fixture_body is None:
            raise ValueError(f"HTTP method {self.method} requires a synthetic request body fixture")
        return self

    @property
    def fixture_query(self) -> Optional[Dict[str, Any]]:
        return self.request.fixture.query if self.request else None

    @property
    def fixture_body(self) -> Optional[Dict[str, Any]]:
        return self.request.fixture.body if self.request else None

    @property
    def key(self):
        return (self.method, self.path)

    def body_fixture_params(self) -> List[str]:
        """Keys of the request body fixture, as stored on the endpoint row."""
        fixture = self.request.fixture if self.request else None
        if fixture is None:
            return []
        if fixture.body_params:
            params: List[str] = []
            for param in fixture.body_params:
                if isinstance(param, dict):
                    params.extend(param.keys())
            return params
        if fixture.body:
            return list(fixture.body.keys())
        return []


class ApiConfig(BaseModel):
    name: str = Field(min_length=1)
    base_url: str
    disabled: bool = False
    endpoints: List[EndpointConfig] = Field(min_length=1)

    @field_validator("base_url")
    @classmethod
    def _valid_base_url(cls, value: str) -> str:
        parsed = urlparse(value)
        hostname = (parsed.hostname or "").lower()
        if parsed.scheme not in ("http", "https") or not hostname:
            raise ValueError("Base URL must use HTTP or HTTPS protocol and have a valid hostname")
        if hostname not in ("localhost", "127.0.0.1", "0.0.0.0") \
                and not _IPV4_RE.match(hostname) and not _HOSTNAME_RE.match(hostname):
            raise ValueError("Base URL must have a valid hostname (localhost, domain, or IP)")
        return value.rstrip("/")


class ResourcesConfig(BaseModel):
    version: str = "1"
    apis: List[ApiConfig] = Field(min_length=1)

    @field_validator("apis")
    @classmethod
    def _unique_api_names(cls, apis: List[ApiConfig]) -> List[ApiConfig]:
        seen = set()
        for api in apis:
            if api.name in seen:
                raise ValueError(f"Duplicate API name found: {api.name}")
            seen.add(api.name)
        return apis


# ── Loading ────────────────────────────────────────────────────────────────────

def _read_yaml(path: str) -> Any:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigError(path, ["file not found"])
    except yaml.YAMLError as e:
        raise ConfigError(path, [f"YAML parse error: {e}"])


def _validate(model, data: Any, path: str):
    try:
        return model.model_validate(data or {})
    except ValidationError as e:
        problems = [
            f"{'.'.join(str(part) for part in err['loc']) or '<root>'}: {err['msg']}"
            for err in e.errors()
        ]
        raise ConfigError(path, problems) from e


def load_settings(path: Optional[str] = None) -> SettingsConfig:
    path = path or os.environ.get("SETTINGS_PATH") or os.path.join(PROJECT_ROOT, "config", "settings.yaml")
    settings = _validate(SettingsConfig, _read_yaml(path), path)
    logger.debug(f"⚙️  Settings loaded from {path}")
    return settings


def load_resources(path: Optional[str] = None) -> ResourcesConfig:
    path = path or os.environ.get("RESOURCES_PATH") or os.path.join(PROJECT_ROOT, "config", "resources.yaml")
    resources = _validate(ResourcesConfig, _read_yaml(path), path)
    logger.debug(f"📚 Resources loaded from {path}: {len(resources.apis)} API(s)")
    return resources

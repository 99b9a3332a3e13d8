"""Settings for a batch scanning run."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .errors import ConfigError
from .provision import FetchSpec
from .utils import read_yaml_file

TRIVY_VERSION = "0.50.1"
TRIVY_RELEASE_URL = "https://github.com/aquasecurity/trivy/releases/download/v{version}/trivy_{version}_{asset}"


def default_trivy_url(version: str = TRIVY_VERSION) -> str:
    asset = "windows-64bit.zip" if os.name == "nt" else "Linux-64bit.tar.gz"
    return TRIVY_RELEASE_URL.format(version=version, asset=asset)


def default_executable() -> str:
    return "trivy.exe" if os.name == "nt" else "trivy"


#: Environment variables overriding individual settings
ENV_OVERRIDES = {
    "IMAGESCAN_PROPERTIES": "properties_file",
    "IMAGESCAN_REPORT_DIR": "report_dir",
    "IMAGESCAN_MAX_ATTEMPTS": "max_attempts",
    "IMAGESCAN_INTERVAL": "interval",
    "IMAGESCAN_TRIVY_URL": "trivy_url",
    "IMAGESCAN_TOOLS_DIR": "tools_dir",
}

CREDENTIAL_SETTINGS = frozenset({"registry_server", "registry_username", "registry_password"})


@dataclass(frozen=True)
class Settings:
    """Everything a run needs, resolved from defaults, file, env and flags."""

    properties_file: Path = Path("images.properties")
    report_dir: Path = Path("reports")
    report_extension: str = ".html"
    report_template: Optional[str] = None
    max_attempts: int = 30
    interval: float = 10.0
    trivy_url: str = ""
    tools_dir: Path = Path(".tools/trivy")
    executable: str = ""
    command_timeout: Optional[float] = None
    fail_on_error: bool = False
    registry_server: Optional[str] = None
    registry_username: Optional[str] = None
    registry_password: Optional[str] = None

    @property
    def fetch_spec(self) -> FetchSpec:
        return FetchSpec(
            url=self.trivy_url or default_trivy_url(),
            install_dir=self.tools_dir,
            executable=self.executable or default_executable(),
        )

    @property
    def has_credentials(self) -> bool:
        return bool(self.registry_username and self.registry_password)


def _coerce(name: str, value: Any) -> Any:
    if value is None:
        return None
    try:
        if name in {"properties_file", "report_dir", "tools_dir"}:
            return Path(value)
        if name == "max_attempts":
            return int(value)
        if name in {"interval", "command_timeout"}:
            return float(value)
        if name == "fail_on_error":
            if isinstance(value, str):
                return value.strip().lower() in {"1", "true", "yes", "on"}
            return bool(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid value for {name}: {value!r}") from exc
    return str(value)


def _apply(settings: Settings, values: Mapping[str, Any], source: str) -> Settings:
    known = {field.name for field in fields(Settings)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ConfigError(f"Unknown settings in {source}: {', '.join(unknown)}")
    changes = {name: _coerce(name, value) for name, value in values.items() if value is not None}
    return replace(settings, **changes)


def load_config_file(path: Path) -> Dict[str, Any]:
    """Read a YAML config file into a mapping; a missing file is an error."""

    data = read_yaml_file(path)
    if data is None:
        if not path.exists():
            raise ConfigError(f"Config file {path} does not exist")
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config at {path} is not a mapping")
    secrets = sorted(CREDENTIAL_SETTINGS & set(data))
    if secrets:
        raise ConfigError(f"Credentials must come from the environment, not {path}: {', '.join(secrets)}")
    return data


def env_values(environ: Mapping[str, str]) -> Dict[str, Any]:
    values: Dict[str, Any] = {
        setting: environ[var] for var, setting in ENV_OVERRIDES.items() if environ.get(var)
    }
    # Credentials are only ever taken from the environment
    values["registry_server"] = environ.get("REGISTRY_SERVER") or None
    values["registry_username"] = environ.get("REGISTRY_USERNAME") or None
    values["registry_password"] = environ.get("REGISTRY_PASSWORD") or None
    return values


def load_settings(
    config_file: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> Settings:
    """Build settings from defaults, an optional YAML file, env vars and overrides."""

    settings = Settings()
    if config_file is not None:
        settings = _apply(settings, load_config_file(Path(config_file)), str(config_file))
    settings = _apply(settings, env_values(os.environ if environ is None else environ), "environment")
    if overrides:
        settings = _apply(settings, overrides, "command line")
    return settings

"""Deployment parameters and result dataclasses."""

import ntpath
import os
import threading
from collections.abc import Callable
from dataclasses import dataclass, field, fields

import yaml

from iisdeploy.iis.reconcile import WEBSITE_NAME
from iisdeploy.iis.types import RuntimeArchitecture, ServerType

DEFAULT_BASE_URI_HINT = "http://localhost:5001/"


def default_site_root():
    """Website root folder: %SystemDrive%\\inetpub\\TestWebSite."""
    system_drive = os.environ.get("SystemDrive", "C:")
    return ntpath.join(system_drive + "\\", "inetpub", WEBSITE_NAME)


@dataclass(frozen=True)
class DeploymentParameters:
    """Caller-owned deployment intent. Never mutated by the deployer."""

    application_path: str
    application_base_uri_hint: str = DEFAULT_BASE_URI_HINT
    server_type: ServerType = ServerType.IIS
    runtime_architecture: RuntimeArchitecture = RuntimeArchitecture.x64
    environment_name: str = "Development"
    runtime: str = ""  # runtime name handed to the publish step
    site_root: str = field(default_factory=default_site_root)
    preserve_published_output: bool = False
    user_additional_cleanup: Callable[[], None] | None = None

    def to_dict(self) -> dict:
        """Serializable view (drops the cleanup hook)."""
        return {
            "application_path": self.application_path,
            "application_base_uri_hint": self.application_base_uri_hint,
            "server_type": self.server_type.value,
            "runtime_architecture": self.runtime_architecture.value,
            "environment_name": self.environment_name,
            "runtime": self.runtime,
            "site_root": self.site_root,
            "preserve_published_output": self.preserve_published_output,
        }


@dataclass(frozen=True)
class DeploymentResult:
    """Outcome of a successful deploy."""

    application_base_uri: str
    web_root_location: str
    deployment_parameters: DeploymentParameters
    host_shutdown_token: threading.Event


def _parse_enum(enum_cls, value, key):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        available = ", ".join(m.value for m in enum_cls)
        raise ValueError(f"Unknown {key} '{value}'. Available values: {available}") from None


def parameters_from_dict(data) -> DeploymentParameters:
    """Build DeploymentParameters from a plain dict, validating keys and enums."""
    known = {f.name for f in fields(DeploymentParameters)} - {"user_additional_cleanup"}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown deployment parameter(s): {', '.join(unknown)}")
    if not data.get("application_path"):
        raise ValueError("Deployment parameter 'application_path' is required")

    values = {k: v for k, v in data.items() if v is not None}
    if "server_type" in values:
        values["server_type"] = _parse_enum(ServerType, values["server_type"], "server_type")
    if "runtime_architecture" in values:
        values["runtime_architecture"] = _parse_enum(
            RuntimeArchitecture, values["runtime_architecture"], "runtime_architecture"
        )
    return DeploymentParameters(**values)


def load_parameters(path=None, **overrides) -> DeploymentParameters:
    """Load deployment.yaml (if given) and apply non-None overrides on top."""
    data = {}
    if path is not None:
        if not os.path.isfile(path):
            raise FileNotFoundError(f"Deployment config not found: {path}")
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Deployment config {path} must be a mapping")

    for key, value in overrides.items():
        if value is not None:
            data[key] = value
    return parameters_from_dict(data)

"""Deploy library: parameters, config patching, publish, orchestration."""

from iisdeploy.deploy.config_patch import (
    add_run_all_managed_modules,
    load_server_config,
    patch_server_config,
    write_environment_settings,
)
from iisdeploy.deploy.health import wait_for_ready
from iisdeploy.deploy.orchestrate import IISDeployer
from iisdeploy.deploy.params import (
    DeploymentParameters,
    DeploymentResult,
    RuntimeArchitecture,
    ServerType,
    load_parameters,
)
from iisdeploy.deploy.publish import clean_published_output, dnu_publish

__all__ = [
    "DeploymentParameters",
    "DeploymentResult",
    "RuntimeArchitecture",
    "ServerType",
    "load_parameters",
    "add_run_all_managed_modules",
    "load_server_config",
    "patch_server_config",
    "write_environment_settings",
    "dnu_publish",
    "clean_published_output",
    "wait_for_ready",
    "IISDeployer",
]

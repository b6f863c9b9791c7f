"""IIS management: appcmd transport, session and reconciler."""

from iisdeploy.iis.appcmd import make_run_cmd, parse_appcmd_xml
from iisdeploy.iis.reconcile import IISApplication
from iisdeploy.iis.server_manager import ServerManager
from iisdeploy.iis.types import (
    Application,
    ApplicationPool,
    RuntimeArchitecture,
    ServerType,
    Site,
)

__all__ = [
    "Application",
    "ApplicationPool",
    "RuntimeArchitecture",
    "ServerType",
    "Site",
    "make_run_cmd",
    "parse_appcmd_xml",
    "ServerManager",
    "IISApplication",
]

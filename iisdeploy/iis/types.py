"""IIS object types as seen through appcmd."""

from dataclasses import dataclass
from enum import Enum


class ServerType(str, Enum):
    """IIS hosting mode."""

    IIS = "iis"
    IIS_NATIVE_MODULE = "iis-native-module"


class RuntimeArchitecture(str, Enum):
    """Process architecture of the application pool."""

    x86 = "x86"
    x64 = "x64"


@dataclass(eq=False)
class Site:
    """A named hosting container. Identity is stable within a ServerManager session."""

    name: str
    physical_path: str = ""
    port: int | None = None


@dataclass(eq=False)
class ApplicationPool:
    """An isolated worker process configuration."""

    name: str
    managed_runtime_version: str | None = None  # None = IIS default
    enable_32bit_app_on_win64: bool = False
    state: str = ""


@dataclass(eq=False)
class Application:
    """A virtual application path bound to a physical directory and one pool."""

    site_name: str
    path: str
    physical_path: str = ""
    application_pool_name: str | None = None

    @property
    def app_name(self) -> str:
        """appcmd identifier, e.g. TestWebSite/testapp."""
        return f"{self.site_name}{self.path}"

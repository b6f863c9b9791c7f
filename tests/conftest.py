"""Shared pytest fixtures for all test modules."""

import os
import subprocess
import sys
import xml.etree.ElementTree as ET

import pytest

from iisdeploy.deploy.params import DeploymentParameters

PROJECT_ROOT = os.path.normpath(os.path.join(os.path.dirname(__file__), ".."))

WEB_CONFIG = """<?xml version="1.0" encoding="utf-8"?>
<configuration>
  <!-- generated by dnu publish -->
  <appSettings>
    <add key="bootstrapper-version" value="1.0.0-beta4" />
  </appSettings>
</configuration>
"""


class FakeAppCmd:
    """In-memory stand-in for appcmd.exe, usable as a run_cmd callable.

    Keeps sites, pools and apps the way IIS would and answers /xml list
    queries in appcmd's output format. Every command is recorded in
    ``commands``; ``fail`` maps a verb like "stop apppool" to
    (returncode, stderr) to inject failures.
    """

    def __init__(self):
        self.sites = {}
        self.pools = {}
        self.apps = {}
        self.commands = []
        self.fail = {}

    # helpers for tests
    def add_site(self, name, port, physical_path=r"C:\inetpub\TestWebSite"):
        self.sites[name] = {"port": port, "physicalPath": physical_path}

    def add_pool(self, name, runtime="v4.0", state="Started"):
        self.pools[name] = {"runtime": runtime, "enable32": "false", "state": state}

    def add_app(self, site, path, pool, physical_path=""):
        self.apps[f"{site}{path}"] = {"site": site, "path": path, "pool": pool, "physicalPath": physical_path}

    def mutations(self):
        return [c for c in self.commands if c[1] in ("add", "delete", "stop")]

    # run_cmd protocol
    def __call__(self, command):
        self.commands.append(list(command))
        verb = " ".join(command[1:3])
        if verb in self.fail:
            rc, stderr = self.fail[verb]
            return rc, "", stderr

        opts = {}
        for arg in command[3:]:
            if arg.startswith("/") and ":" in arg:
                key, _, value = arg[1:].partition(":")
                opts[key] = value

        handler = getattr(self, "_" + verb.replace(" ", "_"), None)
        if handler is None:
            return 1, "", f"ERROR ( message:Unknown command {verb} )"
        return handler(opts)

    @staticmethod
    def _xml(tag, rows):
        root = ET.Element("appcmd")
        for attrs in rows:
            ET.SubElement(root, tag, attrs)
        return 0, ET.tostring(root, encoding="unicode"), ""

    @staticmethod
    def _duplicate(name):
        return 183, "", f'ERROR ( message:Failed to add duplicate collection element "{name}". )'

    @staticmethod
    def _missing(kind, name):
        return 1, "", f'ERROR ( message:Cannot find {kind} object with identifier "{name}". )'

    def _list_site(self, opts):
        rows = [
            {"SITE.NAME": name, "bindings": f"http/*:{s['port']}:", "state": "Started"}
            for name, s in self.sites.items()
        ]
        return self._xml("SITE", rows)

    def _add_site(self, opts):
        name = opts["name"]
        if name in self.sites:
            return self._duplicate(name)
        port = int(opts["bindings"].split(":")[1])
        self.add_site(name, port, opts.get("physicalPath", ""))
        return 0, f'SITE object "{name}" added', ""

    def _list_apppool(self, opts):
        rows = [
            {"APPPOOL.NAME": name, "RuntimeVersion": p["runtime"], "state": p["state"]}
            for name, p in self.pools.items()
        ]
        return self._xml("APPPOOL", rows)

    def _add_apppool(self, opts):
        name = opts["name"]
        if name in self.pools:
            return self._duplicate(name)
        self.pools[name] = {
            "runtime": opts.get("managedRuntimeVersion", "v4.0"),
            "enable32": opts.get("enable32BitAppOnWin64", "false"),
            "state": "Started",
        }
        return 0, f'APPPOOL object "{name}" added', ""

    def _stop_apppool(self, opts):
        name = opts["apppool.name"]
        if name not in self.pools:
            return self._missing("APPPOOL", name)
        if self.pools[name]["state"] == "Stopped":
            return 1, "", "ERROR ( message:The object has already been stopped. )"
        self.pools[name]["state"] = "Stopped"
        return 0, f'"{name}" successfully stopped', ""

    def _delete_apppool(self, opts):
        name = opts["apppool.name"]
        if name not in self.pools:
            return self._missing("APPPOOL", name)
        del self.pools[name]
        return 0, f'APPPOOL object "{name}" deleted', ""

    def _list_app(self, opts):
        rows = [
            {"APP.NAME": key, "APPPOOL.NAME": a["pool"], "SITE.NAME": a["site"], "path": a["path"]}
            for key, a in self.apps.items()
            if a["site"] == opts.get("site.name", a["site"])
        ]
        return self._xml("APP", rows)

    def _add_app(self, opts):
        site = opts["site.name"]
        if site not in self.sites:
            return self._missing("SITE", site)
        key = f"{site}{opts['path']}"
        if key in self.apps:
            return self._duplicate(key)
        self.add_app(site, opts["path"], opts.get("applicationPool", "DefaultAppPool"), opts.get("physicalPath", ""))
        return 0, f'APP object "{key}" added', ""

    def _delete_app(self, opts):
        key = opts["app.name"]
        if key not in self.apps:
            return self._missing("APP", key)
        del self.apps[key]
        return 0, f'APP object "{key}" deleted', ""


@pytest.fixture(scope="session")
def project_root():
    """Absolute path to the project root directory."""
    return PROJECT_ROOT


@pytest.fixture(scope="session")
def run_cli(project_root):
    """Return a callable that invokes the iisdeploy CLI as a subprocess."""

    def _run(*args):
        result = subprocess.run(
            [sys.executable, "-m", "iisdeploy.iisdeploy", *args],
            capture_output=True,
            text=True,
            cwd=project_root,
        )
        return result.returncode, result.stdout, result.stderr

    return _run


# ── Unit-test fixtures ──────────────────────────────────────────────


@pytest.fixture
def appcmd():
    """Fresh in-memory appcmd simulator."""
    return FakeAppCmd()


@pytest.fixture
def published_app(tmp_path):
    """A published output at <tmp>/publish/testapp/wwwroot with a web.config."""
    wwwroot = tmp_path / "publish" / "testapp" / "wwwroot"
    wwwroot.mkdir(parents=True)
    (wwwroot / "web.config").write_text(WEB_CONFIG)
    return str(wwwroot)


@pytest.fixture
def make_parameters(tmp_path):
    """Return a factory for DeploymentParameters rooted in tmp_path."""

    def _make(**kwargs):
        kwargs.setdefault("application_path", str(tmp_path / "src" / "testapp"))
        kwargs.setdefault("site_root", str(tmp_path / "publish"))
        return DeploymentParameters(**kwargs)

    return _make


@pytest.fixture
def fixed_publish(published_app):
    """A publish callable that returns the prepared published_app."""
    calls = []

    def _publish(parameters, publish_root):
        calls.append((parameters, publish_root))
        return published_app

    _publish.calls = calls
    return _publish

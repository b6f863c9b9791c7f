"""appcmd.exe transport: command builders, runner and /xml output parsing."""

import logging
import os
import subprocess
import xml.etree.ElementTree as ET

from iisdeploy.iis.types import Application, ApplicationPool, Site

logger = logging.getLogger(__name__)


def appcmd_path():
    """Location of appcmd.exe, overridable with IISDEPLOY_APPCMD."""
    override = os.environ.get("IISDEPLOY_APPCMD")
    if override:
        return override
    windir = os.environ.get("windir", r"C:\Windows")
    return "\\".join([windir.rstrip("\\"), "system32", "inetsrv", "appcmd.exe"])


# ── Command builders ───────────────────────────────────────────────


def _list_sites_cmd():
    return [appcmd_path(), "list", "site", "/xml"]


def _add_site_cmd(site):
    return [
        appcmd_path(),
        "add",
        "site",
        f"/name:{site.name}",
        f"/physicalPath:{site.physical_path}",
        f"/bindings:http/*:{site.port}:",
    ]


def _list_apppools_cmd():
    return [appcmd_path(), "list", "apppool", "/xml"]


def _add_apppool_cmd(pool):
    cmd = [appcmd_path(), "add", "apppool", f"/name:{pool.name}"]
    # No runtime version means IIS picks its default (v4.0).
    if pool.managed_runtime_version is not None:
        cmd.append(f"/managedRuntimeVersion:{pool.managed_runtime_version}")
    cmd.append(f"/enable32BitAppOnWin64:{str(pool.enable_32bit_app_on_win64).lower()}")
    return cmd


def _stop_apppool_cmd(name):
    return [appcmd_path(), "stop", "apppool", f"/apppool.name:{name}"]


def _delete_apppool_cmd(name):
    return [appcmd_path(), "delete", "apppool", f"/apppool.name:{name}"]


def _list_apps_cmd(site_name):
    return [appcmd_path(), "list", "app", f"/site.name:{site_name}", "/xml"]


def _add_app_cmd(app):
    cmd = [
        appcmd_path(),
        "add",
        "app",
        f"/site.name:{app.site_name}",
        f"/path:{app.path}",
        f"/physicalPath:{app.physical_path}",
    ]
    if app.application_pool_name:
        cmd.append(f"/applicationPool:{app.application_pool_name}")
    return cmd


def _delete_app_cmd(app):
    return [appcmd_path(), "delete", "app", f"/app.name:{app.app_name}"]


# ── Output parsing ─────────────────────────────────────────────────


def parse_appcmd_xml(stdout, tag):
    """Return attribute dicts of all <tag> elements in appcmd /xml output."""
    if not stdout.strip():
        return []
    root = ET.fromstring(stdout)
    return [dict(el.attrib) for el in root.iter(tag)]


def parse_binding_port(bindings):
    """First http port from a bindings string like 'http/*:5001:,https/*:443:'."""
    for binding in bindings.split(","):
        protocol, _, info = binding.partition("/")
        if protocol.strip().lower() != "http":
            continue
        parts = info.split(":")
        if len(parts) >= 2 and parts[1].isdigit():
            return int(parts[1])
    return None


def site_from_attrs(attrs):
    return Site(
        name=attrs["SITE.NAME"],
        physical_path=attrs.get("physicalPath", ""),
        port=parse_binding_port(attrs.get("bindings", "")),
    )


def apppool_from_attrs(attrs):
    runtime = attrs.get("RuntimeVersion") or None
    return ApplicationPool(
        name=attrs["APPPOOL.NAME"],
        managed_runtime_version=runtime,
        enable_32bit_app_on_win64=attrs.get("enable32BitAppOnWin64", "false").lower() == "true",
        state=attrs.get("state", ""),
    )


def app_from_attrs(attrs):
    return Application(
        site_name=attrs["SITE.NAME"],
        path=attrs["path"],
        physical_path=attrs.get("physicalPath", ""),
        application_pool_name=attrs.get("APPPOOL.NAME") or None,
    )


# ── Runner ─────────────────────────────────────────────────────────


def make_run_cmd(dry_run=False):
    """Create a run_cmd callable that executes appcmd synchronously.

    run_cmd(command) -> (returncode, stdout, stderr). No timeout: the
    management subsystem is local and calls are treated as unbounded.
    """

    def run_cmd(command):
        if dry_run:
            logger.info(f"[dry-run] {' '.join(command)}")
            return 0, "", ""

        try:
            result = subprocess.run(command, capture_output=True, text=True)
        except FileNotFoundError:
            logger.error(f"Error: '{command[0]}' not found. Is IIS installed?")
            return 1, "", f"'{command[0]}' not found"
        return result.returncode, result.stdout or "", result.stderr or ""

    return run_cmd

"""IIS management session.

Queries go straight to appcmd. Mutations other than stopping a pool are
queued and only reach IIS on commit_changes(), in the order they were made.
A failing commit leaves IIS with whatever prefix of the queue already ran;
sites whose add never ran are dropped from the session cache.
"""

import logging

from iisdeploy.errors import SubsystemConflictError, SubsystemUnavailableError
from iisdeploy.iis import appcmd
from iisdeploy.iis.types import Application, ApplicationPool, Site

logger = logging.getLogger(__name__)


class ServerManager:
    """One session against the IIS management subsystem.

    Args:
        run_cmd: callable(command) -> (returncode, stdout, stderr), see
            appcmd.make_run_cmd.
    """

    def __init__(self, run_cmd):
        self._run_cmd = run_cmd
        self._sites: dict[str, Site] | None = None
        self._pending_pools: dict[str, ApplicationPool] = {}
        self._pending_apps: list[Application] = []
        self._removed_apps: set[str] = set()
        self._removed_pools: set[str] = set()
        self._pending: list[tuple[str, object]] = []
        self._closed = False

    # ── plumbing ──────────────────────────────────────────────────

    def _run(self, command, error_cls=SubsystemUnavailableError):
        if self._closed:
            raise SubsystemUnavailableError("ServerManager session is closed", command=command)
        rc, stdout, stderr = self._run_cmd(command)
        if rc != 0:
            output = (stderr or stdout).strip()
            if "duplicate" in output.lower() or "already exists" in output.lower():
                error_cls = SubsystemConflictError
            raise error_cls(
                f"appcmd failed (exit {rc}): {' '.join(command[1:])}: {output}",
                command=command,
                returncode=rc,
                output=output,
            )
        return stdout

    def _load_sites(self):
        if self._sites is None:
            stdout = self._run(appcmd._list_sites_cmd())
            sites = (appcmd.site_from_attrs(a) for a in appcmd.parse_appcmd_xml(stdout, "SITE"))
            self._sites = {site.name: site for site in sites}
        return self._sites

    # ── sites ─────────────────────────────────────────────────────

    def find_site(self, name) -> Site | None:
        """Site by name. Returns the same object on every call in this session."""
        return self._load_sites().get(name)

    def add_site(self, name, physical_path, port) -> Site:
        sites = self._load_sites()
        if name in sites:
            raise SubsystemConflictError(f"Site '{name}' already exists")
        site = Site(name=name, physical_path=physical_path, port=port)
        sites[name] = site
        self._pending.append(("add_site", site))
        return site

    # ── application pools ─────────────────────────────────────────

    def application_pools(self) -> list[ApplicationPool]:
        """Live pools plus pools added in this session, minus removed ones."""
        stdout = self._run(appcmd._list_apppools_cmd())
        live = [appcmd.apppool_from_attrs(a) for a in appcmd.parse_appcmd_xml(stdout, "APPPOOL")]
        pools = {p.name: p for p in live if p.name not in self._removed_pools}
        pools.update(self._pending_pools)
        return list(pools.values())

    def find_application_pool(self, name) -> ApplicationPool | None:
        for pool in self.application_pools():
            if pool.name == name:
                return pool
        return None

    def add_application_pool(self, name) -> ApplicationPool:
        if self.find_application_pool(name) is not None:
            raise SubsystemConflictError(f"Application pool '{name}' already exists")
        pool = ApplicationPool(name=name)
        self._pending_pools[name] = pool
        self._removed_pools.discard(name)
        self._pending.append(("add_apppool", pool))
        return pool

    def remove_application_pool(self, name):
        if self._pending_pools.pop(name, None) is not None:
            self._pending = [(op, obj) for op, obj in self._pending if not (op == "add_apppool" and obj.name == name)]
            return
        self._removed_pools.add(name)
        self._pending.append(("delete_apppool", name))

    def stop_application_pool(self, name):
        """Stop a pool right away; this does not wait for commit."""
        if name in self._pending_pools:
            return  # never reached IIS
        self._run(appcmd._stop_apppool_cmd(name))

    # ── applications ──────────────────────────────────────────────

    def applications(self, site) -> list[Application]:
        """Live applications of a site plus uncommitted additions, minus removals."""
        stdout = self._run(appcmd._list_apps_cmd(site.name))
        live = [appcmd.app_from_attrs(a) for a in appcmd.parse_appcmd_xml(stdout, "APP")]
        apps = [a for a in live if a.app_name not in self._removed_apps]
        apps.extend(a for a in self._pending_apps if a.site_name == site.name)
        return apps

    def add_application(self, site, path, physical_path) -> Application:
        if any(a.path == path for a in self.applications(site)):
            raise SubsystemConflictError(f"Application '{site.name}{path}' already exists")
        app = Application(site_name=site.name, path=path, physical_path=physical_path)
        self._pending_apps.append(app)
        self._removed_apps.discard(app.app_name)
        self._pending.append(("add_app", app))
        return app

    def remove_application(self, app):
        if app in self._pending_apps:
            self._pending_apps.remove(app)
            self._pending = [(op, obj) for op, obj in self._pending if obj is not app]
            return
        self._removed_apps.add(app.app_name)
        self._pending.append(("delete_app", app))

    # ── commit ────────────────────────────────────────────────────

    def _check_pool_references(self):
        pool_names = {p.name for p in self.application_pools()}
        for op, obj in self._pending:
            if op == "add_app" and obj.application_pool_name not in pool_names:
                raise SubsystemConflictError(
                    f"Application '{obj.app_name}' references unknown pool '{obj.application_pool_name}'"
                )

    def _command_for(self, op, obj):
        if op == "add_site":
            return appcmd._add_site_cmd(obj)
        if op == "add_apppool":
            return appcmd._add_apppool_cmd(obj)
        if op == "add_app":
            return appcmd._add_app_cmd(obj)
        if op == "delete_app":
            return appcmd._delete_app_cmd(obj)
        if op == "delete_apppool":
            return appcmd._delete_apppool_cmd(obj)
        raise ValueError(f"Unknown pending change '{op}'")

    def commit_changes(self):
        """Flush all pending changes to IIS."""
        if not self._pending:
            return
        if any(op == "add_app" for op, _ in self._pending):
            self._check_pool_references()

        pending, self._pending = self._pending, []
        self._pending_pools.clear()
        self._pending_apps.clear()
        logger.info(f"Committing {len(pending)} change(s) to IIS.")
        done = 0
        try:
            for op, obj in pending:
                self._run(self._command_for(op, obj))
                done += 1
        except Exception:
            self._forget_added_sites(pending[done:])
            raise
        finally:
            self._removed_apps.clear()
            self._removed_pools.clear()

    def _forget_added_sites(self, changes):
        if self._sites is None:
            return
        for op, obj in changes:
            if op == "add_site":
                self._sites.pop(obj.name, None)

    def discard_changes(self):
        """Drop uncommitted changes, including sites cached by add_site."""
        if self._pending:
            logger.warning(f"Discarding {len(self._pending)} uncommitted IIS change(s).")
        self._forget_added_sites(self._pending)
        self._pending = []
        self._pending_pools.clear()
        self._pending_apps.clear()
        self._removed_apps.clear()
        self._removed_pools.clear()

    def close(self):
        """Drop cached state and uncommitted changes."""
        self.discard_changes()
        self._sites = None
        self._closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

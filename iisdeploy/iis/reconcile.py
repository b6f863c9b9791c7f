"""Reconcile the test site, application pool and virtual application in IIS."""

import logging
import os
from urllib.parse import urlsplit

from iisdeploy.errors import SubsystemError
from iisdeploy.iis.types import Application, RuntimeArchitecture, ServerType

logger = logging.getLogger(__name__)

WEBSITE_NAME = "TestWebSite"
NATIVE_MODULE_MANAGED_RUNTIME_VERSION = "vCoreFX"


def virtual_directory_name(application_path):
    """Name of the published output's parent directory, e.g. .../<name>/wwwroot -> <name>."""
    return os.path.basename(os.path.dirname(os.path.normpath(application_path)))


class IISApplication:
    """Owns the pool and application created for one deployment.

    All IIS access goes through the ServerManager session passed in; the
    site is shared across deployments and is never deleted here.
    """

    def __init__(self, parameters, server_manager, dry_run=False):
        self._parameters = parameters
        self._server_manager = server_manager
        self._dry_run = dry_run
        self.virtual_directory_name = None
        self.application_pool_name = None
        self.application_path = None  # virtual path, e.g. /testapp

    @property
    def website_root_folder(self):
        return self._parameters.site_root

    @property
    def port(self):
        hint = urlsplit(self._parameters.application_base_uri_hint)
        if hint.port is not None:
            return hint.port
        return 443 if hint.scheme == "https" else 80

    def resolve_or_create_site(self):
        """Find the shared test site, adding it if IIS does not have it yet."""
        site = self._server_manager.find_site(WEBSITE_NAME)
        if site is None:
            logger.info(f"Creating website '{WEBSITE_NAME}' on port {self.port} at {self.website_root_folder}.")
            site = self._server_manager.add_site(WEBSITE_NAME, self.website_root_folder, self.port)
        return site

    def create_app_pool(self, name):
        pool = self._server_manager.add_application_pool(name)
        if self._parameters.server_type == ServerType.IIS_NATIVE_MODULE:
            pool.managed_runtime_version = NATIVE_MODULE_MANAGED_RUNTIME_VERSION
        pool.enable_32bit_app_on_win64 = self._parameters.runtime_architecture == RuntimeArchitecture.x86
        logger.info(
            f"Created {self._parameters.runtime_architecture.value} application pool '{pool.name}' "
            f"with runtime version '{pool.managed_runtime_version or 'default'}'."
        )
        return pool

    def deploy(self, published_path):
        """Create the pool and register /<name> under the test site, then commit."""
        name = virtual_directory_name(published_path)
        self.virtual_directory_name = name
        site = self.resolve_or_create_site()
        pool = self.create_app_pool(name)
        self.application_pool_name = pool.name
        app = self._server_manager.add_application(site, "/" + name, published_path)
        app.application_pool_name = pool.name
        self.application_path = app.path
        self._server_manager.commit_changes()

    def attach(self, virtual_directory_name):
        """Adopt a pool and application created by an earlier deploy."""
        self.virtual_directory_name = virtual_directory_name
        self.application_pool_name = virtual_directory_name
        self.application_path = "/" + virtual_directory_name

    def stop_and_remove(self):
        """Stop the pool and remove the application and pool. Best effort.

        Uncommitted changes left by a failed deploy are discarded first, so
        only deletes reach IIS. Each step is attempted even if an earlier one
        failed.

        Returns:
            True if every step succeeded.
        """
        errors = []
        pool_name = self.application_pool_name
        self._server_manager.discard_changes()

        if pool_name is not None:
            logger.info(f"Stopping application pool '{pool_name}' and deleting application.")
            try:
                self._server_manager.stop_application_pool(pool_name)
            except SubsystemError as e:
                if "already" in e.output.lower():
                    logger.info(f"  Application pool '{pool_name}' was already stopped.")
                else:
                    logger.error(f"  Failed to stop application pool '{pool_name}': {e}")
                    errors.append("stop")
            except Exception as e:
                logger.error(f"  Failed to stop application pool '{pool_name}': {e}")
                errors.append("stop")

        if self.application_path is not None:
            try:
                # Trust the live application list over our own handle.
                site = self._server_manager.find_site(WEBSITE_NAME)
                matches = []
                if site is not None:
                    matches = [a for a in self._server_manager.applications(site) if a.path == self.application_path]
                for app in matches:
                    self._server_manager.remove_application(app)
                if not matches and self._dry_run:
                    # Dry-run listings are empty; show the delete that would run.
                    planned = Application(
                        site_name=WEBSITE_NAME, path=self.application_path, application_pool_name=pool_name
                    )
                    self._server_manager.remove_application(planned)
                elif not matches:
                    logger.error(f"  Application '{self.application_path}' not found in '{WEBSITE_NAME}'.")
            except Exception as e:
                logger.error(f"  Failed to remove application '{self.application_path}': {e}")
                errors.append("application")

        if pool_name is not None:
            try:
                self._server_manager.remove_application_pool(pool_name)
            except Exception as e:
                logger.error(f"  Failed to remove application pool '{pool_name}': {e}")
                errors.append("pool")

        try:
            self._server_manager.commit_changes()
        except Exception as e:
            logger.error(f"  Failed to commit IIS teardown: {e}")
            errors.append("commit")

        if errors:
            return False
        if pool_name is not None:
            logger.info(f"Successfully stopped application pool '{pool_name}' and deleted application from IIS.")
        return True

"""Deploy orchestration: publish, patch config, register in IIS, tear down."""

import functools
import logging
import threading
import time

from iisdeploy.deploy.config_patch import patch_server_config, write_environment_settings
from iisdeploy.deploy.params import DeploymentParameters, DeploymentResult, ServerType
from iisdeploy.deploy.publish import clean_published_output, dnu_publish
from iisdeploy.iis.appcmd import make_run_cmd
from iisdeploy.iis.reconcile import IISApplication
from iisdeploy.iis.server_manager import ServerManager

logger = logging.getLogger(__name__)


class IISDeployer:
    """Deploys one application to IIS (both Helios and the native module).

    deploy() runs once; dispose() must be called afterwards even if deploy()
    failed, and is safe to call when deploy() never ran. Used as a context
    manager, dispose() runs on exit.

    Args:
        parameters: DeploymentParameters, read-only.
        run_cmd: callable(command) -> (returncode, stdout, stderr) used for
            appcmd and the default publish step.
        publish: callable(parameters, publish_root) -> published web root.
            Defaults to dnu publish.
        dry_run: log file writes and commands instead of running them.
    """

    def __init__(self, parameters: DeploymentParameters, run_cmd=None, publish=None, dry_run=False):
        self.parameters = parameters
        self.dry_run = dry_run
        self._run_cmd = run_cmd or make_run_cmd(dry_run=dry_run)
        self._publish = publish or functools.partial(dnu_publish, self._run_cmd)
        self._server_manager = None
        self._application = None
        self._host_shutdown_token = threading.Event()
        self._started = None
        self._disposed = False
        self.published_path = None

    @property
    def host_shutdown_token(self):
        return self._host_shutdown_token

    @property
    def application(self):
        return self._application

    def _open_session(self):
        if self._server_manager is None:
            self._server_manager = ServerManager(self._run_cmd)
            self._application = IISApplication(self.parameters, self._server_manager, dry_run=self.dry_run)

    def deploy(self) -> DeploymentResult:
        """Publish, patch config files and register the application in IIS."""
        self._started = time.monotonic()
        self._open_session()

        # Publish to IIS root\<unique folder>.
        self.published_path = self._publish(self.parameters, self._application.website_root_folder)

        # Drop an ini file instead of setting an environment variable.
        if self.dry_run:
            logger.info(f"[dry-run] write ASPNET_ENV={self.parameters.environment_name} to {self.published_path}")
        else:
            write_environment_settings(self.published_path, self.parameters.environment_name)

        if self.parameters.server_type == ServerType.IIS_NATIVE_MODULE:
            if self.dry_run:
                logger.info(f"[dry-run] patch web.config in {self.published_path}")
            else:
                patch_server_config(self.published_path)

        self._application.deploy(self.published_path)
        logger.info("Successfully finished IIS application directory setup.")

        base_uri = f"http://localhost:{self._application.port}/{self._application.virtual_directory_name}/"
        return DeploymentResult(
            application_base_uri=base_uri,
            web_root_location=self.published_path,
            deployment_parameters=self.parameters,
            host_shutdown_token=self._host_shutdown_token,
        )

    @classmethod
    def restore(cls, parameters, published_path, virtual_directory_name, **kwargs):
        """Rebuild a deployer for an application deployed by another process."""
        deployer = cls(parameters, **kwargs)
        deployer._open_session()
        deployer.published_path = published_path
        deployer._application.attach(virtual_directory_name)
        return deployer

    def dispose(self):
        """Tear down everything deploy() created. Never raises.

        Returns:
            True if IIS cleanup succeeded (or there was nothing to clean up).
        """
        if self._disposed:
            return True
        self._disposed = True

        success = True
        if self._application is not None:
            success = self._application.stop_and_remove()
            if success:
                logger.info("Application pool was shutdown successfully.")
            else:
                logger.error("IIS teardown finished with errors.")
        if self._server_manager is not None:
            self._server_manager.close()

        self._host_shutdown_token.set()

        if self.published_path is not None:
            try:
                clean_published_output(
                    self.published_path,
                    preserve=self.parameters.preserve_published_output,
                    dry_run=self.dry_run,
                )
            except Exception as e:
                logger.error(f"Failed to delete published output: {e}")

        if self.parameters.user_additional_cleanup is not None:
            try:
                self.parameters.user_additional_cleanup()
            except Exception as e:
                logger.error(f"User cleanup failed: {e}")

        if self._started is not None:
            logger.info(f"Deployment lifetime: {time.monotonic() - self._started:.1f}s")
        return success

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.dispose()

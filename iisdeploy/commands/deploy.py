"""Deploy command: publish an application into IIS and record it for teardown."""

import json
import logging
import os
import sys

from iisdeploy.deploy.health import wait_for_ready
from iisdeploy.deploy.orchestrate import IISDeployer
from iisdeploy.deploy.params import RuntimeArchitecture, ServerType, load_parameters
from iisdeploy.errors import DeploymentError

logger = logging.getLogger(__name__)

RECORD_FILE = "deployment.json"


def write_record(run_dir, deployer, result):
    """Write run_dir/deployment.json so 'teardown' can undo this deployment."""
    os.makedirs(run_dir, exist_ok=True)
    record = {
        "parameters": deployer.parameters.to_dict(),
        "published_path": deployer.published_path,
        "virtual_directory_name": deployer.application.virtual_directory_name,
        "application_base_uri": result.application_base_uri,
    }
    path = os.path.join(run_dir, RECORD_FILE)
    with open(path, "w") as f:
        json.dump(record, f, indent=2)
    return path


def handle_deploy(args):
    """Handle the deploy command."""
    try:
        parameters = load_parameters(
            args.config,
            application_path=args.app_path,
            server_type=args.server_type,
            runtime_architecture=args.arch,
            environment_name=args.environment,
            application_base_uri_hint=args.base_uri,
            site_root=args.site_root,
            runtime=args.runtime,
        )
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Error: {e}")
        sys.exit(1)

    deployer = IISDeployer(parameters, dry_run=args.dry_run)
    try:
        result = deployer.deploy()
    except (DeploymentError, OSError) as e:
        logger.error(f"Deployment failed: {e}")
        logger.error("Rolling back...")
        deployer.dispose()
        sys.exit(1)

    record_path = write_record(args.run_dir, deployer, result)
    logger.info(f"\nApplication: {result.application_base_uri}")
    logger.info(f"Web root: {result.web_root_location}")
    logger.info(f"Record: {record_path}")

    if args.wait and not wait_for_ready(result.application_base_uri, timeout=args.wait_timeout, dry_run=args.dry_run):
        logger.error(f"Application did not respond. Run 'iisdeploy teardown {args.run_dir}' to clean up.")
        sys.exit(1)


def register_deploy_command(subparsers):
    """Register the deploy subcommand."""
    parser = subparsers.add_parser("deploy", help="Deploy an application to the local IIS test site")
    parser.add_argument("--config", default=None, help="Deployment YAML file")
    parser.add_argument("--app-path", default=None, help="Application source directory")
    parser.add_argument(
        "--server-type",
        default=None,
        choices=[t.value for t in ServerType],
        help="Hosting mode (default: iis)",
    )
    parser.add_argument(
        "--arch",
        default=None,
        choices=[a.value for a in RuntimeArchitecture],
        help="Application pool architecture (default: x64)",
    )
    parser.add_argument("--environment", default=None, help="ASPNET_ENV value (default: Development)")
    parser.add_argument("--base-uri", default=None, help="Base URI hint, e.g. http://localhost:5001/")
    parser.add_argument("--site-root", default=None, help="Website root folder (default: %%SystemDrive%%\\inetpub\\TestWebSite)")
    parser.add_argument("--runtime", default=None, help="Runtime name passed to dnu publish")
    parser.add_argument("--run-dir", required=True, help="Directory for deployment.json")
    parser.add_argument("--wait", action="store_true", help="Wait until the application responds")
    parser.add_argument("--wait-timeout", type=int, default=120, help="Seconds to wait with --wait (default: 120)")
    parser.add_argument("--dry-run", action="store_true", help="Print commands without executing")
    parser.set_defaults(func=handle_deploy)

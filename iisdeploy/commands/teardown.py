"""Teardown command: remove an application recorded by 'deploy'."""

import json
import logging
import sys
from pathlib import Path

from iisdeploy.commands.deploy import RECORD_FILE
from iisdeploy.deploy.orchestrate import IISDeployer
from iisdeploy.deploy.params import parameters_from_dict

logger = logging.getLogger(__name__)


def handle_teardown(args):
    """Handle the teardown command."""
    run_dir = Path(args.run_dir)
    record_path = run_dir / RECORD_FILE

    if not record_path.exists():
        logger.error(f"No {RECORD_FILE} found in {run_dir}")
        sys.exit(1)

    record = json.loads(record_path.read_text())
    parameters = parameters_from_dict(record["parameters"])
    logger.info(f"Tearing down {record.get('application_base_uri', record['virtual_directory_name'])}")

    deployer = IISDeployer.restore(
        parameters,
        record["published_path"],
        record["virtual_directory_name"],
        dry_run=args.dry_run,
    )
    if not deployer.dispose():
        logger.error(f"\nTeardown finished with errors. Keeping {record_path}")
        sys.exit(1)

    if args.dry_run:
        logger.info("\nTeardown complete (dry-run).")
        return
    record_path.unlink()
    logger.info(f"\nTeardown complete. Removed {record_path}")


def register_teardown_command(subparsers):
    """Register the teardown subcommand."""
    parser = subparsers.add_parser("teardown", help="Tear down an application deployed with 'deploy'")
    parser.add_argument("run_dir", help="Run directory containing deployment.json")
    parser.add_argument("--dry-run", action="store_true", help="Print commands without executing")
    parser.set_defaults(func=handle_teardown)

#!/usr/bin/env python3
"""IIS test deployment tools — CLI entrypoint."""

import argparse

from iisdeploy.commands.deploy import register_deploy_command
from iisdeploy.commands.teardown import register_teardown_command
from iisdeploy.logging_setup import setup_cli_logging


def main():
    parser = argparse.ArgumentParser(description="IIS test deployment tools")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    register_deploy_command(subparsers)
    register_teardown_command(subparsers)

    args = parser.parse_args()
    setup_cli_logging(verbose=args.verbose)
    args.func(args)


if __name__ == "__main__":
    main()

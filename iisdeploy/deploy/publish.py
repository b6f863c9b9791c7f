"""Publish step and published-output cleanup."""

import logging
import os
import shutil
import uuid

from iisdeploy.errors import PublishError

logger = logging.getLogger(__name__)

WWWROOT = "wwwroot"


def _dnu_publish_cmd(application_path, output_dir, runtime=""):
    cmd = ["dnu", "publish", application_path, "--out", output_dir, "--wwwroot-out", WWWROOT]
    if runtime:
        cmd.extend(["--runtime", runtime])
    return cmd


def dnu_publish(run_cmd, parameters, publish_root):
    """Publish the application into a fresh <publish_root>/<uuid> directory.

    The directory name doubles as the application pool and virtual directory
    name, so every publish gets a unique one.

    Returns:
        Path of the published web root (<publish_root>/<uuid>/wwwroot).
    """
    output_dir = os.path.join(publish_root, uuid.uuid4().hex)
    logger.info(f"Publishing {parameters.application_path} to {output_dir}...")
    command = _dnu_publish_cmd(parameters.application_path, output_dir, parameters.runtime)
    rc, stdout, stderr = run_cmd(command)
    if rc != 0:
        raise PublishError(f"dnu publish failed (exit {rc}): {(stderr or stdout).strip()}")
    return os.path.join(output_dir, WWWROOT)


def clean_published_output(published_path, preserve=False, dry_run=False):
    """Delete the publish directory that holds published_path."""
    publish_dir = os.path.dirname(os.path.normpath(published_path))
    if preserve:
        logger.info(f"Preserving published output at {publish_dir}.")
        return
    if dry_run:
        logger.info(f"[dry-run] rm -rf {publish_dir}")
        return
    if not os.path.isdir(publish_dir):
        return
    logger.info(f"Deleting published output at {publish_dir}.")
    shutil.rmtree(publish_dir)

"""Patch runtime configuration files in the published output.

Two artifacts live in the published application root:

- ``Microsoft.AspNet.Hosting.ini`` carries the hosting environment name,
  since IIS worker processes do not inherit our environment variables.
- ``web.config`` needs ``runAllManagedModulesForAllRequests`` turned on when
  the application runs under the IIS native module.
"""

import logging
import os
import re
import xml.etree.ElementTree as ET

from iisdeploy.errors import ConfigMalformedError, ConfigNotFoundError

logger = logging.getLogger(__name__)

HOSTING_INI = "Microsoft.AspNet.Hosting.ini"
WEB_CONFIG = "web.config"
RAMMFAR_ATTRIBUTE = "runAllManagedModulesForAllRequests"

_PROLOG_RE = re.compile(r"(?:\s*(?:<\?.*?\?>|<!--.*?-->|<!DOCTYPE[^>]*>))*\s*", re.DOTALL)


def write_environment_settings(application_path, environment_name):
    """Drop Microsoft.AspNet.Hosting.ini with ASPNET_ENV. Returns the file path."""
    ini_path = os.path.join(application_path, HOSTING_INI)
    logger.info(f"Creating {HOSTING_INI} file with ASPNET_ENV.")
    with open(ini_path, "w") as f:
        f.write(f"ASPNET_ENV={environment_name}")
    return ini_path


def _read_prolog(path):
    """Text before the root element: XML declaration, comments, PIs, doctype."""
    with open(path, encoding="utf-8-sig") as f:
        text = f.read()
    return _PROLOG_RE.match(text).group(0)


def _register_namespaces(path):
    # ElementTree renames unknown prefixes to ns0, ns1, ... on write.
    for _, (prefix, uri) in ET.iterparse(path, events=("start-ns",)):
        if not re.match(r"ns\d+$", prefix):
            ET.register_namespace(prefix, uri)


def load_server_config(path) -> ET.ElementTree:
    """Parse web.config, keeping comments so the rewrite does not drop them."""
    if not os.path.isfile(path):
        raise ConfigNotFoundError(path)
    parser = ET.XMLParser(target=ET.TreeBuilder(insert_comments=True, insert_pis=True))
    try:
        _register_namespaces(path)
        return ET.parse(path, parser=parser)
    except ET.ParseError as e:
        raise ConfigMalformedError(path, str(e)) from e
    except OSError as e:
        raise ConfigNotFoundError(path) from e


def save_server_config(tree, path):
    """Write the tree back to path, keeping the original prolog as is."""
    prolog = _read_prolog(path)
    if not prolog.lstrip().startswith("<?xml"):
        prolog = '<?xml version="1.0" encoding="utf-8"?>\n' + prolog
    body = ET.tostring(tree.getroot(), encoding="unicode")
    with open(path, "w", encoding="utf-8") as f:
        f.write(prolog + body + "\n")
    return path


def _find_configuration(root):
    if root.tag == "configuration":
        return root
    return root.find(".//configuration")


def add_run_all_managed_modules(tree, path="web.config"):
    """Ensure configuration/system.webServer/modules has rammfar set to true.

    Existing system.webServer and modules elements are reused, so applying
    this twice leaves a single modules node. Returns True if the tree changed.
    """
    configuration = _find_configuration(tree.getroot())
    if configuration is None:
        raise ConfigMalformedError(path, "no <configuration> element")

    web_server = configuration.find("system.webServer")
    if web_server is None:
        web_server = ET.SubElement(configuration, "system.webServer")

    modules = web_server.find("modules")
    if modules is None:
        modules = ET.SubElement(web_server, "modules")

    if modules.get(RAMMFAR_ATTRIBUTE) == "true":
        return False
    modules.set(RAMMFAR_ATTRIBUTE, "true")
    return True


def patch_server_config(application_path):
    """Turn runAllManagedModulesForAllRequests on in the published web.config."""
    # https://github.com/aspnet/Helios/issues/77
    logger.info(f"Turning {RAMMFAR_ATTRIBUTE}=true in web.config for native module.")
    path = os.path.join(application_path, WEB_CONFIG)
    tree = load_server_config(path)
    if not add_run_all_managed_modules(tree, path):
        logger.info(f"{path} already has {RAMMFAR_ATTRIBUTE}=true, leaving it untouched.")
        return path
    return save_server_config(tree, path)

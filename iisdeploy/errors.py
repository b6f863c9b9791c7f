"""Deployment error kinds."""


class DeploymentError(Exception):
    """Base class for errors raised while deploying to IIS."""


class ConfigNotFoundError(DeploymentError):
    """Server configuration file is missing or unreadable."""

    def __init__(self, path):
        super().__init__(f"Server configuration not found: {path}")
        self.path = path


class ConfigMalformedError(DeploymentError):
    """Server configuration is not well-formed or has no configuration root."""

    def __init__(self, path, reason):
        super().__init__(f"Malformed server configuration {path}: {reason}")
        self.path = path
        self.reason = reason


class SubsystemError(DeploymentError):
    """The IIS management subsystem rejected an operation."""

    def __init__(self, message, command=None, returncode=None, output=""):
        super().__init__(message)
        self.command = command
        self.returncode = returncode
        self.output = output


class SubsystemConflictError(SubsystemError):
    """A site, pool or application with the same name already exists."""


class SubsystemUnavailableError(SubsystemError):
    """appcmd could not be run or the commit failed."""


class PublishError(DeploymentError):
    """The external publish step failed."""

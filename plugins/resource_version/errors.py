"""Errors raised while versioning resources.

All of them derive from MkDocs' ``PluginError`` so a failure surfaces as a
regular build error for the page being processed.
"""

from mkdocs.exceptions import PluginError


class ResourceVersionError(PluginError):
    """Base class for resource_version failures."""


class MissingResourceError(ResourceVersionError):
    """A referenced local file does not exist in the build output."""

    def __init__(self, path: str, referrer: str = ""):
        self.path = path
        self.referrer = referrer
        message = f"[resource_version] referenced file not found: {path}"
        if referrer:
            message += f" (referenced from {referrer})"
        super().__init__(message)


class RegistryConflictError(ResourceVersionError):
    """An artifact was registered twice under one path with different bytes."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"[resource_version] conflicting artifact for {path}")


class CyclicReferenceError(ResourceVersionError):
    """A file ended up referencing itself, directly or through other files."""

    def __init__(self, chain):
        self.chain = tuple(chain)
        super().__init__("[resource_version] cyclic reference: " + " -> ".join(self.chain))


class ContentDecodeError(ResourceVersionError):
    """A text file (page, stylesheet or script) is not valid UTF-8."""

    def __init__(self, path: str, reason: str = ""):
        self.path = path
        message = f"[resource_version] cannot decode {path} as utf-8"
        if reason:
            message += f": {reason}"
        super().__init__(message)

"""
Centralized exception hierarchy for zigkit.

Every failure the acquisition pipeline can produce is one of the classes
below. The toolchain provider catches ``ZigkitError`` at its boundary and
turns it into a ``Failed`` state, so nothing here escapes to the host
process during a refresh.
"""


# ============================================================================
# Base Exceptions
# ============================================================================


class ZigkitError(Exception):
    """Base exception for all zigkit errors."""

    pass


class ConfigError(ZigkitError):
    """Configuration parsing or validation error."""

    pass


# ============================================================================
# Resolution Exceptions
# ============================================================================


class ResolutionError(ZigkitError):
    """Base exception for version resolution errors."""

    pass


class InvalidVersionError(ResolutionError):
    """Version string cannot be parsed as a semantic version."""

    pass


class NoSatisfyingVersion(ResolutionError):
    """No release in the index satisfies the requested version."""

    def __init__(self, requirement, reason: str = ""):
        self.requirement = requirement
        msg = f"No release satisfies {requirement}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


# ============================================================================
# Release Index Exceptions
# ============================================================================


class IndexUnavailable(ZigkitError):
    """Raised when every index source failed to download or parse."""

    def __init__(self, channel: str, failures: list[tuple[str, str]]):
        self.channel = channel
        self.failures = failures
        details = "; ".join(f"{url}: {reason}" for url, reason in failures)
        super().__init__(f"Release index for '{channel}' unavailable ({details})")


class IndexParseError(ZigkitError):
    """Index body does not have the expected shape."""

    pass


# ============================================================================
# Installation Exceptions
# ============================================================================


class InstallError(ZigkitError):
    """Base exception for installer failures."""

    pass


class DownloadFailed(InstallError):
    """Archive or signature could not be downloaded from any source."""

    pass


class SignatureInvalid(InstallError):
    """Archive signature did not verify against the trusted public key."""

    pass


class ExtractionFailed(InstallError):
    """Archive could not be extracted."""

    pass


class VersionMismatch(InstallError):
    """Installed executable reports a different version than expected."""

    def __init__(self, expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Expected version {expected}, executable reports {actual}")


class PathInvalid(ZigkitError):
    """Explicitly configured executable path is not a usable toolchain."""

    def __init__(self, path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid toolchain path '{path}': {reason}")


# ============================================================================
# Signature Format Exceptions
# ============================================================================


class MinisignFormatError(ZigkitError):
    """Public key or signature text is not valid minisign format."""

    pass

"""Exception types raised while computing a build version.

Everything derives from VersionError so the CLI can report any failure with a
single except clause. Lookups on the latest release never raise: they degrade
to 0.0.0 with a warning instead.
"""


class VersionError(Exception):
    """Base class for all buildver failures."""


class InvalidVersion(VersionError):
    """A tag or override could not be parsed as a semantic version."""


class UnsupportedEvent(VersionError):
    """The triggering event (or its ref) is not one we know how to version."""


class InvalidCommitDate(VersionError):
    """A commit timestamp was present but not a valid ISO-8601 date."""


class InvalidMajorVersionInput(VersionError):
    """The major-version override was not a non-negative integer."""


class InvalidBuildContext(VersionError):
    """The build context is missing data a scenario needs (repository, SHA)."""


class RemoteLookupFailed(VersionError):
    """The hosting API could not be reached or returned an unexpected reply."""

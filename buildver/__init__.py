"""buildver: compute a unique, ordered semver string for every CI build."""

from buildver._version import __version__, __app_name__, PIP_VERSION
from buildver.context import BuildContext
from buildver.core import calculate_version, find_version_branch
from buildver.errors import VersionError

__all__ = [
    "__version__",
    "__app_name__",
    "PIP_VERSION",
    "BuildContext",
    "VersionError",
    "calculate_version",
    "find_version_branch",
]

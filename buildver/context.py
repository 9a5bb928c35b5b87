"""Build context: everything we know about the triggering event up front."""

import logging
import re
from dataclasses import dataclass
from typing import Optional, Tuple

from buildver.errors import InvalidBuildContext, InvalidMajorVersionInput

logger = logging.getLogger(__name__)

TAG_REF_PREFIX = "refs/tags/"
BRANCH_REF_PREFIX = "refs/heads/"

_SHA_RE = re.compile(r"^[0-9a-fA-F]{40}$")


@dataclass(frozen=True)
class BuildContext:
    """Immutable description of one CI run.

    Only the fields relevant to the event need to be set: tag pushes need
    nothing beyond event_name and ref, pull requests carry base_ref/head_ref
    and labels, pushes may embed the head commit's message and timestamp.
    """

    event_name: str
    ref: str
    sha: Optional[str] = None
    owner: Optional[str] = None
    repo: Optional[str] = None
    default_branch: str = "main"
    head_commit_message: Optional[str] = None
    head_commit_timestamp: Optional[str] = None
    base_ref: Optional[str] = None
    head_ref: Optional[str] = None
    labels: Tuple[str, ...] = ()
    run_id: Optional[str] = None
    major_version: Optional[int] = None

    def __post_init__(self):
        if self.sha is not None and not _SHA_RE.match(self.sha):
            raise InvalidBuildContext(
                f"Commit SHA must be 40 hex characters, got: {self.sha!r}")
        if self.major_version is not None and self.major_version < 0:
            raise InvalidMajorVersionInput(
                f"Major version must be non-negative, got: {self.major_version}")

    @property
    def short_sha(self):
        return self.sha[:7] if self.sha else None

    @property
    def branch_name(self):
        """Branch name for branch refs, otherwise None."""
        if self.ref.startswith(BRANCH_REF_PREFIX):
            return self.ref[len(BRANCH_REF_PREFIX):]
        return None

    @classmethod
    def from_event(cls, event_name, ref, sha=None, repository=None,
                   payload=None, default_branch=None, run_id=None,
                   major_version=None):
        """Build a context from raw GitHub Actions inputs.

        repository:     "owner/name" string (GITHUB_REPOSITORY)
        payload:        parsed webhook payload (contents of GITHUB_EVENT_PATH)
        default_branch: explicit default branch; falls back to the payload's
                        repository.default_branch, then "main"
        major_version:  raw string override, parsed by parse_major_version()
        """
        payload = payload or {}

        owner = repo = None
        if repository:
            owner, sep, repo = repository.partition("/")
            if not sep or not owner or not repo:
                raise InvalidBuildContext(
                    f"Repository must be in 'owner/name' form, got: {repository!r}")

        if not default_branch:
            default_branch = (payload.get("repository") or {}).get("default_branch") or "main"

        head_commit = payload.get("head_commit") or {}
        pull_request = payload.get("pull_request") or {}
        labels = tuple(
            label["name"] for label in pull_request.get("labels") or []
            if label.get("name")
        )

        context = cls(
            event_name=event_name,
            ref=ref or "",
            sha=sha or None,
            owner=owner,
            repo=repo,
            default_branch=default_branch,
            head_commit_message=head_commit.get("message"),
            head_commit_timestamp=head_commit.get("timestamp"),
            base_ref=(pull_request.get("base") or {}).get("ref"),
            head_ref=(pull_request.get("head") or {}).get("ref"),
            labels=labels,
            run_id=str(run_id) if run_id not in (None, "") else None,
            major_version=parse_major_version(major_version),
        )
        logger.debug(f"Build context: {context}")
        return context


def parse_major_version(value):
    """Parse the major-version override input.

    Empty or missing input means no override. Anything that isn't a
    non-negative integer is a configuration error.
    """
    if value is None:
        return None
    if isinstance(value, int):
        return value
    value = str(value).strip()
    if not value:
        return None
    if not value.isdecimal():
        raise InvalidMajorVersionInput(
            f"Major version input must be an integer, got: {value!r}")
    return int(value)

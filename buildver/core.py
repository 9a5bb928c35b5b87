"""Core version calculation logic (host-agnostic).

calculate_version() is the single entry point: it classifies the build,
resolves a base semantic version for that scenario and renders the final
string. All remote data comes through a HostingAPI instance so the logic can
run against GitHub or an in-memory double.
"""

import datetime
import enum
import logging
import re

import semver

from buildver.context import BRANCH_REF_PREFIX, TAG_REF_PREFIX
from buildver.errors import (
    InvalidBuildContext,
    InvalidCommitDate,
    InvalidVersion,
    RemoteLookupFailed,
    UnsupportedEvent,
)

logger = logging.getLogger(__name__)

ZERO_VERSION = semver.Version(0, 0, 0)
PRERELEASE_LABEL = "alpha"

# Checked in this order; the first label present on the PR wins.
RELEASE_LABELS = (
    ("needs-release/major", "major"),
    ("needs-release/minor", "minor"),
    ("needs-release/patch", "patch"),
)
DEFAULT_INCREMENT = "minor"

BRANCH_PUSH_EVENTS = {"push", "workflow_dispatch"}
SCHEDULED_EVENTS = {"schedule", "repository_dispatch"}

_VERSION_BRANCH_RE = re.compile(r"^v(\d+)$")
_UPGRADE_BRANCH_RE = re.compile(r"^upgrade-.+-major$")
_PR_REFERENCE_RE = re.compile(r"\(#(\d+)\)")


class Scenario(enum.Enum):
    """Mutually exclusive build scenarios, one resolver each."""

    TAG = "tag"
    VERSION_BRANCH = "version-branch"
    DEFAULT_BRANCH = "default-branch"
    OTHER_BRANCH = "other-branch"
    PULL_REQUEST = "pull-request"
    SCHEDULED = "scheduled"


# --- Branch and label helpers ---


def _strip_branch_prefix(ref):
    if ref and ref.startswith(BRANCH_REF_PREFIX):
        return ref[len(BRANCH_REF_PREFIX):]
    return ref


def parse_version_branch(ref):
    """Return N for a branch named vN (with or without refs/heads/), else None."""
    match = _VERSION_BRANCH_RE.match(_strip_branch_prefix(ref) or "")
    if match:
        return int(match.group(1))
    return None


def is_major_upgrade_branch(ref):
    """True for branches following the upgrade-<anything>-major convention."""
    return bool(_UPGRADE_BRANCH_RE.match(_strip_branch_prefix(ref) or ""))


def find_version_branch(context):
    """Check if we're building, or merging into, a version branch like v1.

    Looks at the pushed branch for push/workflow_dispatch and at the base
    branch for pull requests. Returns the major version number or None.
    """
    if context.event_name in BRANCH_PUSH_EVENTS:
        return parse_version_branch(context.branch_name)
    if context.event_name == "pull_request":
        return parse_version_branch(context.base_ref)
    return None


def increment_from_labels(labels):
    """Map PR label names to an increment type, defaulting to minor."""
    present = set(labels or ())
    if present:
        logger.debug(f"PR labels: {', '.join(sorted(present))}")
    for label, increment in RELEASE_LABELS:
        if label in present:
            return increment
    return DEFAULT_INCREMENT


def find_pull_request_number(message):
    """Return N from the first "(#N)" in a commit message, else None."""
    match = _PR_REFERENCE_RE.search(message or "")
    if match:
        return int(match.group(1))
    return None


# --- Event classification ---


def classify(context):
    """Pick the build scenario for a context.

    Priority: tag push, branch push (version / default / other branch),
    pull request, scheduled or repository dispatch. Anything else is
    unsupported.
    """
    event, ref = context.event_name, context.ref
    if event == "push" and ref.startswith(TAG_REF_PREFIX):
        return Scenario.TAG
    if event in BRANCH_PUSH_EVENTS:
        branch = context.branch_name
        if branch is None:
            raise UnsupportedEvent(f"Unsupported ref for {event} event: {ref}")
        if parse_version_branch(branch) is not None:
            return Scenario.VERSION_BRANCH
        if branch == context.default_branch:
            return Scenario.DEFAULT_BRANCH
        return Scenario.OTHER_BRANCH
    if event == "pull_request":
        return Scenario.PULL_REQUEST
    if event in SCHEDULED_EVENTS:
        return Scenario.SCHEDULED
    raise UnsupportedEvent(f"Unsupported event: {event}")


# --- Version parsing and formatting ---


def parse_version(text):
    """Parse a tag like v1.2.3 or 1.2.3-rc.1 into a semver.Version."""
    if not isinstance(text, str):
        raise InvalidVersion(f"Invalid version: {text!r}")
    candidate = text[1:] if text and text[0] in "vV" else text
    try:
        return semver.Version.parse(candidate)
    except (TypeError, ValueError) as e:
        raise InvalidVersion(f"Invalid version: {text}") from e


def bump(version, increment):
    """Return a new version incremented by 'major', 'minor' or 'patch'.

    A pre-release is always bumped past its release: 1.2.0-rc.1 goes to
    1.3.0 on a minor bump, never back to 1.2.0.
    """
    if increment == "major":
        return version.bump_major()
    if increment == "minor":
        return version.bump_minor()
    if increment == "patch":
        return version.bump_patch()
    raise ValueError(f"Unknown increment type: {increment}")


def commit_timestamp(value):
    """Convert an ISO-8601 date to whole seconds since the epoch.

    Sub-second precision is dropped. Dates without an offset are taken as UTC.
    """
    try:
        text = value.strip()
        if text[-1:] in ("Z", "z"):
            text = text[:-1] + "+00:00"
        moment = datetime.datetime.fromisoformat(text)
    except (AttributeError, ValueError) as e:
        raise InvalidCommitDate(f"Invalid commit date: {value}") from e
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=datetime.timezone.utc)
    return int(moment.replace(microsecond=0).timestamp())


def format_version(version, timestamp, short_sha=None):
    """Render major.minor.patch-alpha.<timestamp>[+<short_sha>].

    Default-branch builds pass no short_sha: Python treats a "+..." suffix as
    a local version, which PyPI refuses to accept.
    """
    text = f"{version.major}.{version.minor}.{version.patch}-{PRERELEASE_LABEL}.{timestamp}"
    if short_sha:
        text += f"+{short_sha}"
    return text


def tag_version(context):
    """Version of a pushed tag: the tag itself, canonicalised, no suffix."""
    tag = context.ref[len(TAG_REF_PREFIX):]
    logger.debug(f"Tag pushed: {context.ref}")
    try:
        version = parse_version(tag)
    except InvalidVersion as e:
        raise InvalidVersion(f"Invalid tag version: {tag}") from e
    logger.debug(f"Extracted version: {version}")
    return str(version)


# --- Resolution ---


class VersionResolver:
    """Resolves the base version and timestamp for one non-tag build.

    Remote lookups are made lazily and at most once each, so a scenario that
    doesn't need the latest release never asks for it.
    """

    def __init__(self, context, api):
        self.context = context
        self.api = api
        self._commit = None
        self._commit_loaded = False
        self._resolvers = {
            Scenario.VERSION_BRANCH: self._resolve_version_branch,
            Scenario.DEFAULT_BRANCH: self._resolve_default_branch,
            Scenario.OTHER_BRANCH: self._resolve_other_branch,
            Scenario.PULL_REQUEST: self._resolve_pull_request,
            Scenario.SCHEDULED: self._resolve_scheduled,
        }

    def resolve(self, scenario):
        """Return the base semver.Version for the given scenario."""
        try:
            resolver = self._resolvers[scenario]
        except KeyError:
            raise UnsupportedEvent(f"No resolver for {scenario.value} builds") from None
        version = resolver()
        logger.debug(f"Next version: {version}")
        return version

    # -- lookups --

    def latest_release(self):
        """Version of the release marked latest; 0.0.0 if missing or unusable.

        Never raises: a broken release lookup must not break the build.
        """
        ctx = self.context
        try:
            release = self.api.get_latest_release(ctx.owner, ctx.repo)
        except RemoteLookupFailed as e:
            logger.warning(f"Failed to get latest release: {e}")
            return ZERO_VERSION
        if release is None or not release.tag_name:
            logger.warning("Could not find latest release tag")
            return ZERO_VERSION
        try:
            version = parse_version(release.tag_name)
        except InvalidVersion:
            logger.warning(
                f"Latest release tag is an invalid semver version: {release.tag_name}")
            return ZERO_VERSION
        logger.debug(f"Latest release: {version}")
        return version

    def _fetch_commit(self):
        if self._commit_loaded:
            return self._commit
        self._commit_loaded = True
        ctx = self.context
        if not ctx.sha:
            logger.warning("No commit SHA available, skipping commit lookup")
            return None
        try:
            self._commit = self.api.get_commit(ctx.owner, ctx.repo, ctx.sha)
        except RemoteLookupFailed as e:
            logger.warning(f"Failed to get commit details: {e}")
            return None
        if self._commit is None:
            logger.warning(f"Commit {ctx.sha} not found")
        return self._commit

    def commit_message(self):
        if self.context.head_commit_message is not None:
            return self.context.head_commit_message
        commit = self._fetch_commit()
        return commit.message if commit is not None else None

    def timestamp(self):
        """Unix timestamp of the commit being built, as a string.

        Prefers the timestamp embedded in the push payload, then the commit
        lookup. If neither is available the run id stands in for it.
        """
        ctx = self.context
        if ctx.head_commit_timestamp:
            return str(commit_timestamp(ctx.head_commit_timestamp))
        commit = self._fetch_commit()
        if commit is not None and commit.committer_date:
            return str(commit_timestamp(commit.committer_date))
        if ctx.run_id:
            logger.warning(f"Failed to get commit date, using run id {ctx.run_id} instead")
            return ctx.run_id
        raise RemoteLookupFailed(
            "Could not determine the commit date and no run id is available")

    def _merged_pull_request(self):
        """The PR referenced as "(#N)" in the head commit message, if any."""
        message = self.commit_message()
        logger.debug(f"Commit message: {message}")
        number = find_pull_request_number(message)
        if number is None:
            return None
        logger.debug(f"Found PR reference: #{number}")
        ctx = self.context
        try:
            pr = self.api.get_pull_request(ctx.owner, ctx.repo, number)
        except RemoteLookupFailed as e:
            logger.warning(f"Failed to get pull request #{number}: {e}")
            return None
        if pr is None:
            logger.warning(f"Pull request #{number} not found")
        return pr

    def _increment_for(self, head_ref, labels):
        if is_major_upgrade_branch(head_ref):
            logger.debug(f"Incrementing major version for upgrade branch: {head_ref}")
            return "major"
        return increment_from_labels(labels)

    # -- scenarios --

    def _resolve_version_branch(self):
        major = find_version_branch(self.context)
        logger.debug(f"Using major version from branch: v{major}")
        return semver.Version(major, 0, 0)

    def _resolve_default_branch(self):
        increment = DEFAULT_INCREMENT
        pr = self._merged_pull_request()
        if pr is not None:
            major = parse_version_branch(pr.base_ref)
            if major is not None:
                logger.debug(f"Using major version from PR base branch: v{major}")
                return semver.Version(major, 0, 0)
            increment = self._increment_for(pr.head_ref, pr.labels)
        return bump(self.latest_release(), increment)

    def _resolve_other_branch(self):
        return self.latest_release().bump_minor()

    def _resolve_pull_request(self):
        ctx = self.context
        major = parse_version_branch(ctx.base_ref)
        if major is not None:
            logger.debug(f"Using major version from base branch: v{major}")
            return semver.Version(major, 0, 0)
        increment = self._increment_for(ctx.head_ref, ctx.labels)
        return bump(self.latest_release(), increment)

    def _resolve_scheduled(self):
        version = self.latest_release().bump_minor()
        override = self.context.major_version
        if override is not None and override != version.major:
            logger.info(f"Major version override {override} replaces {version}")
            return semver.Version(override, 0, 0)
        return version


def calculate_version(context, api):
    """
    Calculate the version to use for the current build.

    Tag pushes return the tag's version unchanged. Every other build gets a
    pre-release suffix: "-alpha.<timestamp>" on the default branch and
    "-alpha.<timestamp>+<short sha>" everywhere else, so each commit maps to
    a unique version.
    """
    scenario = classify(context)
    if scenario is Scenario.TAG:
        return tag_version(context)

    logger.debug(f"Building {scenario.value}: {context.event_name} {context.ref}")
    if not context.owner or not context.repo:
        raise InvalidBuildContext(
            f"A repository is required to version {scenario.value} builds")
    include_hash = scenario is not Scenario.DEFAULT_BRANCH
    if include_hash and not context.sha:
        raise InvalidBuildContext(
            f"A commit SHA is required to version {scenario.value} builds")

    resolver = VersionResolver(context, api)
    version = resolver.resolve(scenario)
    timestamp = resolver.timestamp()
    return format_version(version, timestamp,
                          context.short_sha if include_hash else None)

"""Shared fixtures: an in-memory HostingAPI double and a context factory."""

import pytest

from buildver.context import BuildContext
from buildver.errors import RemoteLookupFailed
from buildver.hosts.base import Commit, HostingAPI, PullRequest, Release

SHA = "699a10d86efd595503aa8c3ecfff753a7ed3cbd4"
COMMIT_DATE = "2020-01-01T00:00:00Z"
COMMIT_TS = 1577836800


class FakeHost(HostingAPI):
    """HostingAPI backed by dicts. Records every call for assertions.

    Lookups named in `failing` raise RemoteLookupFailed.
    """

    def __init__(self, latest_tag=None, commits=None, pulls=None, failing=()):
        self.latest_tag = latest_tag
        self.commits = dict(commits or {})
        self.pulls = dict(pulls or {})
        self.failing = set(failing)
        self.calls = []

    def _record(self, kind, *args):
        self.calls.append((kind,) + args)
        if kind in self.failing:
            raise RemoteLookupFailed(f"{kind} lookup failed")

    def calls_to(self, kind):
        return [c for c in self.calls if c[0] == kind]

    def get_latest_release(self, owner, repo):
        self._record("release", owner, repo)
        if self.latest_tag is None:
            return None
        return Release(self.latest_tag)

    def get_commit(self, owner, repo, sha):
        self._record("commit", owner, repo, sha)
        return self.commits.get(sha)

    def get_pull_request(self, owner, repo, number):
        self._record("pull", owner, repo, number)
        return self.pulls.get(number)

    def add_pull(self, number, head_ref="feature", base_ref="main", labels=()):
        self.pulls[number] = PullRequest(number, head_ref, base_ref, labels)


@pytest.fixture
def host():
    """Latest release v1.0.0 and a known commit date for SHA."""
    return FakeHost(
        latest_tag="v1.0.0",
        commits={SHA: Commit("Initial commit", COMMIT_DATE)},
    )


@pytest.fixture
def make_context():
    """Build a BuildContext with sensible defaults for testing."""
    def _make(event_name="push", ref="refs/heads/main", **overrides):
        fields = dict(sha=SHA, owner="owner", repo="repo", default_branch="main")
        fields.update(overrides)
        return BuildContext(event_name=event_name, ref=ref, **fields)
    return _make

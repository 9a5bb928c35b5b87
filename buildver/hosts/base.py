"""Abstract base class for source-hosting API lookups."""

from abc import ABC, abstractmethod


class Release:
    """The release a repository marks as latest."""

    def __init__(self, tag_name):
        self.tag_name = tag_name

    def __repr__(self):
        return f"Release(tag_name={self.tag_name!r})"


class Commit:
    """Commit metadata needed for versioning."""

    def __init__(self, message, committer_date):
        self.message = message
        self.committer_date = committer_date  # ISO-8601 string as returned by the API

    def __repr__(self):
        return (f"Commit(message={self.message!r}, "
                f"committer_date={self.committer_date!r})")


class PullRequest:
    """A pull request's branches and label names."""

    def __init__(self, number, head_ref, base_ref, labels=()):
        self.number = number
        self.head_ref = head_ref
        self.base_ref = base_ref
        self.labels = tuple(labels)

    def __repr__(self):
        return (f"PullRequest(number={self.number}, head_ref={self.head_ref!r}, "
                f"base_ref={self.base_ref!r}, labels={list(self.labels)})")


class HostingAPI(ABC):
    """Read-only interface to the hosting service.

    Each lookup returns None when the object does not exist and raises
    RemoteLookupFailed for anything else that goes wrong (network errors,
    unexpected status codes, malformed replies).
    """

    @abstractmethod
    def get_latest_release(self, owner, repo):
        """Return the Release marked latest, or None."""
        pass

    @abstractmethod
    def get_commit(self, owner, repo, sha):
        """Return the Commit for sha, or None."""
        pass

    @abstractmethod
    def get_pull_request(self, owner, repo, number):
        """Return PullRequest number, or None."""
        pass

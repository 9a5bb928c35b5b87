"""Source-hosting API clients used for release, commit and pull request lookups."""

from buildver.hosts.base import Commit, HostingAPI, PullRequest, Release
from buildver.hosts.github import GitHubAPI

__all__ = ["Commit", "GitHubAPI", "HostingAPI", "PullRequest", "Release"]

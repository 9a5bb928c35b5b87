"""GitHub REST API implementation of HostingAPI."""

import logging

import httpx

from buildver._version import __app_name__, __version__
from buildver.errors import RemoteLookupFailed
from buildver.hosts.base import Commit, HostingAPI, PullRequest, Release

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
API_VERSION = "2022-11-28"

class GitHubAPI(HostingAPI):
    """
    Synchronous GitHub client built on httpx.Client.

    The token is passed in explicitly; reading it from the environment is the
    caller's job. Anonymous access works for public repositories but is
    heavily rate limited.
    """

    def __init__(self, token=None, base_url=DEFAULT_API_URL, timeout=30.0,
                 transport=None):
        self.base_url = (base_url or DEFAULT_API_URL).rstrip("/")
        self.timeout = timeout
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": API_VERSION,
            "User-Agent": f"{__app_name__}/{__version__}",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.Client(
            base_url=self.base_url,
            headers=headers,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    def close(self):
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def _get_json(self, path):
        """GET path and return the decoded JSON object, or None on 404."""
        try:
            response = self._client.get(path)
        except httpx.HTTPError as e:
            raise RemoteLookupFailed(f"GET {path} failed: {e}") from e

        logger.debug(f"GET {path} -> {response.status_code}")
        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise RemoteLookupFailed(
                f"GET {path} returned unexpected status {response.status_code}")
        try:
            data = response.json()
        except ValueError as e:
            raise RemoteLookupFailed(f"GET {path} returned invalid JSON: {e}") from e
        if data is not None and not isinstance(data, dict):
            raise RemoteLookupFailed(
                f"GET {path} returned {type(data).__name__}, expected an object")
        return data

    def get_latest_release(self, owner, repo):
        path = f"/repos/{owner}/{repo}/releases/latest"
        data = self._get_json(path)
        if not data:
            return None
        tag_name = _field(data, "tag_name", str, path)
        if not tag_name:
            return None
        return Release(tag_name=tag_name)

    def get_commit(self, owner, repo, sha):
        path = f"/repos/{owner}/{repo}/commits/{sha}"
        data = self._get_json(path)
        if not data:
            return None
        commit = _field(data, "commit", dict, path) or {}
        committer = _field(commit, "committer", dict, path) or {}
        return Commit(message=_field(commit, "message", str, path),
                      committer_date=_field(committer, "date", str, path))

    def get_pull_request(self, owner, repo, number):
        path = f"/repos/{owner}/{repo}/pulls/{number}"
        data = self._get_json(path)
        if not data:
            return None
        labels = []
        for label in _field(data, "labels", list, path) or []:
            if not isinstance(label, dict):
                raise RemoteLookupFailed(f"GET {path} returned malformed label: {label!r}")
            name = _field(label, "name", str, path)
            if name:
                labels.append(name)
        head = _field(data, "head", dict, path) or {}
        base = _field(data, "base", dict, path) or {}
        return PullRequest(
            number=_field(data, "number", int, path) or number,
            head_ref=_field(head, "ref", str, path),
            base_ref=_field(base, "ref", str, path),
            labels=labels,
        )


def _field(data, key, kind, path):
    """Return data[key]; a present value of the wrong type is a malformed reply."""
    value = data.get(key)
    if value is not None and not isinstance(value, kind):
        raise RemoteLookupFailed(f"GET {path} returned malformed {key}: {value!r}")
    return value

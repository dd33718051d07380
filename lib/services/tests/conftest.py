"""
Fixtures for the services tests.

FakeGitHub keeps a small git database in memory (blobs, flattened trees, commits and
references per repository) and answers the REST calls GitHubClient makes through an
httpx.MockTransport. Trees are created on top of base_tree with the same rules as the
real API: an entry with sha None deletes its path, a blob entry replaces whatever was at
its path.
"""

import base64
import hashlib
import json
import logging
import re
from typing import Optional, Union

import httpx
import pytest

from gitops_core.clients import GitHubClient
from gitops_core.config import GitHubSettings

# region Fake GitHub

FileSpec = Union[bytes, tuple[bytes, str]]


def _sha(kind: str, payload: object) -> str:
    data = json.dumps(payload, sort_keys=True).encode("utf-8")
    return hashlib.sha1(kind.encode("ascii") + b"\0" + data).hexdigest()


def _blob_sha(data: bytes) -> str:
    return hashlib.sha1(f"blob {len(data)}\0".encode("ascii") + data).hexdigest()


class FakeGitHub:
    def __init__(self) -> None:
        self.organizations: dict[str, list[dict]] = {}
        self.organization_status: dict[str, int] = {}
        self.blobs: dict[str, bytes] = {}
        # tree sha -> {path: (mode, blob sha)} holding blobs only
        self.trees: dict[str, dict[str, tuple[str, str]]] = {}
        self.commits: dict[str, dict] = {}
        self.refs: dict[tuple[str, str], str] = {}
        self.requests: list[tuple[str, str]] = []
        self.rate_limited_repos: set[str] = set()
        self.truncate_trees = False
        # (repo, ref) -> (read number, commit sha to move the ref to on that read)
        self.move_ref_on_read: dict[tuple[str, str], tuple[int, str]] = {}
        self.ref_reads: dict[tuple[str, str], int] = {}

    # region Seeding

    def add_repository(
        self,
        organization: str,
        name: str,
        files: dict[str, FileSpec],
        default_branch: str = "main",
        **flags,
    ) -> str:
        full_name = f"{organization}/{name}"
        self.organizations.setdefault(organization, []).append(
            {
                "name": name,
                "full_name": full_name,
                "owner": {"login": organization},
                "default_branch": default_branch,
                **flags,
            }
        )
        flat = {}
        for path, spec in files.items():
            content, mode = spec if isinstance(spec, tuple) else (spec, "100644")
            flat[path] = (mode, self._store_blob(content))
        tree_sha = self._store_tree(flat)
        commit_sha = self._store_commit(tree_sha, [], "initial")
        self.refs[(full_name, f"heads/{default_branch}")] = commit_sha
        return commit_sha

    def commit_files(
        self, full_name: str, files: dict[str, bytes], ref: str = "heads/main"
    ) -> str:
        """Move *ref* to a new commit adding *files* (simulates someone else pushing)."""
        head = self.refs[(full_name, ref)]
        flat = dict(self.trees[self.commits[head]["tree"]])
        for path, content in files.items():
            flat[path] = ("100644", self._store_blob(content))
        commit_sha = self._store_commit(self._store_tree(flat), [head], "concurrent")
        self.refs[(full_name, ref)] = commit_sha
        return commit_sha

    def _store_blob(self, content: bytes) -> str:
        sha = _blob_sha(content)
        self.blobs[sha] = content
        return sha

    def _store_tree(self, flat: dict[str, tuple[str, str]]) -> str:
        sha = _sha("tree", sorted(flat.items()))
        self.trees[sha] = dict(flat)
        return sha

    def _store_commit(self, tree: str, parents: list[str], message: str) -> str:
        payload = {"tree": tree, "parents": parents, "message": message, "n": len(self.commits)}
        sha = _sha("commit", payload)
        self.commits[sha] = payload
        return sha

    # endregion
    # region Inspection

    def head(self, full_name: str, ref: str = "heads/main") -> str:
        return self.refs[(full_name, ref)]

    def files(self, full_name: str, ref: str = "heads/main") -> dict[str, bytes]:
        flat = self.trees[self.commits[self.head(full_name, ref)]["tree"]]
        return {path: self.blobs[sha] for path, (_, sha) in flat.items()}

    def modes(self, full_name: str, ref: str = "heads/main") -> dict[str, str]:
        flat = self.trees[self.commits[self.head(full_name, ref)]["tree"]]
        return {path: mode for path, (mode, _) in flat.items()}

    def writes(self) -> list[tuple[str, str]]:
        return [r for r in self.requests if r[0] in ("POST", "PATCH")]

    def count(self, method: str, suffix: str) -> int:
        return len([r for r in self.requests if r[0] == method and r[1].endswith(suffix)])

    # endregion
    # region Tree Listing

    def _listing(self, flat: dict[str, tuple[str, str]], recursive: bool) -> list[dict]:
        directories: dict[str, list] = {}
        for path, value in flat.items():
            parts = path.split("/")
            for i in range(1, len(parts)):
                directories.setdefault("/".join(parts[:i]), []).append((path, value))
        entries = [
            {"path": d, "mode": "040000", "type": "tree", "sha": _sha("dir", sorted(items))}
            for d, items in directories.items()
        ]
        entries += [
            {
                "path": path,
                "mode": mode,
                "type": "blob",
                "sha": sha,
                "size": len(self.blobs[sha]),
            }
            for path, (mode, sha) in flat.items()
        ]
        if not recursive:
            entries = [e for e in entries if "/" not in e["path"]]
        return sorted(entries, key=lambda e: e["path"])

    def _apply_delta(
        self, base: dict[str, tuple[str, str]], delta: list[dict]
    ) -> dict[str, tuple[str, str]]:
        flat = dict(base)
        for item in delta:
            path = item["path"]
            below = [p for p in flat if p.startswith(path + "/")]
            if item["sha"] is None:
                flat.pop(path, None)
                for p in below:
                    del flat[p]
                continue
            if item["type"] != "blob":
                continue
            if item["sha"] not in self.blobs:
                raise AssertionError(f"tree references unknown blob {item['sha']}")
            for p in below:
                del flat[p]
            parts = path.split("/")
            for i in range(1, len(parts)):
                flat.pop("/".join(parts[:i]), None)
            flat[path] = (item["mode"], item["sha"])
        return flat

    # endregion
    # region Transport

    def handle(self, request: httpx.Request) -> httpx.Response:
        method, path = request.method, request.url.path
        self.requests.append((method, path))
        body = json.loads(request.content) if request.content else {}

        match = re.match(r"^/orgs/([^/]+)/repos$", path)
        if match:
            organization = match.group(1)
            status = self.organization_status.get(organization)
            if status:
                return httpx.Response(status, json={"message": "unavailable"})
            if organization not in self.organizations:
                return httpx.Response(404, json={"message": "Not Found"})
            return httpx.Response(200, json=self.organizations[organization])

        match = re.match(r"^/repos/([^/]+)/([^/]+)/(git/[a-z]+|contents)/?(.*)$", path)
        if not match:
            return httpx.Response(404, json={"message": "Not Found"})
        full_name = f"{match.group(1)}/{match.group(2)}"
        kind, rest = match.group(3), match.group(4)
        if full_name in self.rate_limited_repos:
            return httpx.Response(
                403,
                json={"message": "API rate limit exceeded"},
                headers={"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": "1700000000"},
            )

        if kind == "git/ref" and method == "GET":
            return self._read_ref(full_name, rest)
        if kind == "git/refs" and method == "PATCH":
            return self._update_ref(full_name, rest, body)
        if kind == "git/commits":
            if method == "POST":
                sha = self._store_commit(body["tree"], body["parents"], body["message"])
                return httpx.Response(201, json={"sha": sha})
            commit = self.commits.get(rest)
            if commit is None:
                return httpx.Response(404, json={"message": "Not Found"})
            return httpx.Response(
                200,
                json={
                    "sha": rest,
                    "tree": {"sha": commit["tree"]},
                    "parents": [{"sha": p} for p in commit["parents"]],
                    "message": commit["message"],
                },
            )
        if kind == "git/trees":
            if method == "POST":
                base = self.trees.get(body.get("base_tree"), {})
                sha = self._store_tree(self._apply_delta(base, body["tree"]))
                return httpx.Response(201, json={"sha": sha})
            flat = self.trees.get(rest)
            if flat is None:
                return httpx.Response(404, json={"message": "Not Found"})
            recursive = request.url.params.get("recursive") == "1"
            return httpx.Response(
                200,
                json={
                    "sha": rest,
                    "tree": self._listing(flat, recursive),
                    "truncated": self.truncate_trees,
                },
            )
        if kind == "git/blobs":
            if method == "POST":
                content = base64.b64decode(body["content"])
                return httpx.Response(201, json={"sha": self._store_blob(content)})
            data = self.blobs.get(rest)
            if data is None:
                return httpx.Response(404, json={"message": "Not Found"})
            encoded = base64.encodebytes(data).decode("ascii")
            return httpx.Response(
                200,
                json={"sha": rest, "content": encoded, "encoding": "base64", "size": len(data)},
            )
        if kind == "contents":
            ref = request.url.params.get("ref")
            head = self.refs.get((full_name, f"heads/{ref}")) if ref else None
            if head is None:
                head = next(
                    sha for (name, _), sha in self.refs.items() if name == full_name
                )
            flat = self.trees[self.commits[head]["tree"]]
            if rest not in flat:
                return httpx.Response(404, json={"message": "Not Found"})
            data = self.blobs[flat[rest][1]]
            return httpx.Response(
                200,
                json={
                    "type": "file",
                    "path": rest,
                    "content": base64.b64encode(data).decode("ascii"),
                    "encoding": "base64",
                    "size": len(data),
                },
            )
        return httpx.Response(404, json={"message": "Not Found"})

    def _read_ref(self, full_name: str, ref: str) -> httpx.Response:
        key = (full_name, ref)
        self.ref_reads[key] = self.ref_reads.get(key, 0) + 1
        planned = self.move_ref_on_read.get(key)
        if planned and planned[0] == self.ref_reads[key]:
            self.refs[key] = planned[1]
        sha = self.refs.get(key)
        if sha is None:
            return httpx.Response(404, json={"message": "Not Found"})
        return httpx.Response(
            200, json={"ref": f"refs/{ref}", "object": {"sha": sha, "type": "commit"}}
        )

    def _update_ref(self, full_name: str, ref: str, body: dict) -> httpx.Response:
        key = (full_name, ref)
        current = self.refs.get(key)
        if current is None:
            return httpx.Response(404, json={"message": "Not Found"})
        new = body["sha"]
        if not body.get("force") and current not in self.commits[new]["parents"]:
            return httpx.Response(422, json={"message": "Update is not a fast forward"})
        self.refs[key] = new
        return httpx.Response(200, json={"ref": f"refs/{ref}", "object": {"sha": new}})

    # endregion


# endregion
# region Fixtures


@pytest.fixture
def logger() -> logging.Logger:
    return logging.getLogger("gitops.tests")


@pytest.fixture
def fake_github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture
def github_settings(monkeypatch) -> GitHubSettings:
    for name in ("GITOPS_GITHUB_API_BASE", "GITOPS_GITHUB_TOKEN", "GITOPS_GITHUB_PER_PAGE"):
        monkeypatch.delenv(name, raising=False)
    return GitHubSettings(api_base="https://api.github.test", token="test-token")


@pytest.fixture
def client(fake_github: FakeGitHub, github_settings, logger):
    with GitHubClient(
        github_settings, logger, transport=httpx.MockTransport(fake_github.handle)
    ) as client:
        yield client


@pytest.fixture
def staging_root(tmp_path):
    return tmp_path / "staging"


# endregion

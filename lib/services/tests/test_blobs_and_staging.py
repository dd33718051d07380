"""
Tests for blob decoding and the staging area.
"""

import base64
import os

import pytest

from gitops_core.errors import ContentDecodeError, EntryNotFoundError, StagingError
from gitops_core.models import GlobOptions, Reference, Repository, StagedFile, TreeEntry
from gitops_services import BlobContentAccessor, StagingArea
from gitops_services.blobs import decode_payload

# region Fixtures

BINARY = bytes(range(256))


@pytest.fixture
def repository(fake_github) -> Repository:
    fake_github.add_repository(
        "acme",
        "app",
        {"logo.bin": BINARY, "README.md": "héllo\n".encode("utf-8"), "bad.txt": b"\xff\xfe"},
    )
    return Repository(owner="acme", name="app")


@pytest.fixture
def blobs(client, logger) -> BlobContentAccessor:
    return BlobContentAccessor(client, logger)


@pytest.fixture
def staging(staging_root, logger):
    with StagingArea(staging_root, Repository(owner="acme", name="app"), logger) as area:
        yield area


def entry_for(fake_github, path: str) -> TreeEntry:
    flat = fake_github.trees[fake_github.commits[fake_github.head("acme/app")]["tree"]]
    mode, sha = flat[path]
    return TreeEntry(path=path, mode=mode, sha=sha)


# endregion
# region Test Blob Content


class TestDecodePayload:
    def test_wrapped_base64(self):
        encoded = base64.encodebytes(BINARY).decode("ascii")
        assert "\n" in encoded
        payload = {"content": encoded, "encoding": "base64", "size": 256}
        assert decode_payload(payload, "logo") == BINARY

    def test_invalid_base64(self):
        with pytest.raises(ContentDecodeError, match="not valid base64"):
            decode_payload({"content": "***", "encoding": "base64"}, "x")

    def test_size_mismatch(self):
        payload = {"content": base64.b64encode(b"abc").decode(), "size": 4}
        with pytest.raises(ContentDecodeError, match="4 were reported"):
            decode_payload(payload, "x")

    def test_utf8_encoding(self):
        assert decode_payload({"content": "ok", "encoding": "utf-8"}, "x") == b"ok"

    def test_unknown_encoding(self):
        with pytest.raises(ContentDecodeError, match="unsupported encoding"):
            decode_payload({"content": "", "encoding": "rot13"}, "x")


class TestBlobContentAccessor:
    def test_binary_content_is_exact(self, blobs, repository, fake_github):
        assert blobs.read_bytes(repository, entry_for(fake_github, "logo.bin")) == BINARY

    def test_read_text(self, blobs, repository, fake_github):
        assert blobs.read_text(repository, entry_for(fake_github, "README.md")) == "héllo\n"

    def test_invalid_utf8(self, blobs, repository, fake_github):
        with pytest.raises(ContentDecodeError, match="UTF-8"):
            blobs.read_text(repository, entry_for(fake_github, "bad.txt"))

    def test_tree_entry_is_not_content(self, blobs, repository):
        entry = TreeEntry(path="src", mode="040000", type="tree", sha="abc")
        with pytest.raises(ContentDecodeError, match="not a blob"):
            blobs.read_bytes(repository, entry)

    def test_missing_blob(self, blobs, repository):
        with pytest.raises(EntryNotFoundError):
            blobs.read_bytes(repository, TreeEntry(path="gone", sha="0" * 40))

    def test_read_path(self, blobs, repository):
        text = blobs.read_path(repository, "README.md", Reference.parse("heads/main"))
        assert text == "héllo\n"


# endregion
# region Test Staging Area


class TestStagingArea:
    def test_scoped_directory_is_removed(self, staging_root, logger):
        repo = Repository(owner="acme", name="app")
        with pytest.raises(RuntimeError):
            with StagingArea(staging_root, repo, logger) as area:
                path = area.path
                assert path.parent == staging_root / "acme"
                assert path.name.startswith("app-")
                area.write_text("a.txt", "a")
                raise RuntimeError("boom")
        assert not path.exists()
        with pytest.raises(StagingError):
            area.path

    def test_paths_must_stay_inside(self, staging):
        with pytest.raises(StagingError):
            staging.resolve("../outside.txt")
        with pytest.raises(StagingError):
            staging.resolve("")

    def test_stage_remembers_explicit_mode(self, staging):
        staging.stage(StagedFile(relative_path="bin/run", content=b"#!/bin/sh\n", mode="100755"))
        assert staging.read_bytes("bin/run") == b"#!/bin/sh\n"
        assert staging.modes == {"bin/run": "100755"}
        staging.remove("bin/run")
        assert staging.modes == {}
        assert not staging.exists("bin/run")

    def test_read_missing_file(self, staging):
        with pytest.raises(StagingError, match="not staged"):
            staging.read_bytes("nothing.txt")

    def test_walk_depth_and_ignore(self, staging):
        staging.write_text("package.json", "{}")
        staging.write_text("package-lock.json", "{}")
        staging.write_text("node_modules/left-pad/index.js", "")
        staging.write_text("src/deep/a.js", "")
        assert [f.relative_path for f in staging.walk(GlobOptions(depth=1))] == [
            "package-lock.json",
            "package.json",
        ]
        everything = staging.walk(GlobOptions(ignore=("node_modules/**",)))
        assert [f.relative_path for f in everything] == [
            "package-lock.json",
            "package.json",
            "src/deep/a.js",
        ]
        assert len(staging.walk()) == 4

    def test_walk_file_flags(self, staging):
        script = staging.write_text("run.sh", "#!/bin/sh\n")
        os.chmod(script, 0o755)
        os.symlink("run.sh", staging.path / "link")
        files = staging.walk(GlobOptions(only_files=True))
        assert [f.relative_path for f in files] == ["run.sh"]
        assert files[0].is_executable
        with_links = {f.relative_path: f for f in staging.walk(GlobOptions(only_files=False))}
        assert with_links["link"].is_symlink
        assert with_links["link"].content == b"run.sh"


# endregion

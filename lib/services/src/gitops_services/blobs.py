# region Docstring
"""
gitops_services.blobs
Reads and decodes file content from the remote store.
Overview:
- read_bytes() fetches a blob by its content hash and decodes the transport encoding
    exactly (base64 or utf-8); the decoded length is checked against the reported size.
- read_text() additionally decodes the bytes as strict UTF-8.
- read_path() reads a file through the contents API when only a path is known.
Error handling:
- An entry that is not a blob, invalid base64 or invalid UTF-8 raises ContentDecodeError.
- A missing blob raises EntryNotFoundError.
- Transport errors propagate, so callers can tell "the content is bad" apart from
    "the network is bad".
"""

# endregion
# region Imports
import base64
import binascii
from logging import Logger as T_Logger
from typing import Any, Optional

from gitops_core.clients import GitHubClient
from gitops_core.errors import ContentDecodeError
from gitops_core.models import Reference, Repository, TreeEntry

# endregion
# region Helpers


def decode_payload(payload: dict[str, Any], label: str) -> bytes:
    """
    Decode a blob or contents API payload into its exact bytes.

    Raises:
        ContentDecodeError: Unknown encoding, invalid base64 or a size mismatch.
    """
    encoding = payload.get("encoding", "base64")
    content = payload.get("content") or ""
    if encoding == "base64":
        try:
            data = base64.b64decode("".join(content.split()), validate=True)
        except (binascii.Error, ValueError) as e:
            raise ContentDecodeError(f"{label} is not valid base64: {e}") from e
    elif encoding in ("utf-8", "utf8"):
        data = content.encode("utf-8")
    else:
        raise ContentDecodeError(f"{label} uses unsupported encoding '{encoding}'")

    size = payload.get("size")
    if isinstance(size, int) and size != len(data):
        raise ContentDecodeError(
            f"{label} decoded to {len(data)} bytes but {size} were reported"
        )
    return data


def decode_text(data: bytes, label: str) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ContentDecodeError(f"{label} is not valid UTF-8: {e}") from e


# endregion
# region Blob Accessor


class BlobContentAccessor:
    """
    Read-only access to file content. Never changes remote state.
    """

    __client: GitHubClient
    __logger: T_Logger

    def __init__(self, client: GitHubClient, logger: T_Logger) -> None:
        self.__client = client
        self.__logger = logger.getChild(self.__class__.__name__)

    def read_bytes(self, repository: Repository, entry: TreeEntry) -> bytes:
        if entry.type != "blob":
            raise ContentDecodeError(
                f"{entry.path} in {repository.full_name} is a {entry.type}, not a blob"
            )
        payload = self.__client.get_blob(repository.owner, repository.name, entry.sha)
        label = f"{entry.path} ({entry.sha[:7]}) in {repository.full_name}"
        data = decode_payload(payload, label)
        self.__logger.debug(
            f"Read {len(data)} bytes of {label}",
            extra={"repository": repository.full_name},
        )
        return data

    def read_text(self, repository: Repository, entry: TreeEntry) -> str:
        data = self.read_bytes(repository, entry)
        return decode_text(data, f"{entry.path} in {repository.full_name}")

    def read_path(
        self, repository: Repository, path: str, ref: Optional[Reference] = None
    ) -> str:
        """Read a file by *path* at *ref* through the contents API."""
        payload = self.__client.get_content(
            repository.owner, repository.name, path, ref
        )
        if isinstance(payload, list) or payload.get("type") not in (None, "file"):
            raise ContentDecodeError(f"{path} in {repository.full_name} is not a file")
        label = f"{path} in {repository.full_name}"
        return decode_text(decode_payload(payload, label), label)


# endregion

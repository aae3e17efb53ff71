"""Whole-file transfer over SFTP."""

from __future__ import annotations

from typing import IO, Union

from .errors import TransferError
from .session import Session

LocalTarget = Union[str, IO[bytes]]


def download(session: Session, remote_path: str, local: LocalTarget) -> None:
    """Copy *remote_path* to a local path or binary file object."""
    try:
        with session.open_sftp() as sftp:
            if isinstance(local, str):
                sftp.get(remote_path, local)
            else:
                sftp.getfo(remote_path, local)
    except OSError as e:
        raise TransferError(
            f"Could not download {remote_path}: {e}"
        ) from e


def upload(session: Session, remote_path: str, content: bytes) -> None:
    """Write *content* to *remote_path*, replacing any existing file."""
    try:
        with session.open_sftp() as sftp:
            with sftp.open(remote_path, "wb") as f:
                f.write(content)
    except OSError as e:
        raise TransferError(f"Could not upload {remote_path}: {e}") from e

"""Remote path resolution bound to a live SFTP handle."""

import stat
from dataclasses import dataclass
from typing import List

from paramiko import SFTPAttributes, SFTPClient


def join_remote(parent: str, name: str) -> str:
    """Join a remote directory and an entry name with a single ``/``."""
    if parent.endswith("/"):
        return f"{parent}{name}"
    return f"{parent}/{name}"


@dataclass(frozen=True)
class RemotePath:
    """A remote path together with the SFTP handle it is addressed through.

    Every remote call goes through the handle carried here, so a path can only
    be used with the session that resolved it.
    """
    client: SFTPClient
    path: str

    def child(self, name: str) -> "RemotePath":
        return RemotePath(self.client, join_remote(self.path, name))

    def open(self, mode: str):
        return self.client.open(self.path, mode)

    def stat(self) -> SFTPAttributes:
        return self.client.stat(self.path)

    def is_dir(self) -> bool:
        try:
            attrs = self.stat()
        except IOError:
            return False
        return attrs.st_mode is not None and stat.S_ISDIR(attrs.st_mode)

    def mkdir(self, mode: int) -> None:
        self.client.mkdir(self.path, mode)

    def remove(self) -> None:
        self.client.remove(self.path)

    def listdir_attr(self) -> List[SFTPAttributes]:
        return self.client.listdir_attr(self.path)


def resolve_remote_path(client: SFTPClient, path: str) -> RemotePath:
    """Bind ``path`` to ``client``."""
    return RemotePath(client, path)

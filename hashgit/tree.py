"""Turn a directory into a tree of objects."""

import logging
from typing import List, Tuple, Union

import fs as pyfs
from fs.base import FS
from fs.enums import ResourceType
from fs.info import Info

from .objects import (
    MODE_EXECUTABLE,
    MODE_FILE,
    MODE_REGULAR,
    MODE_SYMLINK,
    MODE_TREE,
    NAME_ENCODING,
    Blob,
    Object,
    Tree,
    TreeEntry,
    is_file,
)
from .utils import fs_errors, load_fs

logger = logging.getLogger(__name__)

#: Entries starting with this are left out, which excludes ``.git`` itself.
HIDDEN_PREFIX = "."


def build_tree(root: Union[FS, str],
               path: str = "/",
               hidden_prefix: str = HIDDEN_PREFIX) -> Tuple[Tree, List[Object]]:
    """Build the canonical tree for the directory `path` of `root`.

    Nothing is written. The caller persists the returned objects, for
    instance with repeated :meth:`ObjectStore.save` calls.

    Args:
        root: Filesystem or directory path to read from.
        path: Directory within `root` to build from.
        hidden_prefix: Entries whose name starts with this are skipped. An
            empty string skips nothing.

    Returns:
        tuple: The root tree and every object it contains at any depth,
        blobs and subtrees, ending with the root tree itself. Children always
        come before the tree that refers to them.
    """
    filesystem = load_fs(root)
    collected = []
    tree = _build(filesystem, path, hidden_prefix, collected)
    return tree, collected


def _build(filesystem: FS, path: str, hidden_prefix: str, collected: List[Object]) -> Tree:
    with fs_errors("list", path):
        infos = list(filesystem.scandir(path, namespaces=["link"]))

    entries = []
    for info in infos:
        if hidden_prefix and info.name.startswith(hidden_prefix):
            logger.debug("Skipping hidden entry %s", pyfs.path.join(path, info.name))
            continue

        child = pyfs.path.join(path, info.name)

        if info.has_namespace("link") and info.is_link:
            # Stored as a blob of the target text, never followed.
            blob = Blob(info.target.encode(*NAME_ENCODING))
            collected.append(blob)
            entries.append(TreeEntry(MODE_SYMLINK, info.name, blob.id))
            continue

        if info.is_dir:
            subtree = _build(filesystem, child, hidden_prefix, collected)
            entries.append(TreeEntry(MODE_TREE, info.name, subtree.id))
            continue

        with fs_errors("stat", child):
            details = filesystem.getinfo(child, namespaces=["details", "access", "stat"])

        if not is_file(_stat_mode(details)):
            logger.debug("Skipping %s, not a regular file", child)
            continue

        with fs_errors("read", child):
            blob = Blob(filesystem.readbytes(child))
        collected.append(blob)
        mode = MODE_EXECUTABLE if _is_executable(details) else MODE_FILE
        entries.append(TreeEntry(mode, info.name, blob.id))

    tree = Tree.from_entries(entries)
    collected.append(tree)
    return tree


def _stat_mode(info: Info) -> int:
    """Return the POSIX mode of `info`. Filesystems without a ``stat``
    namespace only report the resource type, which is mapped onto the
    regular file bits.
    """
    if info.has_namespace("stat"):
        return info.get("stat", "st_mode", 0)
    return MODE_REGULAR if info.type is ResourceType.file else 0


def _is_executable(info: Info) -> bool:
    if not info.has_namespace("access"):
        return False
    permissions = info.permissions
    return permissions is not None and "u_x" in permissions

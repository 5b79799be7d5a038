# -*- coding: utf-8 -*-
"""
Local tree enumeration for SharePoint import.

The source directory is walked once, pre-order, so every directory appears
before its subdirectories and the folder synchronizer can create parents
before children.
"""

import os

from .models import DirEntry, FileEntry, LocalTree
from .utils import is_debug_enabled


def to_relative_path(root, path):
    """
    Return `path` relative to `root` with forward slashes.

    Examples:
        >>> to_relative_path('/tmp/content', '/tmp/content/sub/b.txt')
        'sub/b.txt'
    """
    return os.path.relpath(path, root).replace(os.sep, '/')


def _walk(root, directory, directories, files):
    """Pre-order walk: record each directory, then recurse into it."""
    with os.scandir(directory) as it:
        entries = sorted(it, key=lambda e: e.name)

    for entry in entries:
        if entry.is_dir(follow_symlinks=False):
            if is_debug_enabled():
                print(f"[DEBUG] Adding directory and recursing it: {entry.name}")
            directories.append(DirEntry(to_relative_path(root, entry.path)))
            _walk(root, entry.path, directories, files)
        elif entry.is_file(follow_symlinks=False):
            files.append(FileEntry(to_relative_path(root, entry.path), os.path.abspath(entry.path)))
        elif is_debug_enabled():
            print(f"[DEBUG] Skipping non-file/non-directory item: {entry.name}")


def build_local_tree(root):
    """
    Enumerate a local directory tree.

    Args:
        root (str): Source directory (e.g. the extracted import zip)

    Returns:
        LocalTree: directories in pre-order and files, both relative to root

    Raises:
        NotADirectoryError: If root is not a directory

    Examples:
        >>> tree = build_local_tree('content')   # content/a.txt, content/sub/b.txt
        >>> [d.relative_path for d in tree.directories]
        ['sub']
        >>> [f.relative_path for f in tree.files]
        ['a.txt', 'sub/b.txt']
    """
    if not os.path.isdir(root):
        raise NotADirectoryError(f"Source directory not found: {root}")

    directories = []
    files = []
    _walk(root, root, directories, files)

    print(f"[*] Found {len(files)} file(s) in {len(directories)} folder(s) under {root}")
    return LocalTree(root=os.path.abspath(root), directories=tuple(directories), files=tuple(files))

import os
from typing import Optional


def normalize_path(path: str) -> str:
    return os.path.normcase(os.path.abspath(path))


def is_under(path: str, root: str) -> bool:
    """True if `path` lies inside the directory `root`."""
    path = normalize_path(path)
    root = normalize_path(root)
    try:
        return os.path.commonpath([path, root]) == root
    except ValueError:
        # Different drives on Windows
        return False


def top_level_dir(path: str, root: str) -> Optional[str]:
    """
    Name of the first directory below `root` containing `path`.

    `/wp/plugins/akismet/lib/x.py` under `/wp/plugins` -> "akismet".
    A file placed directly in `root` yields its own basename without
    extension (single-file plugins).
    """
    if not is_under(path, root):
        return None
    rel = os.path.relpath(normalize_path(path), normalize_path(root))
    parts = rel.split(os.sep)
    if not parts or parts[0] in ("", os.curdir):
        return None
    if len(parts) == 1:
        return os.path.splitext(parts[0])[0]
    return parts[0]

# key_path.py
# Dotted key paths and the path -> ordered keys mapping
#
# The scanner keeps one KeyPath per parse. Every time an object opens, the
# name of the key that introduced it (or the root sentinel) is pushed; every
# close pops exactly one name. The joined stack is the lookup key for that
# object's ordered key list.

from typing import Dict, List

# Mapping from full dotted path to the keys declared there, in source order.
KeyPathMap = Dict[str, List[str]]

PATH_SEPARATOR = "."


class PathNotFound(KeyError):
    """Raised by lookup() when no object was recorded under a path."""


# ---------------------------------------------------------------------------
# KEY PATH STACK
# ---------------------------------------------------------------------------
class KeyPath:
    """
    Stack of key names from the document root to the object being scanned.

    len(path) is always the number of objects still open.
    """
    def __init__(self) -> None:
        self._names: List[str] = []

    def push(self, name: str) -> None:
        self._names.append(name)

    def pop(self) -> str:
        if not self._names:
            raise IndexError("pop from empty key path")
        return self._names.pop()

    @property
    def full_path(self) -> str:
        # Recomputed on access; it only changes at object boundaries.
        return PATH_SEPARATOR.join(self._names)

    def is_at_root(self) -> bool:
        """True once every opened object has been closed again."""
        return not self._names

    def __len__(self) -> int:
        return len(self._names)

    def __repr__(self) -> str:
        return f"KeyPath({self.full_path!r})"


# ---------------------------------------------------------------------------
# MAPPING BUILDER
# ---------------------------------------------------------------------------
def register_path(keys: KeyPathMap, full_path: str) -> None:
    """Seed an empty key list for a freshly opened object."""
    keys.setdefault(full_path, [])


def record_key(keys: KeyPathMap, full_path: str, name: str) -> None:
    """
    Append one key to the list stored under full_path.

    Pure append: repeated keys are kept, nothing is sorted.
    """
    if full_path not in keys:
        keys[full_path] = [name]
    else:
        keys[full_path].append(name)


def lookup(keys: KeyPathMap, path: str) -> List[str]:
    try:
        return keys[path]
    except KeyError:
        raise PathNotFound(f"path not found: {path}") from None

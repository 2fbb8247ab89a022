"""
Callback provenance.

Maps a registered hook callback back to the source file that declares it,
and that file to an owning component (a plugin, the active theme, core).

Pipeline
--------
1. `resolve_source_location(callback)` -> (kind, file, line) via `inspect`.
2. `PathClassifier.classify(file)` applies a fixed rule order:
       plugins root -> theme root -> core root -> "unknown"
3. `ProvenanceCache` memoizes file -> owner for the process lifetime.

Failures never propagate: anything that cannot be inspected becomes
`CallbackInfo(kind=UNKNOWN, owning_component="unknown")`.
"""

import functools
import inspect
import os
import re
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from wppa.loggers.error_log import get_error_logger
from wppa.utils.paths import is_under, normalize_path, top_level_dir

UNKNOWN_COMPONENT = "unknown"
CORE_COMPONENT = "core"
THEME_COMPONENT = "active theme"

# Same header WordPress' get_file_data() reads for plugin names
_PLUGIN_NAME_RE = re.compile(r"^[ \t/*#@]*Plugin Name:(.*)$", re.MULTILINE | re.IGNORECASE)
_MANIFEST_READ_BYTES = 8192
_MANIFEST_SUFFIXES = (".php", ".py")


class CallbackKind(str, Enum):
    FUNCTION = "function"
    METHOD = "method"
    STATIC_METHOD = "staticMethod"
    CLOSURE = "closure"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class CallbackInfo:
    kind: CallbackKind
    source_file: Optional[str]
    source_line: Optional[int]
    owning_component: str
    name: str = ""

    def to_wire(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "source_file": self.source_file,
            "source_line": self.source_line,
            "owning_component": self.owning_component,
            "name": self.name,
        }


def _is_closure(func: Any) -> bool:
    parts = getattr(func, "__qualname__", "").split(".")
    return parts[-1] == "<lambda>" or (len(parts) >= 2 and parts[-2] == "<locals>")


def _callback_kind(callback: Any) -> Tuple[CallbackKind, Any]:
    """
    Classify a callable and return the function object whose code
    describes it.
    """
    if isinstance(callback, functools.partial):
        return _callback_kind(callback.func)

    if inspect.ismethod(callback):
        func = callback.__func__
        if inspect.isclass(callback.__self__):
            # classmethod bound to its class
            return CallbackKind.STATIC_METHOD, func
        return CallbackKind.METHOD, func

    if inspect.isfunction(callback):
        if _is_closure(callback):
            return CallbackKind.CLOSURE, callback
        if "." in callback.__qualname__:
            # staticmethod reached through its class
            return CallbackKind.STATIC_METHOD, callback
        return CallbackKind.FUNCTION, callback

    if inspect.isbuiltin(callback) or inspect.isclass(callback):
        return CallbackKind.UNKNOWN, None

    call = getattr(type(callback), "__call__", None)
    if inspect.isfunction(call):
        # Invokable object: attributed to its __call__ method
        return CallbackKind.METHOD, call

    return CallbackKind.UNKNOWN, None


def resolve_source_location(
    callback: Any,
) -> Tuple[CallbackKind, Optional[str], Optional[int]]:
    """
    Resolve the declaring source file and first line of `callback`.

    Raises whatever `inspect` raises for exotic objects; callers that must
    not fail use `describe_callback`.
    """
    kind, func = _callback_kind(callback)
    if func is None:
        return kind, None, None

    func = inspect.unwrap(func)
    code = getattr(func, "__code__", None)
    if code is None:
        return CallbackKind.UNKNOWN, None, None
    return kind, code.co_filename, code.co_firstlineno


def callback_name(callback: Any) -> str:
    if isinstance(callback, functools.partial):
        return callback_name(callback.func)
    name = getattr(callback, "__qualname__", None) or getattr(callback, "__name__", None)
    if name:
        return str(name)
    return type(callback).__qualname__


def read_manifest_name(plugin_dir: str, slug: str) -> Optional[str]:
    """
    Human-readable plugin name from `<slug>/<slug>.php` (or `.py`) headers.

    Only the first 8 KiB are read, like WordPress does.
    """
    for suffix in _MANIFEST_SUFFIXES:
        path = os.path.join(plugin_dir, slug + suffix)
        if not os.path.isfile(path):
            continue
        try:
            with open(path, "r", encoding="utf-8", errors="replace") as f:
                head = f.read(_MANIFEST_READ_BYTES)
        except OSError:
            continue
        m = _PLUGIN_NAME_RE.search(head)
        if m:
            name = m.group(1).strip().rstrip("*/").strip()
            if name:
                return name
    return None


@dataclass(frozen=True)
class ProvenanceRule:
    label: str
    root: str


class PathClassifier:
    """
    Ordered path -> owning component policy.

    Rule order is fixed and exposed via `rules`:
        plugins -> theme -> core
    The first rule whose root contains the path wins; otherwise "unknown".
    """

    PLUGINS = "plugins"
    THEME = "theme"
    CORE = "core"

    def __init__(
        self,
        plugins_dir: str,
        themes_dir: str,
        core_dir: str,
        manifest_reader: Callable[[str, str], Optional[str]] = read_manifest_name,
    ) -> None:
        self.plugins_dir = normalize_path(plugins_dir)
        self.themes_dir = normalize_path(themes_dir)
        self.core_dir = normalize_path(core_dir)
        self._manifest_reader = manifest_reader

    @property
    def rules(self) -> List[ProvenanceRule]:
        return [
            ProvenanceRule(self.PLUGINS, self.plugins_dir),
            ProvenanceRule(self.THEME, self.themes_dir),
            ProvenanceRule(self.CORE, self.core_dir),
        ]

    def plugin_slug(self, path: str) -> Optional[str]:
        return top_level_dir(path, self.plugins_dir)

    def classify(self, path: Optional[str]) -> str:
        if not path:
            return UNKNOWN_COMPONENT
        for rule in self.rules:
            if not is_under(path, rule.root):
                continue
            if rule.label == self.PLUGINS:
                slug = self.plugin_slug(path)
                if slug is None:
                    continue
                plugin_dir = os.path.join(self.plugins_dir, slug)
                return self._manifest_reader(plugin_dir, slug) or slug
            if rule.label == self.THEME:
                return THEME_COMPONENT
            return CORE_COMPONENT
        return UNKNOWN_COMPONENT


class ProvenanceCache:
    """
    Append-only file path -> owning component map.

    Reads are lock-free; inserts take a single lock so concurrent requests
    sharing a worker never race on the same key.
    """

    def __init__(self) -> None:
        self._owners: Dict[str, str] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._owners)

    def __contains__(self, path: str) -> bool:
        return path in self._owners

    def get(self, path: str) -> Optional[str]:
        return self._owners.get(path)

    def get_or_resolve(self, path: str, resolve: Callable[[str], str]) -> str:
        owner = self._owners.get(path)
        if owner is not None:
            return owner
        owner = resolve(path)
        with self._lock:
            return self._owners.setdefault(path, owner)

    def clear(self) -> None:
        with self._lock:
            self._owners.clear()


# Process-wide: path -> owner never changes within one process run
_PROVENANCE_CACHE = ProvenanceCache()


def get_provenance_cache() -> ProvenanceCache:
    return _PROVENANCE_CACHE


_logger = get_error_logger("provenance")


def describe_callback(
    callback: Any,
    classifier: PathClassifier,
    cache: Optional[ProvenanceCache] = None,
) -> CallbackInfo:
    """Resolve a CallbackInfo for `callback`. Never raises."""
    cache = _PROVENANCE_CACHE if cache is None else cache
    try:
        name = callback_name(callback)
    except Exception:
        name = ""

    try:
        kind, source_file, source_line = resolve_source_location(callback)
        if source_file is None:
            return CallbackInfo(kind, None, None, UNKNOWN_COMPONENT, name)
        owner = cache.get_or_resolve(source_file, classifier.classify)
        return CallbackInfo(kind, source_file, source_line, owner, name)
    except Exception as e:
        _logger.error(f"[WPPA] provenance resolution failed for {name or callback!r}: {e}")
        return CallbackInfo(CallbackKind.UNKNOWN, None, None, UNKNOWN_COMPONENT, name)

"""
In-process hook host.

A small WordPress-style action/filter registry. It is the embedding
surface the instrumentation core subscribes to, and what the tests drive.

Semantics
---------
- Callbacks run in ascending priority, registration order within a priority.
- Registering the same callable twice at the same priority is a no-op.
- The special "all" hook is fired before every dispatch with the hook name
  as first argument.
- The callback set of a dispatch is snapshotted *after* "all" has run, so a
  callback added from an "all" subscriber takes part in that same dispatch.
- Callbacks receive at most `accepted_args` positional arguments.
"""

import sys
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional


@dataclass(frozen=True)
class RegisteredCallback:
    callback: Callable[..., Any]
    priority: int
    accepted_args: int
    order: int


class HookRegistry:
    ALL_HOOK = "all"
    FIRST_PRIORITY = -sys.maxsize - 1
    LAST_PRIORITY = sys.maxsize

    def __init__(self) -> None:
        self._hooks: Dict[str, List[RegisteredCallback]] = {}
        self._counter = 0
        self._current: List[str] = []
        self._fired: Dict[str, int] = {}

    def add_filter(
        self,
        hook_name: str,
        callback: Callable[..., Any],
        priority: int = 10,
        accepted_args: int = 1,
    ) -> None:
        entries = self._hooks.setdefault(hook_name, [])
        for e in entries:
            if e.priority == priority and e.callback == callback:
                return
        self._counter += 1
        entries.append(
            RegisteredCallback(
                callback=callback,
                priority=int(priority),
                accepted_args=int(accepted_args),
                order=self._counter,
            )
        )

    add_action = add_filter

    def remove_filter(
        self, hook_name: str, callback: Callable[..., Any], priority: int = 10
    ) -> bool:
        entries = self._hooks.get(hook_name, [])
        for i, e in enumerate(entries):
            if e.priority == priority and e.callback == callback:
                del entries[i]
                return True
        return False

    remove_action = remove_filter

    def has_callbacks(self, hook_name: str) -> bool:
        return bool(self._hooks.get(hook_name))

    def entries(self, hook_name: str) -> List[RegisteredCallback]:
        """Snapshot of registrations for `hook_name` in dispatch order."""
        return sorted(
            self._hooks.get(hook_name, []), key=lambda e: (e.priority, e.order)
        )

    def callbacks(self, hook_name: str) -> List[Callable[..., Any]]:
        """Snapshot of registered callables for `hook_name` in dispatch order."""
        return [e.callback for e in self.entries(hook_name)]

    def current_hook(self) -> Optional[str]:
        """Name of the hook being dispatched (innermost when nested)."""
        return self._current[-1] if self._current else None

    def did_action(self, hook_name: str) -> int:
        return self._fired.get(hook_name, 0)

    def _call_all_hook(self, hook_name: str, args: tuple) -> None:
        if hook_name == self.ALL_HOOK:
            return
        for e in self.entries(self.ALL_HOOK):
            e.callback(hook_name, *args)

    def apply_filters(self, hook_name: str, value: Any = None, *args: Any) -> Any:
        self._fired[hook_name] = self._fired.get(hook_name, 0) + 1
        self._current.append(hook_name)
        try:
            self._call_all_hook(hook_name, (value,) + args)
            for e in self.entries(hook_name):
                call_args = ((value,) + args)[: e.accepted_args]
                value = e.callback(*call_args)
            return value
        finally:
            self._current.pop()

    def do_action(self, hook_name: str, *args: Any) -> None:
        self._fired[hook_name] = self._fired.get(hook_name, 0) + 1
        self._current.append(hook_name)
        try:
            self._call_all_hook(hook_name, args)
            for e in self.entries(hook_name):
                e.callback(*args[: e.accepted_args])
        finally:
            self._current.pop()

"""
Hook engine: ordered pre/post interception of service operations.

Hooks registered for an event run in descending priority, ties in
registration order. Each hook receives a deep copy of the running context,
so in-place edits never reach the caller; a mapping it returns is
shallow-merged into the context before the next hook runs.
What happens when a hook raises depends on the failure policy:

* SWALLOW (default): the failure is dropped and the context stays as it was
  before that hook, so one broken hook never aborts the chain or the
  operation;
* PROPAGATE: the exception escapes and aborts the operation;
* COLLECT: like SWALLOW, but the failure is kept for drain_failures().
"""

from __future__ import annotations

import copy
import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union

logger = logging.getLogger(__name__)

HookContext = Dict[str, Any]
HookResult = Optional[Mapping[str, Any]]
HookCallback = Callable[[HookContext], Union[HookResult, Awaitable[HookResult]]]


class HookFailurePolicy(str, Enum):
    SWALLOW = "swallow"
    PROPAGATE = "propagate"
    COLLECT = "collect"


@dataclass(frozen=True)
class Hook:
    event: str
    callback: HookCallback
    priority: int = 0


@dataclass(frozen=True)
class HookFailure:
    event: str
    hook: Hook
    error: BaseException


class HookManager:
    """Registry of hooks keyed by event name, owned by one UserManagement session."""

    def __init__(self, failure_policy: Union[HookFailurePolicy, str] = HookFailurePolicy.SWALLOW):
        self.failure_policy = HookFailurePolicy(failure_policy)
        self._hooks: Dict[str, List[Hook]] = {}
        self._failures: List[HookFailure] = []

    def register_hook(self, event: str, callback: HookCallback, priority: int = 0) -> Hook:
        if not callable(callback):
            raise TypeError("hook callback must be callable")
        hook = Hook(event=event, callback=callback, priority=priority)
        hooks = self._hooks.setdefault(event, [])
        hooks.append(hook)
        # list.sort is stable, so equal priorities keep registration order
        hooks.sort(key=lambda h: -h.priority)
        return hook

    def remove_hook(self, event: str, callback: HookCallback) -> bool:
        hooks = self._hooks.get(event)
        if not hooks:
            return False
        for index, hook in enumerate(hooks):
            if hook.callback is callback:
                del hooks[index]
                return True
        return False

    def remove_all_hooks(self, event: Optional[str] = None) -> None:
        if event is None:
            self._hooks.clear()
        else:
            self._hooks.pop(event, None)

    def get_hooks(self, event: Optional[str] = None) -> List[Hook]:
        if event is not None:
            return list(self._hooks.get(event, []))
        return [hook for hooks in self._hooks.values() for hook in hooks]

    def drain_failures(self) -> List[HookFailure]:
        failures, self._failures = self._failures, []
        return failures

    async def execute_hooks(self, event: str, context: Optional[Mapping[str, Any]] = None) -> HookContext:
        result: HookContext = copy.deepcopy(dict(context or {}))
        # snapshot the list so hooks may (un)register others while running
        for hook in list(self._hooks.get(event, [])):
            # each hook works on a deep copy; it becomes the context only if the hook succeeds
            working = copy.deepcopy(result)
            try:
                returned = hook.callback(working)
                if inspect.isawaitable(returned):
                    returned = await returned
            except Exception as exc:
                if self.failure_policy is HookFailurePolicy.PROPAGATE:
                    raise
                if self.failure_policy is HookFailurePolicy.COLLECT:
                    self._failures.append(HookFailure(event=event, hook=hook, error=exc))
                logger.debug("hook %r on %s failed: %r", hook.callback, event, exc)
                continue
            result = working
            if returned is None:
                continue
            if isinstance(returned, Mapping):
                result.update(returned)
            else:
                logger.debug("hook %r on %s returned %r, ignored", hook.callback, event, type(returned))
        return result

"""
Hook engine ordering, context threading and failure policies.
"""
from __future__ import annotations

import pytest

from usermgmt.services.hooks import HookFailurePolicy, HookManager


async def test_hooks_run_by_descending_priority_then_registration_order():
    hooks = HookManager()
    calls = []

    def make(label):
        def hook(ctx):
            calls.append(label)

        return hook

    hooks.register_hook("evt", make("low"), priority=-1)
    hooks.register_hook("evt", make("first-default"))
    hooks.register_hook("evt", make("high"), priority=10)
    hooks.register_hook("evt", make("second-default"))

    await hooks.execute_hooks("evt")
    assert calls == ["high", "first-default", "second-default", "low"]


async def test_returned_fragments_are_merged_and_seen_by_later_hooks():
    hooks = HookManager()
    seen = []

    async def add_b(ctx):
        return {"b": ctx["a"] + 1}

    def read_b(ctx):
        seen.append(ctx["b"])
        return {"a": 100}

    hooks.register_hook("evt", add_b, priority=1)
    hooks.register_hook("evt", read_b)

    result = await hooks.execute_hooks("evt", {"a": 1})
    assert seen == [2]
    assert result == {"a": 100, "b": 2}


async def test_caller_context_is_not_mutated():
    hooks = HookManager()
    hooks.register_hook("evt", lambda ctx: {"a": 2})
    original = {"a": 1}
    await hooks.execute_hooks("evt", original)
    assert original == {"a": 1}


async def test_failing_hook_is_swallowed_and_leaves_context_untouched():
    hooks = HookManager()

    def broken(ctx):
        ctx["half"] = "written"
        raise RuntimeError("boom")

    hooks.register_hook("evt", broken, priority=5)
    hooks.register_hook("evt", lambda ctx: {"after": True})

    result = await hooks.execute_hooks("evt", {"a": 1})
    assert result == {"a": 1, "after": True}


async def test_in_place_edits_survive_when_hook_succeeds():
    hooks = HookManager()

    def edit(ctx):
        ctx["a"] = "edited"

    hooks.register_hook("evt", edit)
    assert await hooks.execute_hooks("evt", {"a": 1}) == {"a": "edited"}


async def test_propagate_policy_reraises():
    hooks = HookManager(HookFailurePolicy.PROPAGATE)

    def broken(ctx):
        raise ValueError("nope")

    hooks.register_hook("evt", broken)
    with pytest.raises(ValueError):
        await hooks.execute_hooks("evt")


async def test_collect_policy_records_failures():
    hooks = HookManager("collect")
    error = KeyError("k")

    def broken(ctx):
        raise error

    hooks.register_hook("evt", broken)
    hooks.register_hook("evt", lambda ctx: {"ok": True})

    result = await hooks.execute_hooks("evt")
    assert result == {"ok": True}
    failures = hooks.drain_failures()
    assert len(failures) == 1
    assert failures[0].event == "evt"
    assert failures[0].error is error
    assert hooks.drain_failures() == []


async def test_remove_hook_by_identity():
    hooks = HookManager()
    calls = []

    def hook(ctx):
        calls.append(1)

    hooks.register_hook("evt", hook)
    assert hooks.remove_hook("evt", hook) is True
    assert hooks.remove_hook("evt", hook) is False
    await hooks.execute_hooks("evt")
    assert calls == []


def test_remove_all_hooks_for_one_event_or_everything():
    hooks = HookManager()
    hooks.register_hook("a", lambda ctx: None)
    hooks.register_hook("b", lambda ctx: None)
    hooks.register_hook("b", lambda ctx: None)
    assert len(hooks.get_hooks()) == 3

    hooks.remove_all_hooks("b")
    assert [h.event for h in hooks.get_hooks()] == ["a"]

    hooks.remove_all_hooks()
    assert hooks.get_hooks() == []


def test_unknown_policy_is_rejected():
    with pytest.raises(ValueError):
        HookManager("ignore-everything")

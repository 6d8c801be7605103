"""Test the action registry."""
import pytest

from hub.errors import ActionNotFound
from hub.registry import ActionRegistry

from conftest import CountingDestination


def test_register_and_lookup():
    registry = ActionRegistry()
    action = CountingDestination()
    registry.register(action)
    assert registry.lookup("counting") is action
    assert registry.lookup("counting") is registry.lookup("counting")
    assert "counting" in registry
    assert len(registry) == 1


def test_register_same_name_replaces():
    registry = ActionRegistry()
    first = CountingDestination()
    second = CountingDestination()
    registry.register(first)
    registry.register(second)
    assert registry.lookup("counting") is second
    assert len(registry) == 1


def test_lookup_missing_raises():
    registry = ActionRegistry()
    with pytest.raises(ActionNotFound, match="nope"):
        registry.lookup("nope")


def test_register_requires_name():
    registry = ActionRegistry()
    action = CountingDestination()
    action.name = ""
    with pytest.raises(ValueError):
        registry.register(action)


def test_actions_keep_registration_order(buffer_destination, counting):
    registry = ActionRegistry()
    registry.register(buffer_destination)
    registry.register(counting)
    assert [a.name for a in registry.actions()] == ["buffer", "counting"]

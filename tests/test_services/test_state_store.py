from __future__ import annotations

import pytest

from scene_director.exceptions import ProjectNotFoundError
from scene_director.schemas.project import ProjectState, replace_scene
from scene_director.services.state_store import StateStore
from tests.factories import create_storyboard


def test_update_records_history_and_undo_redo():
    store = StateStore()
    pid = store.create(create_storyboard(2))
    original = store.get(pid)

    updated = store.update_state_and_record(pid, lambda s: replace_scene(s, "s1", error="boom"))
    assert store.get(pid) is updated
    assert original.scenes[0].error is None
    assert store.can_undo(pid)

    assert store.undo(pid) is original
    assert store.can_redo(pid)
    assert store.redo(pid) is updated


def test_new_update_clears_redo():
    store = StateStore()
    pid = store.create(ProjectState())
    store.replace(pid, ProjectState(project_name="a"))
    store.undo(pid)
    store.replace(pid, ProjectState(project_name="b"))
    assert not store.can_redo(pid)
    assert store.get(pid).project_name == "b"


def test_history_is_bounded():
    store = StateStore(history_limit=3)
    pid = store.create(ProjectState())
    for i in range(10):
        store.replace(pid, ProjectState(project_name=str(i)))
    for _ in range(10):
        store.undo(pid)
    assert store.get(pid).project_name == "6"


def test_noop_updater_records_nothing():
    store = StateStore()
    pid = store.create(ProjectState())
    store.update_state_and_record(pid, lambda s: s)
    assert not store.can_undo(pid)


def test_unknown_project():
    store = StateStore()
    with pytest.raises(ProjectNotFoundError):
        store.get("nope")
    assert store.create(ProjectState(), project_id="fixed") == "fixed"
    store.remove("fixed")
    assert not store.exists("fixed")

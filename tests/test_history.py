from __future__ import annotations

import random

import pytest

from history import HistoryController
from project_store import ProjectFile, ProjectState, ValidationError, update_file_content


@pytest.fixture
def single_file_history():
    state = ProjectState((ProjectFile(id="1", name="player.gd", content="A"),))
    return HistoryController(state)


@pytest.fixture
def history(two_files):
    return HistoryController(ProjectState(two_files, active_file_id="1"))


def assert_consistent(controller: HistoryController) -> None:
    assert 0 <= controller.index < len(controller)
    assert controller.current == controller.state.files


def test_starts_with_seed_snapshot(history, two_files):
    assert len(history) == 1
    assert history.index == 0
    assert history.current == two_files
    assert not history.can_undo
    assert not history.can_redo


def test_undo_and_redo_are_noops_at_the_ends(history):
    before = (history.index, len(history), history.state.files)

    assert history.undo() is False
    assert (history.index, len(history), history.state.files) == before

    history.update_file("1", "B")
    before = (history.index, len(history), history.state.files)
    assert history.redo() is False
    assert (history.index, len(history), history.state.files) == before


def test_push_after_undo_discards_forward_history(history, two_files):
    history.push(update_file_content(two_files, "1", "A1"))
    history.push(update_file_content(two_files, "1", "A2"))
    history.undo()
    history.push(update_file_content(two_files, "1", "B"))

    assert len(history) == 3
    assert history.redo() is False
    assert all(f.content != "A2" for snap in history._log for f in snap if f.id == "1")
    assert history.state.files[0].content == "B"


def test_identical_snapshot_still_creates_entry(history):
    history.push(history.state.files)

    assert len(history) == 2
    assert history.can_undo


def test_random_operation_sequences_keep_invariants(history):
    rng = random.Random(7)
    for step in range(300):
        op = rng.choice(["push", "undo", "redo"])
        if op == "push":
            history.push(update_file_content(history.state.files, "1", f"v{step}"))
        elif op == "undo":
            history.undo()
        else:
            history.redo()
        assert_consistent(history)


def test_create_undo_then_update_truncates_redo(single_file_history):
    h = single_file_history

    created = h.create_file("enemy.gd")
    assert len(h.state.files) == 2
    assert len(h) == 2
    assert h.index == 1
    assert h.state.active_file_id == created.id

    h.undo()
    assert len(h.state.files) == 1
    assert h.index == 0
    assert h.state.active_file().id == "1"

    h.update_file("1", "B")
    assert len(h) == h.index + 1
    assert h.index == 1
    assert not h.can_redo
    assert h.state.files == (ProjectFile(id="1", name="player.gd", content="B"),)


def test_delete_active_file_repoints(history):
    history.delete_file("1")

    assert history.state.active_file_id == "2"
    assert history.state.active_file().name == "enemy.gd"


def test_undo_restores_deleted_file_but_keeps_valid_pointer(history):
    history.delete_file("1")
    history.undo()

    assert [f.id for f in history.state.files] == ["1", "2"]
    assert history.state.active_file() is not None


def test_redo_repoints_when_active_file_disappears(history):
    history.delete_file("2")
    history.undo()
    history.select_file("2")
    history.redo()

    assert history.state.active_file_id == "1"


def test_delete_last_file_rejected_without_entry(single_file_history):
    with pytest.raises(ValidationError):
        single_file_history.delete_file("1")

    assert len(single_file_history) == 1
    assert len(single_file_history.state.files) == 1


def test_blank_create_rejected_without_entry(history):
    with pytest.raises(ValidationError):
        history.create_file("   ")
    assert len(history) == 1


@pytest.mark.parametrize("method, args", [
    ("update_file", ("nope", "x")),
    ("delete_file", ("nope",)),
    ("select_file", ("nope",)),
])
def test_unknown_ids_rejected_without_entry(history, method, args):
    with pytest.raises(ValidationError):
        getattr(history, method)(*args)
    assert len(history) == 1


def test_select_file_does_not_push(history):
    history.select_file("2")

    assert history.state.active_file_id == "2"
    assert len(history) == 1

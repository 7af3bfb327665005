import asyncio

import pytest

from dodiddone.errors import StoreError, StoreErrorReason, ValidationError
from dodiddone.models import TaskStatus
from dodiddone.task_form import TaskFormController
from dodiddone.task_list import TaskListController

from tests.fakes import FakeTaskStore, make_task


def _create_form(store, gateway, notifier, ctl=None):
    ctl = ctl or TaskListController(store, gateway, notifier)
    return TaskFormController(store, gateway, notifier, on_complete=ctl.insert), ctl


@pytest.mark.asyncio
async def test_whitespace_title_fails_validation_without_network(fake_store, fake_gateway, notifier):
    form, ctl = _create_form(fake_store, fake_gateway, notifier)
    form.set_title("   ")

    with pytest.raises(ValidationError):
        await form.submit()

    assert fake_store.calls == []
    assert form.submitting is False
    assert notifier.latest.title == "Title is required"


def test_validate_message(fake_store, fake_gateway, notifier):
    form, _ = _create_form(fake_store, fake_gateway, notifier)
    with pytest.raises(ValidationError, match="title required"):
        form.validate()


@pytest.mark.asyncio
async def test_create_inserts_at_top_and_resets(fake_gateway, notifier):
    store = FakeTaskStore([make_task("1")])
    form, ctl = _create_form(store, fake_gateway, notifier)
    await ctl.load()
    form.focus()
    form.set_title("  Buy milk ")
    form.set_description("two litres")

    created = await form.submit()

    assert created.title == "Buy milk"
    assert created.status is TaskStatus.IN_PROGRESS
    assert ctl.tasks[0] == created
    assert store.calls[-1] == ("create", "u1", "Buy milk", "two litres")
    assert (form.title, form.description, form.expanded) == ("", "", False)
    assert notifier.latest.title == "Task added"


@pytest.mark.asyncio
async def test_two_rapid_submissions_create_once(fake_store, fake_gateway, notifier):
    form, ctl = _create_form(fake_store, fake_gateway, notifier)
    form.set_title("only once")
    fake_store.gate = asyncio.Event()

    first = asyncio.create_task(form.submit())
    await asyncio.sleep(0)
    assert form.submitting is True
    second = await form.submit()

    fake_store.gate.set()
    created = await first
    assert second is None
    assert fake_store.count("create") == 1
    assert [t.id for t in ctl.tasks] == [created.id]
    assert form.submitting is False


@pytest.mark.asyncio
async def test_failed_create_clears_submitting_and_keeps_input(fake_store, fake_gateway, notifier):
    form, ctl = _create_form(fake_store, fake_gateway, notifier)
    form.set_title("will fail")
    fake_store.fail_with["create"] = StoreError(StoreErrorReason.NETWORK_FAILURE)

    with pytest.raises(StoreError):
        await form.submit()

    assert form.submitting is False
    assert form.title == "will fail"
    assert ctl.tasks == []
    assert notifier.latest.title == "Failed to add task"


def test_new_task_status_is_fixed(fake_store, fake_gateway, notifier):
    form, _ = _create_form(fake_store, fake_gateway, notifier)
    assert form.status is TaskStatus.IN_PROGRESS
    with pytest.raises(ValueError):
        form.set_status(TaskStatus.DONE)


def test_typing_expands_and_cancel_resets(fake_store, fake_gateway, notifier):
    form, _ = _create_form(fake_store, fake_gateway, notifier)
    assert form.expanded is False
    form.set_title("x")
    assert form.expanded is True
    form.cancel()
    assert (form.title, form.expanded, form.is_open) == ("", False, True)


@pytest.mark.asyncio
async def test_edit_applies_backend_value_and_closes(fake_gateway, notifier):
    original = make_task("1", title="old", description="d")
    store = FakeTaskStore([original, make_task("2", minutes=3)])
    ctl = TaskListController(store, fake_gateway, notifier)
    await ctl.load()
    form = TaskFormController(store, fake_gateway, notifier, on_complete=ctl.apply_edit, task=original)
    assert (form.title, form.description, form.status) == ("old", "d", TaskStatus.IN_PROGRESS)

    form.set_title("new")
    form.set_status(TaskStatus.DONE)
    saved = await form.submit()

    assert ctl.get("1") == saved
    assert saved.title == "new" and saved.status is TaskStatus.DONE
    assert [t.id for t in ctl.tasks] == ["2", "1"]
    assert form.is_open is False
    # edit forms close rather than reset
    assert form.title == "new"
    assert store.count("update") == 1
    assert notifier.latest.title == "Task updated"


@pytest.mark.asyncio
async def test_failed_edit_leaves_list_untouched(fake_gateway, notifier):
    original = make_task("1")
    store = FakeTaskStore([original])
    ctl = TaskListController(store, fake_gateway, notifier)
    await ctl.load()
    form = TaskFormController(store, fake_gateway, notifier, on_complete=ctl.apply_edit, task=original)
    form.set_title("changed")
    store.fail_with["update"] = StoreError(StoreErrorReason.PERMISSION_DENIED)

    with pytest.raises(StoreError):
        await form.submit()

    assert ctl.get("1") == original
    assert form.is_open is True
    assert form.submitting is False
    assert notifier.latest.title == "Failed to update task"


def test_cancel_edit_closes(fake_store, fake_gateway, notifier):
    form = TaskFormController(fake_store, fake_gateway, notifier, on_complete=lambda t: None, task=make_task("1"))
    form.cancel()
    assert form.is_open is False

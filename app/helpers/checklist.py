from app.helpers.errors import NotFoundError, ValidationError
from app.helpers.logging import logger
from app.helpers.monitoring import start_as_current_span
from app.models.task import (
    ChecklistItemModel,
    ChecklistItemUpdateModel,
    ChecklistProgressModel,
    TaskModel,
)
from app.persistence.memory import MemoryStore


@start_as_current_span("checklist_item_create")
def checklist_item_create(
    store: MemoryStore,
    task_id: str,
    text: str | None,
) -> ChecklistItemModel:
    """
    Append a new item to the checklist of a task.

    Raises `NotFoundError` if the task does not exist, `ValidationError` if the text is empty.
    """
    task = _task_get(store, task_id)
    if not text or not text.strip():
        raise ValidationError("Checklist item text is required")

    item = ChecklistItemModel(text=text)
    task.checklist.append(item)
    store.task_touch(task)

    logger.debug("Added checklist item %s to task %s", item.id, task.id)
    return item


@start_as_current_span("checklist_item_update")
def checklist_item_update(
    store: MemoryStore,
    task_id: str,
    item_id: str,
    update: ChecklistItemUpdateModel,
) -> ChecklistItemModel:
    """
    Apply a partial update to a checklist item.

    Only the fields present in the payload are applied. The owning task is touched.
    """
    task = _task_get(store, task_id)
    item = next((item for item in task.checklist if item.id == item_id), None)
    if not item:
        raise NotFoundError("Checklist item not found")

    fields = update.model_fields_set
    if "text" in fields and (not update.text or not update.text.strip()):
        raise ValidationError("Checklist item text is required")
    if "completed" in fields and update.completed is None:
        raise ValidationError("Completed cannot be null")

    if update.text:
        item.text = update.text
    if update.completed is not None:
        item.completed = update.completed
    store.task_touch(task)

    return item


@start_as_current_span("checklist_item_delete")
def checklist_item_delete(
    store: MemoryStore,
    task_id: str,
    item_id: str,
) -> None:
    """
    Remove an item from the checklist of a task, keeping the order of the others.
    """
    task = _task_get(store, task_id)
    for index, item in enumerate(task.checklist):
        if item.id == item_id:
            del task.checklist[index]
            store.task_touch(task)
            logger.debug("Deleted checklist item %s from task %s", item_id, task.id)
            return
    raise NotFoundError("Checklist item not found")


def checklist_progress(task: TaskModel) -> ChecklistProgressModel:
    """
    Count the completed items of a task checklist.

    Derived from the current checklist, never stored.
    """
    return ChecklistProgressModel(
        completed=sum(1 for item in task.checklist if item.completed),
        total=len(task.checklist),
    )


def _task_get(store: MemoryStore, task_id: str) -> TaskModel:
    task = store.task_get(task_id)
    if not task:
        raise NotFoundError("Task not found")
    return task

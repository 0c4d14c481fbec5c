from collections.abc import Iterator
from datetime import datetime, timedelta

from app.helpers.errors import NotFoundError, ValidationError
from app.helpers.logging import logger
from app.helpers.monitoring import SpanAttributeEnum, start_as_current_span
from app.models.readiness import ReadinessEnum
from app.models.task import (
    ChecklistItemModel,
    ChecklistItemReplaceModel,
    EmailReminderModel,
    TaskModel,
    TaskUpdateModel,
    new_id,
    utc_now,
)


# Top-level tasks are at depth 1
MAX_DEPTH = 100


class MemoryStore:
    """
    In-memory forest of tasks.

    Each task owns its children, so the forest can never contain a cycle. Lookup and removal walk the whole forest depth-first, in the same pre-order: a task, then its children recursively, then its next sibling.

    Operations are synchronous and run to completion, callers on an event loop never observe a partial write. State is lost when the process stops.
    """

    _tasks: list[TaskModel]

    def __init__(self) -> None:
        logger.info("Using memory task store, tasks are lost on restart")
        self._tasks = []

    async def readiness(self) -> ReadinessEnum:
        """
        Check the readiness of the memory store.
        """
        return ReadinessEnum.OK  # Always ready, it's memory :)

    @start_as_current_span("store_task_list")
    def task_list(self) -> list[TaskModel]:
        """
        Get the top-level tasks, with their nested children.
        """
        return list(self._tasks)

    @start_as_current_span("store_task_get")
    def task_get(self, task_id: str) -> TaskModel | None:
        """
        Find a task anywhere in the forest.

        Returns `None` if the task does not exist.
        """
        task, _ = self._find(task_id)
        return task

    @start_as_current_span("store_task_create")
    def task_create(
        self,
        title: str | None,
        description: str | None = None,
        parent_id: str | None = None,
    ) -> TaskModel:
        """
        Create a task, at the root of the forest or under an existing parent.

        Raises `ValidationError` if the title is empty or if the task would be nested deeper than `MAX_DEPTH`, `NotFoundError` if the parent does not exist. A missing parent never falls back to the root.
        """
        if not title or not title.strip():
            raise ValidationError("Title is required")

        parent = None
        if parent_id:
            parent, depth = self._find(parent_id)
            if not parent:
                raise NotFoundError("Parent task not found")
            if depth >= MAX_DEPTH:
                raise ValidationError("Task is nested too deep")

        now = utc_now()
        task = TaskModel(
            created_at=now,
            description=description or "",
            title=title,
            updated_at=now,
        )

        if parent:
            parent.children.append(task)
            self.task_touch(parent)
            logger.info("Created task %s under %s", task.id, parent.id)
        else:
            self._tasks.append(task)
            logger.info("Created task %s", task.id)

        SpanAttributeEnum.TASK_ID.attribute(task.id)
        return task

    @start_as_current_span("store_task_update")
    def task_update(
        self,
        task_id: str,
        update: TaskUpdateModel,
    ) -> TaskModel:
        """
        Apply a partial update to a task.

        Only the fields present in the payload are applied. The task is touched even if nothing changed.

        Raises `NotFoundError` if the task does not exist, `ValidationError` if a field is invalid. In both cases the task is left untouched.
        """
        task = self.task_get(task_id)
        if not task:
            raise NotFoundError("Task not found")
        fields = update.model_fields_set

        # Validate everything first, so a rejected update does not leave the task half-modified
        if "title" in fields and (not update.title or not update.title.strip()):
            raise ValidationError("Title is required")
        if "completed" in fields and update.completed is None:
            raise ValidationError("Completed cannot be null")
        checklist = None
        if "checklist" in fields:
            if update.checklist is None:
                raise ValidationError("Checklist cannot be null")
            checklist = self._checklist_replace(task, update.checklist)

        # Apply
        if "title" in fields:
            assert update.title
            task.title = update.title
        if "description" in fields:
            task.description = update.description or ""
        if "completed" in fields:
            assert update.completed is not None
            task.completed = update.completed
        if checklist is not None:
            task.checklist = checklist
        if "email_reminder" in fields:
            task.email_reminder = update.email_reminder
        self.task_touch(task)

        logger.debug("Updated task %s, fields %s", task.id, sorted(fields))
        return task

    @start_as_current_span("store_task_delete")
    def task_delete(self, task_id: str) -> bool:
        """
        Remove a task and its whole subtree, wherever it is in the forest.

        Returns `False` if the task does not exist.
        """
        for siblings, index, _ in self._walk(self._tasks):
            if siblings[index].id == task_id:
                del siblings[index]
                logger.info("Deleted task %s", task_id)
                return True
        return False

    @start_as_current_span("store_task_remind")
    def task_remind(
        self,
        task_id: str,
        to: str,
        sent_at: datetime,
        preview_url: str | None = None,
    ) -> TaskModel:
        """
        Record the last email reminder sent for a task.

        Raises `NotFoundError` if the task does not exist.
        """
        task = self.task_get(task_id)
        if not task:
            raise NotFoundError("Task not found")
        task.email_reminder = EmailReminderModel(
            preview_url=preview_url,
            sent_at=sent_at,
            to=to,
        )
        self.task_touch(task)
        return task

    def task_touch(self, task: TaskModel) -> None:
        """
        Refresh the last update date of a task.

        The date strictly increases at each call, even if the clock did not move since the last one.
        """
        now = utc_now()
        if now <= task.updated_at:
            now = task.updated_at + timedelta(microseconds=1)
        task.updated_at = now

    def ids(self) -> set[str]:
        """
        Get every identifier in use, tasks and checklist items.
        """
        res: set[str] = set()
        for siblings, index, _ in self._walk(self._tasks):
            task = siblings[index]
            res.add(task.id)
            res.update(item.id for item in task.checklist)
        return res

    def _checklist_replace(
        self,
        task: TaskModel,
        items: list[ChecklistItemReplaceModel],
    ) -> list[ChecklistItemModel]:
        """
        Build a whole new checklist for a task.

        Identifiers sent by the client are kept if they are not used anywhere else in the forest, missing ones are issued. The current items of the task can be reused.
        """
        taken = self.ids() - {item.id for item in task.checklist}
        seen: set[str] = set()
        res: list[ChecklistItemModel] = []
        for item in items:
            item_id = item.id or new_id()
            if item_id in taken or item_id in seen:
                raise ValidationError(f"Checklist item id {item_id} is already used")
            seen.add(item_id)
            res.append(
                ChecklistItemModel(
                    completed=item.completed,
                    id=item_id,
                    text=item.text,
                )
            )
        return res

    def _walk(
        self,
        tasks: list[TaskModel],
    ) -> Iterator[tuple[list[TaskModel], int, int]]:
        """
        Iterate the forest depth-first, in pre-order.

        Yields the list holding the task, its position in it and its depth (1 for a top-level task), so the caller can remove it in place. Iterative, the Python stack does not limit the forest depth.
        """
        stack: list[tuple[list[TaskModel], int]] = [(tasks, 0)]
        while stack:
            siblings, index = stack.pop()
            if index >= len(siblings):
                continue
            yield siblings, index, len(stack) + 1
            stack.append((siblings, index + 1))
            stack.append((siblings[index].children, 0))

    def _find(self, task_id: str) -> tuple[TaskModel | None, int]:
        """
        Find a task and its depth in the forest.

        Returns `(None, 0)` if the task does not exist.
        """
        for siblings, index, depth in self._walk(self._tasks):
            task = siblings[index]
            if task.id == task_id:
                return task, depth
        return None, 0

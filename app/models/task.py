from datetime import UTC, datetime
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from app.models.request import RequestModel, camel_input


def new_id() -> str:
    """
    Issue a new opaque identifier, for tasks and checklist items alike.
    """
    return str(uuid4())


def utc_now() -> datetime:
    return datetime.now(UTC)


class ChecklistItemModel(BaseModel):
    # Immutable fields
    id: str = Field(default_factory=new_id, frozen=True)
    # Editable fields
    completed: bool = False
    text: str = Field(min_length=1)


class EmailReminderModel(BaseModel):
    # Also sent by clients in task updates
    model_config = ConfigDict(
        alias_generator=camel_input,
        populate_by_name=True,
    )

    preview_url: str | None = None
    sent_at: datetime
    to: str


class TaskModel(BaseModel):
    # Immutable fields
    created_at: datetime = Field(default_factory=utc_now, frozen=True)
    id: str = Field(default_factory=new_id, frozen=True)
    # Editable fields
    checklist: list[ChecklistItemModel] = []
    children: list["TaskModel"] = []
    completed: bool = False
    description: str = ""
    email_reminder: EmailReminderModel | None = None
    title: str = Field(min_length=1)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("updated_at")
    @classmethod
    def _validate_updated_at(
        cls,
        updated_at: datetime,
        info: ValidationInfo,
    ) -> datetime:
        """
        Ensure the last update is never before the creation.
        """
        created_at: datetime | None = info.data.get("created_at", None)
        if created_at and updated_at < created_at:
            return created_at
        return updated_at


class TaskCreateModel(RequestModel):
    """
    Body of a task creation request.

    Title is optional at the schema level so a missing title is reported as a planner validation error (400), not as a malformed body (422).
    """

    description: str | None = None
    parent_id: str | None = None
    title: str | None = None


class ChecklistItemReplaceModel(RequestModel):
    """
    Checklist item sent through a bulk replacement.

    Items without an identifier are given a new one by the store.
    """

    completed: bool = False
    id: str | None = None
    text: str = Field(min_length=1)


class TaskUpdateModel(RequestModel):
    """
    Partial update of a task.

    Only the fields explicitly sent are applied, see `model_fields_set`. A field sent as `null` is different from a field not sent at all.
    """

    checklist: list[ChecklistItemReplaceModel] | None = None
    completed: bool | None = None
    description: str | None = None
    email_reminder: EmailReminderModel | None = None
    title: str | None = None


class ChecklistItemCreateModel(RequestModel):
    text: str | None = None


class ChecklistItemUpdateModel(RequestModel):
    completed: bool | None = None
    text: str | None = None


class ChecklistProgressModel(BaseModel):
    completed: int = 0
    total: int = 0

    @property
    def percent(self) -> float:
        """
        Share of completed items, from 0 to 100.

        An empty checklist is at 0%.
        """
        if not self.total:
            return 0.0
        return self.completed / self.total * 100

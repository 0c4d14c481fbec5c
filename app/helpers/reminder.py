from app.helpers.errors import NotFoundError, RelayError, ValidationError
from app.helpers.jinja import jinja
from app.helpers.logging import logger
from app.helpers.monitoring import (
    counter_add,
    reminder_failed,
    reminder_sent,
    start_as_current_span,
)
from app.models.mail import MailMessageModel, MailReceiptModel
from app.models.task import TaskModel, utc_now
from app.persistence.imail import IMail
from app.persistence.memory import MemoryStore


def _status(task: TaskModel) -> str:
    return "Completed" if task.completed else "Pending"


async def reminder_compose(
    task: TaskModel,
    to: str,
    subject: str | None = None,
) -> MailMessageModel:
    """
    Compose the reminder email for a task.

    Subject defaults to "Reminder: <title>". The HTML body escapes user text.
    """
    description = task.description or "No description"
    body_text = (
        f"Task: {task.title}\n\nDescription: {description}\n\nStatus: {_status(task)}"
    )
    template = jinja.get_template("reminder.html.jinja")
    body_html = await template.render_async(
        description=description,
        status=_status(task),
        title=task.title,
    )
    return MailMessageModel(
        body_html=body_html,
        body_text=body_text,
        subject=subject or f"Reminder: {task.title}",
        to=to,
    )


@start_as_current_span("reminder_send")
async def reminder_send(
    store: MemoryStore,
    mail: IMail,
    task_id: str,
    to: str | None,
    subject: str | None = None,
) -> MailReceiptModel:
    """
    Send an email reminder for a task, then record it on the task.

    The reminder is recorded only once the relay accepted the message. If the relay fails, `RelayError` is raised and the task is left as it was.
    """
    task = store.task_get(task_id)
    if not task:
        raise NotFoundError("Task not found")
    if not to or not to.strip():
        raise ValidationError("Email recipient is required")

    message = await reminder_compose(
        subject=subject,
        task=task,
        to=to,
    )
    try:
        receipt = await mail.send(message)
    except RelayError:
        counter_add(reminder_failed, 1)
        raise
    counter_add(reminder_sent, 1)

    # Task may have been deleted while waiting for the relay, the lookup is done again
    store.task_remind(
        preview_url=receipt.preview_url,
        sent_at=utc_now(),
        task_id=task_id,
        to=to,
    )
    logger.info("Reminder for task %s sent to %s", task_id, to)
    return receipt

from app.models.message import MessageModel
from app.models.request import RequestModel


class ReminderRequestModel(RequestModel):
    subject: str | None = None
    to: str | None = None  # Optional so a missing recipient is a 400, not a 422


class ReminderResultModel(MessageModel):
    preview_url: str | None = None

from pydantic import BaseModel


class MailMessageModel(BaseModel):
    body_html: str
    body_text: str
    subject: str
    to: str


class MailReceiptModel(BaseModel):
    message_id: str
    preview_url: str | None = None  # Only test relays provide one

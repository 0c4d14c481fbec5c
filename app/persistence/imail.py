from abc import ABC, abstractmethod

from app.helpers.monitoring import start_as_current_span
from app.models.mail import MailMessageModel, MailReceiptModel
from app.models.readiness import ReadinessEnum


class IMail(ABC):
    @abstractmethod
    @start_as_current_span("mail_readiness")
    async def readiness(self) -> ReadinessEnum:
        pass

    @abstractmethod
    @start_as_current_span("mail_send")
    async def send(self, message: MailMessageModel) -> MailReceiptModel:
        """
        Hand a message over to the relay.

        Raises `RelayError` if the relay does not accept it.
        """
        pass

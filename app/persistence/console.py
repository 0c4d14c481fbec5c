from app.helpers.config_models.mail import ConsoleModel
from app.helpers.errors import RelayError
from app.helpers.logging import logger
from app.models.mail import MailMessageModel, MailReceiptModel
from app.models.readiness import ReadinessEnum
from app.models.task import new_id
from app.persistence.imail import IMail


class ConsoleMail(IMail):
    """
    Mail relay printing messages to the logs instead of delivering them.

    Accepted messages are kept in `outbox`, in sending order.
    """

    _config: ConsoleModel
    outbox: list[MailMessageModel]

    def __init__(self, config: ConsoleModel):
        logger.warning("Using console as mail relay, no real emails will be sent")
        self._config = config
        self.outbox = []

    async def readiness(self) -> ReadinessEnum:
        """
        Check the readiness of the console relay.
        """
        return ReadinessEnum.FAIL if self._config.fail else ReadinessEnum.OK

    async def send(self, message: MailMessageModel) -> MailReceiptModel:
        if self._config.fail:
            logger.error("Console relay refused email to %s", message.to)
            raise RelayError(
                "Failed to send email",
                details=["Console relay is configured to fail"],
            )

        logger.info("📧 To %s: %s", message.to, message.subject)
        logger.debug("📧 Content: %s", message.body_text)
        self.outbox.append(message)
        return MailReceiptModel(message_id=new_id())

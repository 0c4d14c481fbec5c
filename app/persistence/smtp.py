from email.message import EmailMessage
from email.utils import make_msgid

from aiosmtplib import SMTP, SMTPException, send as smtp_send

from app.helpers.config_models.mail import SmtpModel
from app.helpers.errors import RelayError
from app.helpers.logging import logger
from app.models.mail import MailMessageModel, MailReceiptModel
from app.models.readiness import ReadinessEnum
from app.persistence.imail import IMail


class SmtpMail(IMail):
    """
    Mail relay delivering through an SMTP server.

    Server settings are resolved at each send with `_use_server`, subclasses can provide them dynamically.
    """

    _config: SmtpModel | None
    _sender: str

    def __init__(self, config: SmtpModel | None, sender: str):
        if config:
            logger.info("Using SMTP server %s:%s", config.host, config.port)
        self._config = config
        self._sender = sender

    async def readiness(self) -> ReadinessEnum:
        """
        Check the readiness of the SMTP server.

        This only checks that the server accepts a connection and answers a NOOP.
        """
        try:
            server = await self._use_server()
            async with self._client(server) as client:
                await client.noop()
            return ReadinessEnum.OK
        except (OSError, RelayError, SMTPException):
            logger.exception("Readiness test failed")
        return ReadinessEnum.FAIL

    async def send(self, message: MailMessageModel) -> MailReceiptModel:
        logger.info("Sending email to %s", message.to)
        email = self._email(message)
        server = await self._use_server()
        try:
            _, response = await smtp_send(
                email,
                # Deployment
                hostname=server.host,
                port=server.port,
                start_tls=server.start_tls,
                use_tls=server.use_tls,
                # Authentication
                password=server.password.get_secret_value()
                if server.password
                else None,
                username=server.username,
                # Reliability
                timeout=server.timeout_sec,
            )
        except (OSError, SMTPException) as e:
            logger.exception("Error sending email to %s", message.to)
            raise RelayError(
                "Failed to send email",
                details=[str(e)],
            ) from e

        logger.debug("Email sent to %s, relay answered %s", message.to, response)
        return MailReceiptModel(
            message_id=email["Message-ID"],
            preview_url=await self._preview_url(response),
        )

    async def _use_server(self) -> SmtpModel:
        assert self._config, "SMTP config is not set"
        return self._config

    async def _preview_url(self, response: str) -> str | None:  # noqa: ARG002
        """
        Get a link to view the sent message, from the relay answer.

        Real servers do not provide one.
        """
        return None

    def _client(self, server: SmtpModel) -> SMTP:
        return SMTP(
            hostname=server.host,
            password=server.password.get_secret_value() if server.password else None,
            port=server.port,
            start_tls=server.start_tls,
            timeout=server.timeout_sec,
            use_tls=server.use_tls,
            username=server.username,
        )

    def _email(self, message: MailMessageModel) -> EmailMessage:
        """
        Build a multipart email, plain text with an HTML alternative.
        """
        email = EmailMessage()
        email["From"] = self._sender
        email["Message-ID"] = make_msgid()
        email["Subject"] = message.subject
        email["To"] = message.to
        email.set_content(message.body_text)
        email.add_alternative(message.body_html, subtype="html")
        return email

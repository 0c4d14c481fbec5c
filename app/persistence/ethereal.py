import re

from aiohttp import ClientError
from pydantic import BaseModel, Field, SecretStr
from pydantic import ValidationError as PydanticValidationError

from app.helpers.cache import lru_acache
from app.helpers.config_models.mail import EtherealModel, SmtpModel
from app.helpers.errors import RelayError
from app.helpers.http import aiohttp_session
from app.helpers.logging import logger
from app.models.readiness import ReadinessEnum
from app.persistence.smtp import SmtpMail

# Ethereal acknowledges with "250 Accepted [STATUS=new MSGID=...]"
_RESPONSE_TAGS_R = r"\[([^\]]+)\]\s*$"


class _EtherealSmtpModel(BaseModel):
    host: str = "smtp.ethereal.email"
    port: int = 587
    secure: bool = False


class EtherealAccountModel(BaseModel):
    password: SecretStr = Field(alias="pass")
    smtp: _EtherealSmtpModel = _EtherealSmtpModel()
    user: str
    web: str = "https://ethereal.email"


def ethereal_preview_url(web: str, response: str) -> str | None:
    """
    Build the link to view a message on Ethereal, from the SMTP server answer.

    Returns `None` if the answer does not carry a message identifier.
    """
    match = re.search(_RESPONSE_TAGS_R, response)
    if not match:
        return None
    tags = dict(
        tag.split("=", 1) for tag in match.group(1).split() if "=" in tag
    )
    msg_id = tags.get("MSGID")
    if not msg_id:
        return None
    return f"{web.rstrip('/')}/message/{msg_id}"


class EtherealMail(SmtpMail):
    """
    Mail relay using a disposable Ethereal account.

    Messages are captured by Ethereal and never delivered, each one can be viewed from a preview link. The account is created on first use and kept for the lifetime of the process.
    """

    _ethereal: EtherealModel

    def __init__(self, config: EtherealModel, sender: str):
        logger.warning(
            "Using Ethereal as mail relay, emails are captured and not delivered"
        )
        super().__init__(
            config=None,
            sender=sender,
        )
        self._ethereal = config

    async def readiness(self) -> ReadinessEnum:
        """
        Check the readiness of Ethereal.

        This only checks that a test account can be obtained.
        """
        try:
            await self._use_account()
            return ReadinessEnum.OK
        except RelayError:
            logger.exception("Readiness test failed")
        return ReadinessEnum.FAIL

    async def _use_server(self) -> SmtpModel:
        account = await self._use_account()
        return SmtpModel(
            host=account.smtp.host,
            password=account.password,
            port=account.smtp.port,
            start_tls=not account.smtp.secure,
            timeout_sec=self._ethereal.timeout_sec,
            use_tls=account.smtp.secure,
            username=account.user,
        )

    async def _preview_url(self, response: str) -> str | None:
        account = await self._use_account()
        return ethereal_preview_url(account.web, response)

    @lru_acache()
    async def _use_account(self) -> EtherealAccountModel:
        """
        Create an Ethereal test account.

        Object is cached for the process lifetime, failures are not cached.

        Returns an `EtherealAccountModel` instance.
        """
        logger.info("Creating Ethereal test account")
        session = await aiohttp_session()
        try:
            async with session.post(
                json={
                    "requestor": self._ethereal.requestor,
                    "version": "1.0.0",
                },
                url=self._ethereal.account_url,
            ) as res:
                res.raise_for_status()
                body = await res.json()
        except (ClientError, TimeoutError) as e:
            logger.exception("Error creating Ethereal account")
            raise RelayError(
                "Failed to create Ethereal account",
                details=[str(e)],
            ) from e

        if body.get("status") != "success":
            logger.error("Ethereal refused to create an account: %s", body)
            raise RelayError(
                "Failed to create Ethereal account",
                details=[str(body.get("error", "Unknown error"))],
            )
        try:
            account = EtherealAccountModel.model_validate(body)
        except PydanticValidationError as e:
            logger.exception("Unexpected Ethereal account format")
            raise RelayError(
                "Failed to create Ethereal account",
                details=[str(x) for x in e.errors()],
            ) from e

        logger.info("Using Ethereal account %s", account.user)
        return account

from enum import Enum
from functools import cached_property

from pydantic import BaseModel, Field, SecretStr, ValidationInfo, field_validator

from app.persistence.imail import IMail


class ModeEnum(str, Enum):
    CONSOLE = "console"
    """Log messages, never deliver them."""
    ETHEREAL = "ethereal"
    """Use a disposable Ethereal test account."""
    SMTP = "smtp"
    """Use a real SMTP server."""


class ConsoleModel(BaseModel, frozen=True):
    fail: bool = False  # Simulate a relay outage, for tests

    @cached_property
    def instance(self) -> IMail:
        from app.persistence.console import (
            ConsoleMail,
        )

        return ConsoleMail(self)


class SmtpModel(BaseModel, frozen=True):
    host: str
    password: SecretStr | None = None
    port: int = Field(default=587, ge=1, le=65535)
    start_tls: bool = True
    timeout_sec: int = Field(default=30, ge=1)
    use_tls: bool = False
    username: str | None = None

    @cached_property
    def instance(self) -> IMail:
        from app.helpers.config import CONFIG
        from app.persistence.smtp import (
            SmtpMail,
        )

        return SmtpMail(
            config=self,
            sender=CONFIG.mail.sender,
        )


class EtherealModel(BaseModel, frozen=True):
    account_url: str = "https://api.nodemailer.com/user"
    requestor: str = "briplanner"
    timeout_sec: int = Field(default=30, ge=1)

    @cached_property
    def instance(self) -> IMail:
        from app.helpers.config import CONFIG
        from app.persistence.ethereal import (
            EtherealMail,
        )

        return EtherealMail(
            config=self,
            sender=CONFIG.mail.sender,
        )


class MailModel(BaseModel):
    # Mode is declared first, backend validators depend on it
    mode: ModeEnum = ModeEnum.ETHEREAL
    console: ConsoleModel | None = Field(
        default=ConsoleModel(),  # Object is fully defined by default
        validate_default=True,
    )
    ethereal: EtherealModel | None = Field(
        default=EtherealModel(),  # Object is fully defined by default
        validate_default=True,
    )
    sender: str = '"BriPlanner" <planner@example.com>'
    smtp: SmtpModel | None = Field(
        default=None,
        validate_default=True,
    )

    @field_validator("console")
    @classmethod
    def _validate_console(
        cls,
        console: ConsoleModel | None,
        info: ValidationInfo,
    ) -> ConsoleModel | None:
        if not console and info.data.get("mode", None) == ModeEnum.CONSOLE:
            raise ValueError("Console config required")
        return console

    @field_validator("ethereal")
    @classmethod
    def _validate_ethereal(
        cls,
        ethereal: EtherealModel | None,
        info: ValidationInfo,
    ) -> EtherealModel | None:
        if not ethereal and info.data.get("mode", None) == ModeEnum.ETHEREAL:
            raise ValueError("Ethereal config required")
        return ethereal

    @field_validator("smtp")
    @classmethod
    def _validate_smtp(
        cls,
        smtp: SmtpModel | None,
        info: ValidationInfo,
    ) -> SmtpModel | None:
        if not smtp and info.data.get("mode", None) == ModeEnum.SMTP:
            raise ValueError("SMTP config required")
        return smtp

    @cached_property
    def instance(self) -> IMail:
        if self.mode == ModeEnum.CONSOLE:
            assert self.console
            return self.console.instance

        if self.mode == ModeEnum.SMTP:
            assert self.smtp
            return self.smtp.instance

        assert self.ethereal
        return self.ethereal.instance

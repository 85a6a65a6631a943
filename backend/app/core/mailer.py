import html
import logging
import smtplib
import ssl
from dataclasses import dataclass, field
from email.message import EmailMessage
from typing import Callable, Optional, Tuple

from app.core.settings import Settings
from app.lib.contact import Attachment, ContactSubmission, RelayResult

log = logging.getLogger("uvicorn.error")

SUCCESS_MESSAGE = "Your message has been sent successfully!"
CONFIG_ERROR_MESSAGE = "Server configuration error: Missing email credentials."
DELIVERY_FAILED_MESSAGE = "Failed to send your message. Please try again later."

_REQUIRED = (
    ("username", "SMTP_USERNAME"),
    ("password", "SMTP_PASSWORD"),
    ("recipient_address", "MAIL_RECEIVER_ADDRESS"),
)


class ConfigError(Exception):
    """Raised when transport credentials or the recipient mailbox are missing."""

    def __init__(self, missing):
        self.missing = list(missing)
        super().__init__(f"missing mail settings: {', '.join(self.missing)}")


@dataclass(frozen=True)
class ServerMailConfig:
    username: Optional[str]
    password: Optional[str]
    recipient_address: Optional[str]
    host: str = "smtp.gmail.com"
    port: int = 587

    @classmethod
    def from_settings(cls, s: Settings) -> "ServerMailConfig":
        return cls(
            username=s.smtp_username,
            password=s.smtp_password,
            recipient_address=s.mail_receiver_address,
            host=s.smtp_host,
            port=s.smtp_port,
        )

    def missing(self):
        return [env for attr, env in _REQUIRED if not getattr(self, attr)]


@dataclass(frozen=True)
class MailMessage:
    sender: str
    recipient: str
    reply_to: str
    subject: str
    text: str
    html: str
    attachments: Tuple[Attachment, ...] = field(default_factory=tuple)

    def to_email_message(self) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = self.recipient
        msg["Reply-To"] = self.reply_to
        msg["Subject"] = self.subject
        msg.set_content(self.text)
        msg.add_alternative(self.html, subtype="html")
        for att in self.attachments:
            maintype, _, subtype = att.content_type.partition("/")
            msg.add_attachment(
                att.decoded(),
                maintype=maintype,
                subtype=subtype,
                filename=att.filename,
            )
        return msg


def _render_html(email: str, message: str, filenames) -> str:
    parts = [
        '<div style="font-family: sans-serif; line-height: 1.6;">',
        "<p>You have received a new message from your contact form.</p>",
        f"<p><strong>Sender Email:</strong> {html.escape(email)}</p>",
        "<p><strong>Message:</strong></p>",
        '<p style="border: 1px solid #eee; padding: 10px; border-radius: 5px; '
        f'background-color: #f9f9f9;">{html.escape(message)}</p>',
    ]
    if filenames:
        listed = ", ".join(html.escape(n) for n in filenames)
        parts.append(f"<p><strong>Attachments:</strong> {listed}</p>")
    parts.append("</div>")
    return "\n".join(parts)


class Relay:
    """Turns a validated submission into one outbound email.

    A single delivery attempt is made per call. Failures come back as a
    RelayResult with a generic text; details only go to the log.
    """

    def __init__(self, config: ServerMailConfig, smtp_factory: Callable[..., smtplib.SMTP] = smtplib.SMTP):
        self.config = config
        self.smtp_factory = smtp_factory

    def configure(self) -> ServerMailConfig:
        missing = self.config.missing()
        if missing:
            raise ConfigError(missing)
        return self.config

    def compose(self, submission: ContactSubmission, config: ServerMailConfig | None = None) -> MailMessage:
        config = config or self.configure()
        email = str(submission.email)
        return MailMessage(
            sender=config.username,
            recipient=config.recipient_address,
            reply_to=email,
            subject=f"New message from contact form: {email}",
            text=f"Sender Email: {email}\n\nMessage:\n{submission.message}",
            html=_render_html(email, submission.message, [a.filename for a in submission.attachments]),
            attachments=tuple(submission.attachments),
        )

    def deliver(self, message: MailMessage, config: ServerMailConfig | None = None) -> RelayResult:
        if config is None:
            try:
                config = self.configure()
            except ConfigError as exc:
                return _config_failure(exc)

        # build before connecting so a malformed message never reaches the server
        try:
            mime = message.to_email_message()
        except (ValueError, TypeError):
            log.exception(f"[mailer] could not build message from {message.reply_to}")
            return RelayResult(success=False, message=DELIVERY_FAILED_MESSAGE)

        try:
            with self.smtp_factory(config.host, config.port) as smtp:
                smtp.starttls(context=ssl.create_default_context())
                smtp.login(config.username, config.password)
                smtp.send_message(mime)
        except (smtplib.SMTPException, OSError):
            log.exception(f"[mailer] delivery via {config.host}:{config.port} failed")
            return RelayResult(success=False, message=DELIVERY_FAILED_MESSAGE)

        log.info(f"[mailer] message from {message.reply_to} sent to {message.recipient}")
        return RelayResult(success=True, message=SUCCESS_MESSAGE)

    def send(self, submission: ContactSubmission) -> RelayResult:
        try:
            config = self.configure()
        except ConfigError as exc:
            return _config_failure(exc)
        return self.deliver(self.compose(submission, config), config)


def _config_failure(exc: ConfigError) -> RelayResult:
    log.error(f"[mailer] {exc}")
    return RelayResult(success=False, message=CONFIG_ERROR_MESSAGE)

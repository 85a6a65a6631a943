"""Server-side contact form controller.

Holds one draft (email, message, accepted files), turns it into a
ContactSubmission and hands it to the relay. Only one submission can be
in flight: the controller moves idle -> sending -> idle and ignores
submit calls made while sending.
"""
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Sequence

from pydantic import ValidationError

from app.lib.contact import Attachment, ContactSubmission, RelayResult

log = logging.getLogger("uvicorn.error")

MAX_ATTACHMENT_BYTES = 5 * 1024 * 1024

FILE_READ_FAILED_MESSAGE = "Failed to read one or more files."
UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred."

FIELD_MESSAGES = {
    "email": "Invalid email address.",
    "message": "Message must be at least 2 characters.",
}


class SelectedFile(Protocol):
    filename: Optional[str]
    size: Optional[int]
    content_type: Optional[str]

    async def read(self) -> bytes: ...


class FormState(str, Enum):
    IDLE = "idle"
    SENDING = "sending"


_TRANSITIONS = {
    FormState.IDLE: {FormState.SENDING},
    FormState.SENDING: {FormState.IDLE},
}


class InvalidTransition(RuntimeError):
    pass


class FileReadError(Exception):
    def __init__(self, filename: str):
        self.filename = filename
        super().__init__(f"could not read {filename!r}")


class SubmissionValidationError(Exception):
    def __init__(self, field_errors: Dict[str, str]):
        self.field_errors = field_errors
        super().__init__("; ".join(f"{k}: {v}" for k, v in field_errors.items()))


@dataclass
class ContactDraft:
    email: str = ""
    message: str = ""


@dataclass
class Notice:
    type: str  # "success" | "error"
    text: str


def _too_large_warning(name: str, limit: int) -> str:
    return f'File "{name}" is too large (max {limit // (1024 * 1024)}MB).'


class FormController:
    def __init__(self, relay: Any, max_file_bytes: int = MAX_ATTACHMENT_BYTES):
        # relay only needs a blocking send(ContactSubmission) -> RelayResult
        self.relay = relay
        self.max_file_bytes = max_file_bytes
        self.state = FormState.IDLE
        self.draft = ContactDraft()
        self.files: List[SelectedFile] = []
        self.warnings: List[str] = []
        self.notice: Optional[Notice] = None

    @property
    def can_submit(self) -> bool:
        return self.state is FormState.IDLE

    def _transition(self, to: FormState) -> None:
        if to not in _TRANSITIONS[self.state]:
            raise InvalidTransition(f"{self.state.value} -> {to.value}")
        self.state = to

    def update_draft(self, email: str | None = None, message: str | None = None) -> None:
        if email is not None:
            self.draft.email = email
        if message is not None:
            self.draft.message = message

    def select_files(self, files: Sequence[SelectedFile]) -> List[SelectedFile]:
        """Replace the accepted set; files at or over the size limit are dropped with a warning."""
        accepted, warnings = [], []
        for f in files:
            size = f.size or 0
            if size >= self.max_file_bytes:
                warnings.append(_too_large_warning(f.filename or "file", self.max_file_bytes))
                continue
            accepted.append(f)
        for w in warnings:
            log.info(f"[contact] {w}")
        self.files = accepted
        self.warnings = warnings
        return accepted

    def validate(self, draft: ContactDraft | None = None) -> ContactSubmission:
        draft = draft or self.draft
        try:
            return ContactSubmission(email=draft.email, message=draft.message)
        except ValidationError as exc:
            errors: Dict[str, str] = {}
            for err in exc.errors():
                field = str(err["loc"][0]) if err.get("loc") else "form"
                errors.setdefault(field, FIELD_MESSAGES.get(field, err["msg"]))
            raise SubmissionValidationError(errors) from exc

    async def encode_attachments(self, files: Sequence[SelectedFile] | None = None) -> List[Attachment]:
        """Read every file concurrently; the first failure cancels the others."""
        files = self.files if files is None else files
        if not files:
            return []

        async def _read_one(f: SelectedFile) -> Attachment:
            name = f.filename or "file"
            # any failure to turn the upload into an attachment fails the batch
            try:
                data = await f.read()
                return Attachment.from_bytes(name, data, f.content_type)
            except Exception as exc:
                raise FileReadError(name) from exc

        try:
            async with asyncio.TaskGroup() as tg:
                tasks = [tg.create_task(_read_one(f)) for f in files]
        except* FileReadError as eg:
            first = eg.exceptions[0]
            log.warning(f"[contact] attachment read failed: {first}", exc_info=first)
            raise FileReadError(first.filename) from first
        return [t.result() for t in tasks]

    async def submit(self, submission: ContactSubmission | None = None) -> Optional[RelayResult]:
        """Encode the accepted files and relay the submission.

        Returns None without doing anything when a submission is already
        being sent.
        """
        if not self.can_submit:
            log.info("[contact] submit ignored; a submission is already being sent")
            return None
        self._transition(FormState.SENDING)
        self.notice = None
        try:
            if submission is None:
                submission = self.validate()
            try:
                attachments = await self.encode_attachments()
            except FileReadError:
                self.notice = Notice("error", FILE_READ_FAILED_MESSAGE)
                return RelayResult(success=False, message=FILE_READ_FAILED_MESSAGE)

            if attachments:
                submission = submission.with_attachments(attachments)

            try:
                result = await asyncio.to_thread(self.relay.send, submission)
            except Exception:
                log.exception("[contact] relay raised")
                result = RelayResult(success=False, message=UNEXPECTED_ERROR_MESSAGE)

            if result.success:
                self.notice = Notice("success", result.message)
                self.reset()
            else:
                self.notice = Notice("error", result.message)
            return result
        finally:
            self._transition(FormState.IDLE)

    def reset(self) -> None:
        self.draft = ContactDraft()
        self.files = []
        self.warnings = []

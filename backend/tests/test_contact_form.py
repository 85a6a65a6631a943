import asyncio
import time

import pytest

from app.lib.contact import ContactSubmission, RelayResult
from app.lib.contact_form import (
    FILE_READ_FAILED_MESSAGE,
    MAX_ATTACHMENT_BYTES,
    UNEXPECTED_ERROR_MESSAGE,
    ContactDraft,
    FileReadError,
    FormController,
    FormState,
    InvalidTransition,
    SubmissionValidationError,
)


class FakeUpload:
    def __init__(self, filename, data=b"", size=None, content_type="application/octet-stream", error=None, delay=0):
        self.filename = filename
        self.data = data
        self.size = len(data) if size is None else size
        self.content_type = content_type
        self.error = error
        self.delay = delay
        self.cancelled = False

    async def read(self):
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        if self.error:
            raise self.error
        return self.data


class FakeRelay:
    def __init__(self, result=None, delay=0, error=None):
        self.result = result or RelayResult(success=True, message="Your message has been sent successfully!")
        self.delay = delay
        self.error = error
        self.sent = []
        self.controller = None
        self.states = []

    def send(self, submission):
        if self.controller is not None:
            self.states.append(self.controller.state)
        if self.delay:
            time.sleep(self.delay)
        if self.error:
            raise self.error
        self.sent.append(submission)
        return self.result


def _filled(relay, email="a@b.com", message="Hello there"):
    c = FormController(relay)
    c.update_draft(email=email, message=message)
    return c


def test_select_files_drops_oversized_and_keeps_the_rest():
    c = FormController(FakeRelay())
    small = FakeUpload("small.txt", b"hi")
    edge = FakeUpload("edge.bin", size=MAX_ATTACHMENT_BYTES)
    big = FakeUpload("big.iso", size=MAX_ATTACHMENT_BYTES + 1)
    just_under = FakeUpload("under.bin", size=MAX_ATTACHMENT_BYTES - 1)

    accepted = c.select_files([small, edge, big, just_under])

    assert accepted == [small, just_under]
    assert c.files == [small, just_under]
    assert c.warnings == [
        'File "edge.bin" is too large (max 5MB).',
        'File "big.iso" is too large (max 5MB).',
    ]


def test_select_files_replaces_previous_selection():
    c = FormController(FakeRelay())
    c.select_files([FakeUpload("a.txt", b"a"), FakeUpload("b.txt", b"b")])
    c.select_files([FakeUpload("c.txt", b"c")])
    assert [f.filename for f in c.files] == ["c.txt"]
    assert c.warnings == []


def test_validate_accepts_good_draft():
    c = FormController(FakeRelay())
    sub = c.validate(ContactDraft(email="a@b.com", message="Hello there"))
    assert isinstance(sub, ContactSubmission)


def test_validate_maps_field_errors():
    c = _filled(FakeRelay(), email="nope", message="H")
    with pytest.raises(SubmissionValidationError) as exc:
        c.validate()
    assert exc.value.field_errors == {
        "email": "Invalid email address.",
        "message": "Message must be at least 2 characters.",
    }


def test_transitions_are_restricted():
    c = FormController(FakeRelay())
    with pytest.raises(InvalidTransition):
        c._transition(FormState.IDLE)


@pytest.mark.asyncio
async def test_encode_attachments_round_trip():
    c = FormController(FakeRelay())
    payloads = {"a.bin": bytes(range(256)), "b.txt": b"plain text\n", "empty": b""}
    c.select_files([FakeUpload(name, data) for name, data in payloads.items()])

    attachments = await c.encode_attachments()

    assert [a.filename for a in attachments] == list(payloads)
    for att in attachments:
        assert att.decoded() == payloads[att.filename]


@pytest.mark.asyncio
async def test_encode_attachments_fails_whole_batch_and_cancels_pending_reads():
    c = FormController(FakeRelay())
    slow = FakeUpload("slow.bin", b"x", delay=1)
    broken = FakeUpload("broken.bin", b"x", error=OSError("disk gone"))

    with pytest.raises(FileReadError) as exc:
        await c.encode_attachments([slow, broken])

    assert exc.value.filename == "broken.bin"
    assert slow.cancelled is True


@pytest.mark.asyncio
async def test_submit_success_resets_draft_and_files():
    relay = FakeRelay()
    c = _filled(relay)
    c.select_files([FakeUpload("note.txt", b"hello", content_type="text/plain")])

    result = await c.submit()

    assert result.success is True
    assert result.message == "Your message has been sent successfully!"
    assert relay.sent[0].attachments[0].decoded() == b"hello"
    assert relay.sent[0].attachments[0].content_type == "text/plain"
    assert c.draft == ContactDraft()
    assert c.files == []
    assert c.notice.type == "success"
    assert c.state is FormState.IDLE


@pytest.mark.asyncio
async def test_submit_failure_keeps_draft():
    relay = FakeRelay(result=RelayResult(success=False, message="Failed to send your message. Please try again later."))
    c = _filled(relay)

    result = await c.submit()

    assert result.success is False
    assert c.draft.email == "a@b.com"
    assert c.notice.type == "error"
    assert c.state is FormState.IDLE


@pytest.mark.asyncio
async def test_submit_with_unreadable_file_never_calls_relay():
    relay = FakeRelay()
    c = _filled(relay)
    c.select_files([FakeUpload("ok.txt", b"ok"), FakeUpload("bad.txt", error=ValueError("closed file"))])

    result = await c.submit()

    assert result == RelayResult(success=False, message=FILE_READ_FAILED_MESSAGE)
    assert relay.sent == []
    assert c.state is FormState.IDLE
    assert len(c.files) == 2


@pytest.mark.asyncio
async def test_unexpected_read_error_fails_the_submission():
    relay = FakeRelay()
    c = _filled(relay)
    c.select_files([FakeUpload("odd.bin", error=RuntimeError("stream exploded"))])

    with pytest.raises(FileReadError):
        await c.encode_attachments()

    result = await c.submit()

    assert result == RelayResult(success=False, message=FILE_READ_FAILED_MESSAGE)
    assert relay.sent == []
    assert c.state is FormState.IDLE


@pytest.mark.asyncio
async def test_submit_invalid_draft_returns_to_idle():
    relay = FakeRelay()
    c = _filled(relay, message="H")

    with pytest.raises(SubmissionValidationError):
        await c.submit()

    assert relay.sent == []
    assert c.state is FormState.IDLE


@pytest.mark.asyncio
async def test_relay_exception_becomes_generic_failure():
    c = _filled(FakeRelay(error=RuntimeError("boom")))
    result = await c.submit()
    assert result.success is False
    assert result.message == UNEXPECTED_ERROR_MESSAGE


@pytest.mark.asyncio
async def test_only_one_submission_in_flight():
    relay = FakeRelay(delay=0.05)
    c = _filled(relay)
    relay.controller = c
    sub = c.validate()

    first, second = await asyncio.gather(c.submit(sub), c.submit(sub))

    assert first.success is True
    assert second is None
    assert len(relay.sent) == 1
    assert relay.states == [FormState.SENDING]
    assert c.can_submit

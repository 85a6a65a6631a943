import argparse
import asyncio
import mimetypes
from pathlib import Path
from typing import List

from app.dependencies import get_mail_config, get_relay
from app.lib.contact_form import FormController, SubmissionValidationError


class LocalFile:
    """A file on disk, shaped like the uploads the form controller accepts."""

    def __init__(self, path: Path):
        self.path = path
        self.filename = path.name
        self.content_type = mimetypes.guess_type(path.name)[0]
        try:
            self.size = path.stat().st_size
        except OSError:
            # unreadable files fail later, at encode time
            self.size = None

    async def read(self) -> bytes:
        return await asyncio.to_thread(self.path.read_bytes)


def _parse_args(argv: List[str] | None = None):
    p = argparse.ArgumentParser(description="Send a contact message through the configured relay.")
    p.add_argument("--email", required=True, help="reply-to address of the sender")
    p.add_argument("--message", required=True)
    p.add_argument("files", nargs="*", type=Path, help="optional attachments (max 5MB each)")
    return p.parse_args(argv)


async def send(argv: List[str] | None = None) -> int:
    args = _parse_args(argv)
    controller = FormController(get_relay(get_mail_config()))
    controller.select_files([LocalFile(p) for p in args.files])
    for w in controller.warnings:
        print(f"warning: {w}")
    controller.update_draft(email=args.email, message=args.message)

    try:
        submission = controller.validate()
    except SubmissionValidationError as exc:
        for field, msg in exc.field_errors.items():
            print(f"{field}: {msg}")
        return 2

    result = await controller.submit(submission)
    print(result.message)
    return 0 if result.success else 1


if __name__ == "__main__":
    raise SystemExit(asyncio.run(send()))

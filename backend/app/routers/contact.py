import asyncio
from typing import List

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from app.core.mailer import Relay
from app.dependencies import get_relay
from app.lib.contact import ContactSubmission, RelayResult
from app.lib.contact_form import FormController, SubmissionValidationError

router = APIRouter(prefix="/api", tags=["contact"])

class ContactFormOut(RelayResult):
    warnings: List[str] = []
    accepted_files: List[str] = []

@router.post("/contact", response_model=RelayResult)
async def contact(payload: ContactSubmission, relay: Relay = Depends(get_relay)):
    return await asyncio.to_thread(relay.send, payload)

@router.post("/contact/form", response_model=ContactFormOut)
async def contact_form(
    email: str = Form(""),
    message: str = Form(""),
    files: List[UploadFile] = File(default=[]),
    relay: Relay = Depends(get_relay),
):
    controller = FormController(relay)
    # browsers send an empty part when no file is chosen
    accepted = controller.select_files([f for f in files if f.filename])
    warnings = list(controller.warnings)
    accepted_names = [f.filename for f in accepted]
    controller.update_draft(email=email, message=message)

    try:
        submission = controller.validate()
    except SubmissionValidationError as exc:
        raise HTTPException(status_code=422, detail={"errors": exc.field_errors})

    result = await controller.submit(submission)
    return ContactFormOut(
        success=result.success,
        message=result.message,
        warnings=warnings,
        accepted_files=accepted_names,
    )

from fastapi import APIRouter, Depends

from app.core.mailer import ServerMailConfig
from app.dependencies import get_mail_config

router = APIRouter(prefix="/health", tags=["health"])

@router.get("")
async def health_root():
    return {"status": "ok"}

@router.get("/mail")
async def health_mail(config: ServerMailConfig = Depends(get_mail_config)):
    # presence only; never echo the values
    missing = config.missing()
    return {
        "ok": not missing,
        "smtp": {"host": config.host, "port": config.port},
        "configured": {
            "SMTP_USERNAME":         bool(config.username),
            "SMTP_PASSWORD":         bool(config.password),
            "MAIL_RECEIVER_ADDRESS": bool(config.recipient_address),
        },
    }

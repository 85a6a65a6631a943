# backend/app/dependencies.py
from fastapi import Depends

from app.core.mailer import Relay, ServerMailConfig
from app.core.settings import Settings


def get_mail_config() -> ServerMailConfig:
    # Re-read per request so credential changes in .env are picked up
    return ServerMailConfig.from_settings(Settings())


def get_relay(config: ServerMailConfig = Depends(get_mail_config)) -> Relay:
    return Relay(config)

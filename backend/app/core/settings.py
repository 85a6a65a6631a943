# app/core/settings.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import AliasChoices, Field
from typing import Optional

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    api_title: str = Field(default="Contact Relay API", alias="API_TITLE")
    cors_origins: str = Field(default="http://localhost:5173", alias="CORS_ORIGINS")

    # Transport identity; also used as the From address
    smtp_username: Optional[str] = Field(default=None, alias="SMTP_USERNAME")
    smtp_password: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("SMTP_PASSWORD", "SMPT_PASSWORD"),
    )

    # Fixed mailbox that receives every contact message
    mail_receiver_address: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("MAIL_RECEIVER_ADDRESS", "MAIL_RECIEVER_ADDRESS"),
    )

    smtp_host: str = Field(default="smtp.gmail.com", alias="SMTP_HOST")
    smtp_port: int = Field(default=587, alias="SMTP_PORT")

settings = Settings()

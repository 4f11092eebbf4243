from typing import Optional
from pydantic_settings import BaseSettings

class Settings(BaseSettings):

    DATABASE_URL : str
    JWT_SECRET : str
    JWT_ALGO : str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES : int = 7 * 24 * 60
    PASS_HASH_SCHEME : str = "pbkdf2_sha256"
    AUTO_CREATE_TABLES : bool = True

    # outbound email (Resend HTTP API); console sender is used when no key is set
    RESEND_API_KEY : Optional[str] = None
    RESEND_API_URL : str = "https://api.resend.com"
    EMAIL_FROM : str = "Blue Orca AI <onboarding@resend.dev>"
    EMAIL_SUBJECT : str = "Your Blue Orca verification code"
    EMAIL_TIMEOUT_SECONDS : float = 10.0

    OPENAI_API_KEY : Optional[str] = None
    OPENAI_MODEL : str = "gpt-4o-mini"
    CHAT_SYSTEM_PROMPT : Optional[str] = None
    MOCK_LLM : bool = False

    class Config:
        env_file = ".env"
        extra="ignore"

config_settings = Settings()

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from chatcore.schemas import ChatSettings


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )

    PROJECT_NAME: str = "chatcore"

    OPENAI_API_KEY: Optional[str] = None
    OPENAI_ORG: Optional[str] = None
    OPENAI_PROJECT: Optional[str] = None
    OPENAI_BASE_URL: Optional[str] = None
    OPENAI_TIMEOUT_SECONDS: float = 60.0

    # Optional POST target for per-call usage (billing, quotas)
    USAGE_CALLBACK_URL: Optional[str] = None
    USAGE_CALLBACK_AUTH: Optional[str] = None
    USAGE_CALLBACK_TIMEOUT_SECONDS: float = 5.0

    # Provider-level chat defaults; unset values fall through to built-ins
    CHAT_MAX_TOKENS: Optional[int] = None
    CHAT_TEMPERATURE: Optional[float] = None
    CHAT_TOP_P: Optional[float] = None
    CHAT_USE_STREAMING: Optional[bool] = None

    def provider_chat_settings(self) -> ChatSettings:
        return ChatSettings(
            max_tokens=self.CHAT_MAX_TOKENS,
            temperature=self.CHAT_TEMPERATURE,
            top_p=self.CHAT_TOP_P,
            use_streaming=self.CHAT_USE_STREAMING,
        )


settings = Settings()

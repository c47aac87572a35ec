from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
import os
from typing import Optional

class Settings(BaseSettings):
    """
    Centralized configuration for the library assistant.
    All values are loaded from environment variables (or config/.env) with type safety.
    Missing mandatory fields will raise validation errors at startup.
    """
    openai_api_key: str = Field(..., validation_alias='OPENAI_API_KEY')
    openai_model: str = Field(default='gpt-4o-mini', validation_alias='OPENAI_MODEL')

    log_level: str = Field(default='INFO', validation_alias='LOG_LEVEL')
    logfire_token: Optional[str] = Field(default=None, validation_alias='LOGFIRE_TOKEN', description="Logfire token for monitoring")

    # Completion provider
    provider_timeout: float = Field(default=60.0, validation_alias='PROVIDER_TIMEOUT', description="Upper bound in seconds for a single completion call")
    provider_max_attempts: int = Field(default=2, validation_alias='PROVIDER_MAX_ATTEMPTS', description="Attempts for a completion call on transient network errors")
    default_temperature: Optional[float] = Field(default=None, validation_alias='DEFAULT_TEMPERATURE')
    default_max_tokens: Optional[int] = Field(default=None, validation_alias='DEFAULT_MAX_TOKENS')

    # arXiv lookup
    arxiv_api_url: str = Field(default='https://export.arxiv.org/api/query', validation_alias='ARXIV_API_URL')
    arxiv_timeout: float = Field(default=10.0, validation_alias='ARXIV_TIMEOUT')

    # HTTP server
    api_host: str = Field(default='0.0.0.0', validation_alias='API_HOST')
    api_port: int = Field(default=4111, validation_alias='API_PORT')

    @field_validator('provider_max_attempts')
    @classmethod
    def validate_attempts(cls, v):
        if v < 1:
            raise ValueError("PROVIDER_MAX_ATTEMPTS must be at least 1")
        return v

    model_config = SettingsConfigDict(
        env_file=os.path.join(os.path.dirname(__file__), '..', 'config', '.env'),
        env_file_encoding='utf-8',
        extra='ignore'
    )

settings = Settings()

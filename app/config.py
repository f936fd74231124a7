from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import computed_field
from datetime import timedelta
from dotenv import load_dotenv

load_dotenv() # Load .env file


class Settings(BaseSettings):
    model_config = SettingsConfigDict(extra="ignore")

    # --- Identity ---
    # No default on purpose: the signing key has to come from the environment
    JWT_SECRET: str
    JWT_ALGORITHM: str = "HS256"
    TOKEN_EXPIRE_DAYS: int = 7
    COOKIE_NAME: str = "token"
    COOKIE_SECURE: bool = True
    COOKIE_SAMESITE: str = "none"

    # --- Storage ---
    DATABASE_URL: str = "sqlite:///./database.sqlite"
    REDIS_URL: str = "redis://localhost:6379/0"
    SIM_STATE_TTL_SECONDS: int = 6 * 60 * 60
    SIM_LOCK_TIMEOUT_SECONDS: int = 180

    # --- Language model ---
    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-4o"
    EVALUATION_MODEL: str = "gpt-4o"
    THEME_VALIDATION_MODEL: str = "gpt-4o-mini"
    OPENAI_TIMEOUT_SECONDS: float = 60.0

    # --- Simulation ---
    TURN_SECONDS: int = 120
    ENFORCE_HARD_CAP: bool = False

    STATIC_DIR: str = "dist"

    @computed_field
    @property
    def TOKEN_TTL(self) -> timedelta:
        return timedelta(days=self.TOKEN_EXPIRE_DAYS)


settings = Settings()

# Add checks for essential runtime settings
if not settings.JWT_SECRET.strip():
    raise ValueError("JWT_SECRET is empty. Set a strong, random JWT_SECRET environment variable.")
if not settings.OPENAI_API_KEY:
    print("WARNING: OPENAI_API_KEY environment variable not set. Simulations will fail.")

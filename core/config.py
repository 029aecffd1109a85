from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

from core.errors import ConfigurationError

# Load environment variables from .env file
load_dotenv()


def _bucket_name(value: str) -> str:
    """Accepts 'gs://bucket' or 'bucket' and returns the bare bucket name."""
    value = value.strip()
    if value.startswith("gs://"):
        value = value[len("gs://"):]
    return value.strip("/")


# Pydantic will automatically read from environment variables.
class Settings(BaseSettings):
    # Core App Settings
    PROJECT_NAME: str = "Invoice Relay API"
    PORT: int
    ALLOWED_ORIGIN: str
    LOG_LEVEL: str = "INFO"

    # Google Document AI processor
    GOOGLE_PROJECT_ID: str
    GOOGLE_PROJECT_LOCATION: str
    GOOGLE_DOCUMENT_PROCESSOR_ID: str
    DOCAI_TIMEOUT_SECONDS: float = 900.0

    # Cloud Storage buckets (input files / processor output)
    GCS_INPUT_BUCKET_URI: str
    GCS_OUTPUT_BUCKET_URI: str
    GCS_OUTPUT_BUCKET_PREFIX: str

    # S3-compatible access to Cloud Storage (XML API + HMAC keys)
    STORAGE_ENDPOINT: str = "https://storage.googleapis.com"
    STORAGE_REGION: str = "auto"
    GCS_HMAC_ACCESS_KEY: str | None = None
    GCS_HMAC_SECRET: str | None = None
    PURGE_REMOTE_ON_CLEANUP: bool = False

    # Request gate
    VALID_KEYS: str
    RATE_LIMIT_MAX_REQUESTS: int = 15
    RATE_LIMIT_WINDOW_SECONDS: float = 60 * 60

    # Local staging
    UPLOADS_DIR: str = "uploads"
    PROCESSED_DIR: str = "processed"
    MAX_FILE_SIZE_BYTES: int = 10 * 1024 * 1024
    MAX_FILES: int = 10

    @field_validator("GCS_INPUT_BUCKET_URI", "GCS_OUTPUT_BUCKET_URI")
    @classmethod
    def _strip_scheme(cls, value: str) -> str:
        name = _bucket_name(value)
        if not name:
            raise ValueError("bucket name must not be empty")
        return name

    @field_validator("GCS_OUTPUT_BUCKET_PREFIX")
    @classmethod
    def _strip_slashes(cls, value: str) -> str:
        return value.strip().strip("/")

    @field_validator("GCS_HMAC_ACCESS_KEY", "GCS_HMAC_SECRET")
    @classmethod
    def _blank_to_none(cls, value: str | None) -> str | None:
        # Empty means "use the default credential chain".
        return value or None

    @field_validator("VALID_KEYS")
    @classmethod
    def _require_keys(cls, value: str) -> str:
        if not any(key.strip() for key in value.split(",")):
            raise ValueError("at least one API key is required")
        return value

    @property
    def valid_keys(self) -> frozenset[str]:
        return frozenset(key.strip() for key in self.VALID_KEYS.split(",") if key.strip())

    @property
    def INPUT_BUCKET(self) -> str:
        return self.GCS_INPUT_BUCKET_URI

    @property
    def OUTPUT_BUCKET(self) -> str:
        return self.GCS_OUTPUT_BUCKET_URI


def load_settings() -> Settings:
    """
    Builds the settings object, failing fast when a required value is absent.
    """
    try:
        return Settings()
    except ValidationError as e:
        missing = ", ".join(str(err["loc"][0]) for err in e.errors() if err.get("loc"))
        raise ConfigurationError(f"Invalid or missing configuration: {missing}") from e


settings = load_settings()

import logging
import os
import uuid
from dataclasses import dataclass

from core.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Run:
    """One processing session and everything it owns, local and remote."""
    run_id: str
    upload_dir: str
    processed_dir: str
    input_prefix: str
    output_prefix: str

    @property
    def output_uri(self) -> str:
        return f"gs://{settings.OUTPUT_BUCKET}/{self.output_prefix}"

    def input_key(self, filename: str) -> str:
        return f"{self.input_prefix}{filename}"

    def input_uri(self, filename: str) -> str:
        return f"gs://{settings.INPUT_BUCKET}/{self.input_key(filename)}"


def _build_run(run_id: str) -> Run:
    prefix = f"{settings.GCS_OUTPUT_BUCKET_PREFIX}/" if settings.GCS_OUTPUT_BUCKET_PREFIX else ""
    return Run(
        run_id=run_id,
        upload_dir=os.path.abspath(os.path.join(settings.UPLOADS_DIR, run_id)),
        processed_dir=os.path.abspath(os.path.join(settings.PROCESSED_DIR, run_id)),
        input_prefix=f"{run_id}/",
        output_prefix=f"{prefix}{run_id}/",
    )


def new_run() -> Run:
    """Mints a fresh run. Called once per submission request."""
    run = _build_run(uuid.uuid4().hex)
    logger.info("Allocated run %s", run.run_id)
    return run


def load_run(run_id: str) -> Run:
    """
    Rebuilds the run for an id handed back by a client.

    :raises ValueError: If ``run_id`` is not a UUID.
    """
    return _build_run(uuid.UUID(run_id).hex)

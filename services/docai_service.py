"""Google Document AI batch processing.

Builds the batch request for a run's staged invoices, submits it as a
long-running operation and waits for it to finish. Library errors are
converted into ``ProcessingError`` so callers never deal with SDK exceptions.
"""

import concurrent.futures
import logging
from functools import lru_cache
from typing import Any

from google.api_core import exceptions as gexc
from google.api_core.client_options import ClientOptions
from google.cloud import documentai_v1 as documentai

from core.config import settings
from core.errors import ProcessingError, ProcessingTimeoutError

logger = logging.getLogger(__name__)

PDF_MIME_TYPE = "application/pdf"


@lru_cache(maxsize=1)
def get_client() -> documentai.DocumentProcessorServiceClient:
    """Regional Document AI client, created on first use."""
    return documentai.DocumentProcessorServiceClient(
        client_options=ClientOptions(
            api_endpoint=f"{settings.GOOGLE_PROJECT_LOCATION}-documentai.googleapis.com"
        )
    )


def processor_name(project: str, location: str, processor_id: str) -> str:
    return f"projects/{project}/locations/{location}/processors/{processor_id}"


def build_batch_request(input_uris: list[str], output_uri: str) -> dict[str, Any]:
    """
    Builds the batch job descriptor.

    :param input_uris: gs:// URIs of the staged PDFs.
    :param output_uri: gs:// prefix the processor writes its results under.
    """
    return {
        "name": processor_name(
            settings.GOOGLE_PROJECT_ID,
            settings.GOOGLE_PROJECT_LOCATION,
            settings.GOOGLE_DOCUMENT_PROCESSOR_ID,
        ),
        "input_documents": {
            "gcs_documents": {
                "documents": [
                    {"gcs_uri": uri, "mime_type": PDF_MIME_TYPE} for uri in input_uris
                ]
            }
        },
        "document_output_config": {
            "gcs_output_config": {"gcs_uri": output_uri},
        },
    }


def _log_document_statuses(operation: Any) -> None:
    metadata = getattr(operation, "metadata", None)
    statuses = getattr(metadata, "individual_process_statuses", None) or []
    for status in statuses:
        code = getattr(status.status, "code", 0)
        if code:
            logger.warning(
                "Document %s failed: %s",
                status.input_gcs_source, getattr(status.status, "message", ""),
            )
        else:
            logger.info("Document %s -> %s", status.input_gcs_source, status.output_gcs_destination)


def run_batch_process(input_uris: list[str], output_uri: str, timeout: float | None = None) -> None:
    """
    Submits a batch job and blocks until the remote service reports completion.

    Meant to be called from a worker thread; there is no cancellation path once
    the job is submitted.

    :raises ProcessingTimeoutError: If the job has not finished within ``timeout``.
    :raises ProcessingError: If submission fails or the job completes with an error.
    """
    if timeout is None:
        timeout = settings.DOCAI_TIMEOUT_SECONDS
    request = build_batch_request(input_uris, output_uri)

    try:
        operation = get_client().batch_process_documents(request=request)
    except gexc.GoogleAPICallError as e:
        logger.error("Error submitting batch job: %s", e)
        raise ProcessingError("Error submitting batch job") from e

    logger.info("Processing %d documents (operation %s)...", len(input_uris), operation.operation.name)
    try:
        operation.result(timeout=timeout)
    except concurrent.futures.TimeoutError as e:
        logger.error("Batch operation %s timed out after %ss", operation.operation.name, timeout)
        raise ProcessingTimeoutError(f"Batch job did not finish within {timeout}s") from e
    except gexc.GoogleAPICallError as e:
        logger.error("Batch operation %s failed: %s", operation.operation.name, e)
        raise ProcessingError("Batch job failed") from e

    _log_document_statuses(operation)
    logger.info("Batch operation %s complete.", operation.operation.name)

import logging
from typing import List

from fastapi import APIRouter, BackgroundTasks, File, HTTPException, Query, Response, UploadFile, status

from core.config import settings
from core.errors import FilesystemError, ProcessingError, StorageError
from middleware.gate.gate_deps import gate_dependencies
from schemas.invoice_schema import ManifestEntry, ProcessedFile
from services import pipeline_service, run_service

logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["invoices"],
    dependencies=gate_dependencies,
)

RUN_ID_HEADER = "X-Run-Id"


# --- Endpoint 1: Upload and process a batch of invoices ---

@router.post("/process-multiple", response_model=List[ManifestEntry])
async def process_multiple(
    response: Response,
    files: List[UploadFile] = File(..., alias="files[]"),
):
    """
    Uploads the invoices to the input bucket, runs the Document AI batch job
    over them and stages its output locally.
    The run id needed to fetch the results is returned in the X-Run-Id header.
    """
    if len(files) > settings.MAX_FILES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"At most {settings.MAX_FILES} files per request.",
        )

    run = run_service.new_run()
    response.headers[RUN_ID_HEADER] = run.run_id

    try:
        uploaded = await pipeline_service.save_uploads(
            run, [(f.filename, f.file) for f in files]
        )
        manifest = await pipeline_service.process_run(run, uploaded)
    except (StorageError, ProcessingError, FilesystemError) as e:
        logger.error("Error processing documents for run %s: %s", run.run_id, e)
        # The client still needs the run id to have /processed clean up the uploads.
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error processing documents",
            headers={RUN_ID_HEADER: run.run_id},
        )

    logger.info("Document processing complete for run %s.", run.run_id)
    return manifest


# --- Endpoint 2: Serve processed results, then clean up ---

@router.get("/processed", response_model=List[ProcessedFile])
async def processed(
    background_tasks: BackgroundTasks,
    run_id: str = Query(..., description="Run id returned by /process-multiple"),
):
    """
    Returns the text content of every staged result of a run.
    The run's local files are deleted once the response has been sent,
    so results can be fetched once.
    """
    try:
        run = run_service.load_run(run_id)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid run id.")

    try:
        files = await pipeline_service.read_processed(run)
    except FilesystemError as e:
        logger.error("Error reading results for run %s: %s", run.run_id, e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error",
        )

    logger.info("Serving %d result file(s) for run %s", len(files), run.run_id)
    background_tasks.add_task(pipeline_service.cleanup_run, run)
    return files

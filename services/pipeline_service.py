"""Run orchestration: upload, remote batch processing, staging, serving, cleanup.

Every step takes the ``Run`` it works on explicitly. Blocking SDK and disk
calls are pushed to worker threads so concurrent runs interleave on the event
loop.
"""

import asyncio
import logging
import os
import shutil
from dataclasses import dataclass
from typing import BinaryIO

from core.config import settings
from core.errors import FilesystemError, StorageError
from schemas.invoice_schema import ManifestEntry, ProcessedFile
from services import docai_service, storage_service
from services.run_service import Run

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadedFile:
    name: str
    size: int
    path: str


def _write_upload(source: BinaryIO, destination: str) -> int:
    with open(destination, "wb") as buffer:
        shutil.copyfileobj(source, buffer)
    return os.path.getsize(destination)


def _unique_name(name: str, taken: set) -> str:
    """Suffixes repeated names within one run: inv.pdf, inv-2.pdf, inv-3.pdf."""
    if not name:
        return name
    stem, ext = os.path.splitext(name)
    candidate, n = name, 1
    while candidate in taken:
        n += 1
        candidate = f"{stem}-{n}{ext}"
    taken.add(candidate)
    return candidate


async def save_uploads(run: Run, files: list[tuple[str, BinaryIO]]) -> list[UploadedFile]:
    """
    Writes the client's files into the run's upload directory.

    :param files: (original filename, readable binary stream) pairs.
    :raises FilesystemError: If a file cannot be written.
    """
    saved, taken = [], set()
    try:
        await asyncio.to_thread(os.makedirs, run.upload_dir, exist_ok=True)
        for index, (filename, stream) in enumerate(files):
            name = _unique_name(os.path.basename(filename or ""), taken)
            local_path = os.path.join(run.upload_dir, name or f"unnamed-{index}")
            size = await asyncio.to_thread(_write_upload, stream, local_path)
            saved.append(UploadedFile(name=name, size=size, path=local_path))
    except OSError as e:
        logger.error("Error saving uploads for run %s: %s", run.run_id, e)
        raise FilesystemError("Error saving uploaded files") from e
    return saved


async def stage_uploads(run: Run, uploaded: list[UploadedFile]) -> list[str]:
    """
    Copies the run's files to the remote input prefix.

    Oversized files are skipped. Other per-file failures are logged and the
    remaining files still go through.

    :return: gs:// URIs of the files that were actually uploaded.
    :raises StorageError: If the directory marker cannot be created, or if
        every upload attempted failed.
    """
    await asyncio.to_thread(
        storage_service.create_directory_marker, settings.INPUT_BUCKET, run.input_prefix
    )

    results = await asyncio.gather(
        *(
            asyncio.to_thread(
                storage_service.upload_object,
                settings.INPUT_BUCKET,
                f.path,
                run.input_key(f.name),
                f.size,
            )
            for f in uploaded
        ),
        return_exceptions=True,
    )

    staged, failures = [], []
    for f, result in zip(uploaded, results):
        if isinstance(result, StorageError):
            failures.append(f.name)
        elif isinstance(result, BaseException):
            raise result
        elif result:
            staged.append(run.input_uri(f.name))

    if failures:
        logger.warning("Run %s: %d upload(s) failed: %s", run.run_id, len(failures), ", ".join(failures))
        if not staged:
            raise StorageError("No files could be uploaded")
    logger.info("Run %s: %d of %d file(s) staged.", run.run_id, len(staged), len(uploaded))
    return staged


async def submit_batch(run: Run, input_uris: list[str]) -> bool:
    """
    Runs the remote batch job over the staged inputs and waits for it.

    :return: False when there was nothing to submit.
    """
    if not input_uris:
        logger.info("Run %s: nothing staged, no batch job submitted.", run.run_id)
        return False
    await asyncio.to_thread(docai_service.run_batch_process, input_uris, run.output_uri)
    return True


def _local_result_names(run: Run, keys: list[str]) -> list[str]:
    """
    Basenames of the result objects, unless two of them clash. Clashing ones
    are named after their path below the run's output prefix instead.
    """
    basenames = [os.path.basename(key) for key in keys]
    names = []
    for key, basename in zip(keys, basenames):
        if basenames.count(basename) > 1:
            basename = key[len(run.output_prefix):].replace("/", "_")
        names.append(basename)
    return names


async def retrieve_results(run: Run) -> list[ManifestEntry]:
    """Downloads everything under the run's output prefix into its processed directory."""
    logger.info("Run %s: fetching results...", run.run_id)
    keys = await asyncio.to_thread(
        storage_service.list_objects, settings.OUTPUT_BUCKET, run.output_prefix
    )
    if not keys:
        return []

    try:
        await asyncio.to_thread(os.makedirs, run.processed_dir, exist_ok=True)
    except OSError as e:
        raise FilesystemError("Error creating processed directory") from e

    manifest = [
        ManifestEntry(name=name, path=os.path.join(run.processed_dir, name))
        for name in _local_result_names(run, keys)
    ]
    await asyncio.gather(
        *(
            asyncio.to_thread(
                storage_service.download_object, settings.OUTPUT_BUCKET, key, entry.path
            )
            for key, entry in zip(keys, manifest)
        )
    )
    logger.info("Run %s: %d result file(s) staged.", run.run_id, len(manifest))
    return manifest


async def process_run(run: Run, uploaded: list[UploadedFile]) -> list[ManifestEntry]:
    """upload -> remote process -> await completion -> download."""
    staged = await stage_uploads(run, uploaded)
    if not await submit_batch(run, staged):
        return []
    return await retrieve_results(run)


def _read_text_files(directory: str) -> list[ProcessedFile]:
    if not os.path.isdir(directory):
        return []
    files = []
    for name in sorted(os.listdir(directory)):
        path = os.path.join(directory, name)
        if not os.path.isfile(path):
            continue
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            files.append(ProcessedFile(name=name, data=f.read()))
    return files


async def read_processed(run: Run) -> list[ProcessedFile]:
    """
    Reads every staged result of a run as text.

    A run that was never staged, or was already cleaned, yields an empty list.

    :raises FilesystemError: If a staged file cannot be read.
    """
    try:
        return await asyncio.to_thread(_read_text_files, run.processed_dir)
    except OSError as e:
        logger.error("Error reading processed files for run %s: %s", run.run_id, e)
        raise FilesystemError("Error reading processed files") from e


def _empty_directory(directory: str) -> int:
    """Best-effort removal of every file in a directory. Returns the failure count."""
    try:
        names = os.listdir(directory)
    except FileNotFoundError:
        return 0
    except OSError as e:
        logger.error("Cleanup: cannot list %s: %s", directory, e)
        return 1

    failures = 0
    for name in names:
        path = os.path.join(directory, name)
        try:
            if os.path.isfile(path) or os.path.islink(path):
                os.remove(path)
        except OSError as e:
            failures += 1
            logger.error("Cleanup: cannot delete %s: %s", path, e)
    return failures


def _purge_remote(run: Run) -> None:
    for bucket, prefix in (
        (settings.INPUT_BUCKET, run.input_prefix),
        (settings.OUTPUT_BUCKET, run.output_prefix),
    ):
        try:
            count = storage_service.delete_objects(bucket, prefix)
            logger.info("Cleanup: removed %d remote object(s) under %s/%s", count, bucket, prefix)
        except StorageError as e:
            logger.error("Cleanup: remote purge of %s/%s failed: %s", bucket, prefix, e)


def cleanup_run(run: Run) -> None:
    """
    Deletes the files of a run's processed and upload directories.

    Never raises; failures are logged. Directories themselves stay in place.
    """
    logger.info("Cleaning up run %s...", run.run_id)
    failures = _empty_directory(run.processed_dir) + _empty_directory(run.upload_dir)
    if settings.PURGE_REMOTE_ON_CLEANUP:
        _purge_remote(run)
    if failures:
        logger.warning("Clean up of run %s finished with %d failure(s)", run.run_id, failures)
    else:
        logger.info("Clean up of run %s - done", run.run_id)

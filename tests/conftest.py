"""Shared fixtures for tests."""

import os

# Required settings must exist before any application module is imported.
os.environ.update({
    "PORT": "8000",
    "ALLOWED_ORIGIN": "http://localhost:3000",
    "GOOGLE_PROJECT_ID": "test-project",
    "GOOGLE_PROJECT_LOCATION": "us",
    "GOOGLE_DOCUMENT_PROCESSOR_ID": "proc-123",
    "GCS_INPUT_BUCKET_URI": "gs://invoice-input",
    "GCS_OUTPUT_BUCKET_URI": "gs://invoice-output/",
    "GCS_OUTPUT_BUCKET_PREFIX": "invoices",
    "VALID_KEYS": "key-one, key-two",
    "GCS_HMAC_ACCESS_KEY": "test-access",
    "GCS_HMAC_SECRET": "test-secret",
})

import pytest
from unittest.mock import MagicMock

from core.config import settings
from middleware.gate.gate_deps import limiter
from services import docai_service, storage_service


@pytest.fixture(autouse=True)
def staging_dirs(tmp_path, monkeypatch):
    """Point the local staging area at a per-test temporary directory."""
    monkeypatch.setattr(settings, "UPLOADS_DIR", str(tmp_path / "uploads"))
    monkeypatch.setattr(settings, "PROCESSED_DIR", str(tmp_path / "processed"))
    return tmp_path


@pytest.fixture(autouse=True)
def reset_rate_limit():
    limiter.reset()
    yield
    limiter.reset()


class FakeBucketStore:
    """
    In-memory stand-in for the boto3 S3 client.

    ``outputs`` maps a key prefix to the result objects the processor will
    "write" there once a batch job finishes.
    """

    def __init__(self):
        self.objects = {}
        self.fail_uploads = set()

    def put_object(self, Bucket, Key, Body=b"", ContentType=None):
        self.objects[(Bucket, Key)] = Body

    def upload_file(self, Filename, Bucket, Key, ExtraArgs=None, Config=None):
        from botocore.exceptions import ClientError

        if os.path.basename(Key) in self.fail_uploads:
            raise ClientError({"Error": {"Code": "500", "Message": "boom"}}, "PutObject")
        with open(Filename, "rb") as f:
            self.objects[(Bucket, Key)] = f.read()

    def download_file(self, Bucket, Key, Filename):
        with open(Filename, "wb") as f:
            f.write(self.objects[(Bucket, Key)])

    def delete_object(self, Bucket, Key):
        self.objects.pop((Bucket, Key), None)

    def get_paginator(self, name):
        store = self

        class _Paginator:
            def paginate(self, Bucket, Prefix):
                contents = [
                    {"Key": key, "Size": len(body)}
                    for (bucket, key), body in store.objects.items()
                    if bucket == Bucket and key.startswith(Prefix)
                ]
                yield {"Contents": contents} if contents else {}

        return _Paginator()

    def keys(self, bucket):
        return [key for (b, key) in self.objects if b == bucket]


@pytest.fixture
def fake_store(monkeypatch):
    store = FakeBucketStore()
    monkeypatch.setattr(storage_service, "s3_client", store)
    return store


@pytest.fixture
def fake_docai(monkeypatch, fake_store):
    """
    Document AI client whose batch job writes one JSON result per input
    document under the requested output prefix.
    """
    client = MagicMock()

    def batch_process_documents(request):
        output_uri = request["document_output_config"]["gcs_output_config"]["gcs_uri"]
        bucket, _, prefix = output_uri[len("gs://"):].partition("/")
        for index, doc in enumerate(request["input_documents"]["gcs_documents"]["documents"]):
            stem = os.path.splitext(os.path.basename(doc["gcs_uri"]))[0]
            key = f"{prefix}1234/{index}/{stem}-0.json"
            fake_store.objects[(bucket, key)] = f'{{"source": "{doc["gcs_uri"]}"}}'.encode()
        operation = MagicMock()
        operation.operation.name = "projects/test-project/operations/1234"
        operation.metadata.individual_process_statuses = []
        return operation

    client.batch_process_documents.side_effect = batch_process_documents
    monkeypatch.setattr(docai_service, "get_client", lambda: client)
    return client

"""Tests for run allocation."""

import os
import uuid

import pytest

from services import run_service


class TestNewRun:
    def test_each_run_is_distinct(self):
        first, second = run_service.new_run(), run_service.new_run()
        assert first.run_id != second.run_id
        assert first.upload_dir != second.upload_dir
        assert first.processed_dir != second.processed_dir
        assert first.input_prefix != second.input_prefix
        assert first.output_prefix != second.output_prefix

    def test_paths_are_namespaced(self, staging_dirs):
        run = run_service.new_run()
        assert run.upload_dir == os.path.join(str(staging_dirs / "uploads"), run.run_id)
        assert run.processed_dir == os.path.join(str(staging_dirs / "processed"), run.run_id)
        assert run.input_prefix == f"{run.run_id}/"
        assert run.output_prefix == f"invoices/{run.run_id}/"

    def test_remote_locations(self):
        run = run_service.new_run()
        assert run.output_uri == f"gs://invoice-output/invoices/{run.run_id}/"
        assert run.input_key("a.pdf") == f"{run.run_id}/a.pdf"
        assert run.input_uri("a.pdf") == f"gs://invoice-input/{run.run_id}/a.pdf"


class TestLoadRun:
    def test_round_trips_run_id(self):
        run = run_service.new_run()
        assert run_service.load_run(run.run_id) == run

    def test_accepts_dashed_uuid(self):
        run_id = uuid.uuid4()
        assert run_service.load_run(str(run_id)).run_id == run_id.hex

    @pytest.mark.parametrize("bad", ["", "../../etc", "not-a-uuid"])
    def test_rejects_non_uuid(self, bad):
        with pytest.raises(ValueError):
            run_service.load_run(bad)

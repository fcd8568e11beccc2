"""Unit tests for turning runner output into lifecycle events."""

from datetime import datetime, timezone

from conftest import FakeDriver
from reportsync.models import LogLevel, RunnerStatus
from reportsync.pipeline.runner_log import parse_runner_log

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def parse(data):
    return parse_runner_log(data, FakeDriver().runner_log_patterns(), repo="https://github.com/acme/models", now=NOW)


class TestParseRunnerLog:
    def test_empty_chunk(self):
        assert parse("") == []
        assert parse(b"") == []

    def test_unrelated_output(self):
        assert parse("2024-05-01 Downloading toolchain\n") == []

    def test_ready(self):
        events = parse("√ Connected to GitHub\nListening for Jobs\n")
        assert len(events) == 1
        assert events[0].status is RunnerStatus.READY
        assert events[0].level is LogLevel.INFO
        assert events[0].timestamp == NOW
        assert events[0].repo == "https://github.com/acme/models"

    def test_job_started_extracts_ids(self):
        [event] = parse(b"Running job: train-gpu in pipeline 991\n")
        assert event.status is RunnerStatus.JOB_STARTED
        assert event.job == "train-gpu"
        assert event.pipeline == "991"
        assert event.level is LogLevel.INFO

    def test_job_succeeded(self):
        [event] = parse("Job train completed with result: Succeeded\n")
        assert event.status is RunnerStatus.JOB_ENDED
        assert event.success is True
        assert event.level is LogLevel.INFO

    def test_job_failed_is_error(self):
        [event] = parse("Job train completed with result: Failed\n")
        assert event.success is False
        assert event.level is LogLevel.ERROR

    def test_one_event_per_rule_in_order(self):
        chunk = "Listening for Jobs\nRunning job: a\nJob a completed with result: Succeeded\n"
        assert [e.status for e in parse(chunk)] == [
            RunnerStatus.READY,
            RunnerStatus.JOB_STARTED,
            RunnerStatus.JOB_ENDED,
        ]

    def test_no_memory_between_chunks(self):
        chunk = "Running job: a\n"
        assert parse(chunk) == parse(chunk)

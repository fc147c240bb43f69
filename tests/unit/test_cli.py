# tests/unit/test_cli.py
"""Unit tests for the command-line interface."""

import logging
from pathlib import Path
from typing import Iterator
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner, Result
from fakes import DEST_BUCKET, SOURCE_BUCKET, FakeS3Client

from prefix_copy.cli import cli, reset_logging
from prefix_copy.config import Config
from prefix_copy.pipeline import RunSummary
from prefix_copy.worker import KeyFailure


@pytest.fixture(autouse=True)
def installed_log_handlers() -> Iterator[None]:
    """Undo the logging setup a CLI invocation applied to the root logger."""
    level: int = logging.getLogger().level
    yield
    reset_logging()
    logging.getLogger().setLevel(level)


def test_cli_requires_source_and_dest() -> None:
    """
    Tests that a missing DEST argument is a usage error.
    """
    runner: CliRunner = CliRunner()

    result: Result = runner.invoke(cli, [f"{SOURCE_BUCKET}:logs/"])

    assert result.exit_code == 2
    assert "Missing argument 'DEST'" in result.output


def test_cli_rejects_location_without_bucket() -> None:
    runner: CliRunner = CliRunner()

    result: Result = runner.invoke(cli, [":logs/", f"{DEST_BUCKET}:archive/"])

    assert result.exit_code == 2
    assert "Missing bucket name" in result.output


def test_cli_rejects_zero_threads() -> None:
    runner: CliRunner = CliRunner()

    result: Result = runner.invoke(cli, ["-t", "0", "a:", "b:"])

    assert result.exit_code == 2


def test_cli_passes_options_to_pipeline() -> None:
    """
    Tests that command-line options end up in the run configuration.

    Arrange:
        - Patch the pipeline to return a clean summary.
    Act:
        - Invoke the CLI with short options.
    Assert:
        - The exit code is 0 and the configuration carries the options.
    """
    # Arrange
    runner: CliRunner = CliRunner()
    with patch("prefix_copy.pipeline.PrefixCopyPipeline") as pipeline_cls:
        pipeline_cls.return_value.run.return_value = RunSummary()

        # Act
        result: Result = runner.invoke(
            cli,
            [
                "-s",
                "-t",
                "4",
                "--endpoint",
                "minio.local",
                "bucketA:logs/2020/",
                "bucketB:archive/",
            ],
        )

    # Assert
    assert result.exit_code == 0, result.output
    config: Config = pipeline_cls.call_args.args[0]
    assert config.source.bucket == "bucketA"
    assert config.source.prefix == "logs/2020/"
    assert config.destination.prefix == "archive/"
    assert config.app.threads == 4
    assert config.s3.endpoint_url == "https://minio.local:443"


def test_cli_exits_nonzero_when_keys_failed(caplog: pytest.LogCaptureFixture) -> None:
    """
    Tests that a run with failed keys exits with status 1.

    Args:
        caplog (pytest.LogCaptureFixture): Pytest fixture to capture log output.
    """
    runner: CliRunner = CliRunner()
    summary: RunSummary = RunSummary(
        keys=2, failures=[KeyFailure("logs/a", "SlowDown", attempts=10)]
    )
    with patch("prefix_copy.pipeline.PrefixCopyPipeline") as pipeline_cls:
        pipeline_cls.return_value.run.return_value = summary

        result: Result = runner.invoke(cli, ["a:logs/", "b:"])

    assert result.exit_code == 1
    assert "Not copied: 'logs/a'" in caplog.text
    assert "1 of 2 keys failed" in caplog.text


def test_cli_inaccessible_destination(
    s3_client: FakeS3Client, caplog: pytest.LogCaptureFixture
) -> None:
    """
    Tests that an inaccessible destination aborts with status 1 before
    any key is listed.

    Arrange:
        - Use the fake client in place of a real boto3 client.
    Act:
        - Run the CLI with an unknown destination bucket.
    Assert:
        - The exit code is 1 and the error names the bucket.
        - The source bucket was never listed.

    Args:
        s3_client (FakeS3Client): The fake S3 client.
        caplog (pytest.LogCaptureFixture): Pytest fixture to capture log output.
    """
    # Arrange
    runner: CliRunner = CliRunner()
    s3_client.put(SOURCE_BUCKET, "logs/2020/01.txt")

    with patch("prefix_copy.pipeline.build_client", return_value=s3_client):
        # Act
        result: Result = runner.invoke(
            cli, [f"{SOURCE_BUCKET}:logs/2020/", "missing-bucket:archive/"]
        )

    # Assert
    assert result.exit_code == 1
    assert (
        "A critical application error occurred: Bucket 'missing-bucket' "
        "is not accessible" in caplog.text
    )
    assert s3_client.count("ListObjectsV2") == 0


def test_cli_end_to_end(s3_client: FakeS3Client) -> None:
    """
    Tests a complete run through the CLI against the fake client.

    Args:
        s3_client (FakeS3Client): The fake S3 client.
    """
    runner: CliRunner = CliRunner()
    s3_client.put(SOURCE_BUCKET, "logs/2020/01.txt")

    with patch("prefix_copy.pipeline.build_client", return_value=s3_client):
        result: Result = runner.invoke(
            cli, ["-t", "2", f"{SOURCE_BUCKET}:logs/2020/", f"{DEST_BUCKET}:archive/"]
        )

    assert result.exit_code == 0, result.output
    assert "archive/01.txt" in s3_client.objects[DEST_BUCKET]


def test_cli_unexpected_error(caplog: pytest.LogCaptureFixture) -> None:
    runner: CliRunner = CliRunner()
    pipeline: MagicMock = MagicMock()
    pipeline.return_value.run.side_effect = RuntimeError("boom")

    with patch("prefix_copy.pipeline.PrefixCopyPipeline", pipeline):
        result: Result = runner.invoke(cli, ["a:", "b:"])

    assert result.exit_code == 1
    assert "An unexpected error caused the application to fail" in caplog.text


def test_cli_writes_logs_to_logfile(s3_client: FakeS3Client, tmp_path: Path) -> None:
    """
    Tests that `--logfile` receives the run's logs while stderr only shows
    the critical error.

    Arrange:
        - Use the fake client and a log file in a temporary directory.
    Act:
        - Run the CLI at INFO level against an unknown destination bucket.
    Assert:
        - The log file holds the INFO progress line and the critical error.
        - The terminal output holds the critical error only.

    Args:
        s3_client (FakeS3Client): The fake S3 client.
        tmp_path (Path): Pytest fixture for a temporary directory.
    """
    # Arrange
    runner: CliRunner = CliRunner()
    logfile: Path = tmp_path / "copy.log"
    s3_client.put(SOURCE_BUCKET, "logs/2020/01.txt")

    with patch("prefix_copy.pipeline.build_client", return_value=s3_client):
        # Act
        result: Result = runner.invoke(
            cli,
            [
                "-l",
                str(logfile),
                "--log-level",
                "INFO",
                f"{SOURCE_BUCKET}:logs/2020/",
                "missing-bucket:archive/",
            ],
        )

    # Assert
    assert result.exit_code == 1
    logged: str = logfile.read_text()
    assert "INFO prefix_copy.pipeline: Copying" in logged
    assert "CRITICAL prefix_copy.cli: A critical application error" in logged
    assert "missing-bucket" in result.output
    assert "Copying" not in result.output


def test_cli_discards_logs_without_logfile(s3_client: FakeS3Client) -> None:
    """
    Tests that a clean run without `--logfile` prints no log records.

    Args:
        s3_client (FakeS3Client): The fake S3 client.
    """
    runner: CliRunner = CliRunner()
    s3_client.put(SOURCE_BUCKET, "logs/2020/01.txt")

    with patch("prefix_copy.pipeline.build_client", return_value=s3_client):
        result: Result = runner.invoke(
            cli,
            [
                "--log-level",
                "DEBUG",
                f"{SOURCE_BUCKET}:logs/2020/",
                f"{DEST_BUCKET}:archive/",
            ],
        )

    assert result.exit_code == 0, result.output
    assert "Copying" not in result.output
    assert "Run completed" not in result.output

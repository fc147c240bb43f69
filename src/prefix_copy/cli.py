# src/prefix_copy/cli.py
"""Command-line interface for the prefix-copy tool."""

import logging
import sys
from typing import Any, List, Optional

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler

from prefix_copy.config import AppConfig, BucketLocation, Config, S3Config
from prefix_copy.exceptions import ConfigError, PrefixCopyError

logger: logging.Logger = logging.getLogger(__name__)

_HANDLER_MARK = "_prefix_copy_handler"


def reset_logging() -> None:
    """Removes the handlers installed by `setup_logging`."""
    root: logging.Logger = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, _HANDLER_MARK, False):
            root.removeHandler(handler)
            handler.close()


def setup_logging(level: str, logfile: Optional[str] = None) -> None:
    """
    Configure logging for a run.

    Logs at `level` go to `logfile` when one is given and are discarded
    otherwise. Critical errors are always shown on stderr through rich.

    Args:
        level (str): Level of the records written to the log file.
        logfile (str, optional): Path of the log file.
    """
    reset_logging()
    console_handler: RichHandler = RichHandler(
        console=Console(stderr=True), rich_tracebacks=True, show_path=False
    )
    console_handler.setLevel(logging.CRITICAL)
    console_handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    handlers: List[logging.Handler] = [console_handler]
    if logfile:
        file_handler: logging.FileHandler = logging.FileHandler(logfile)
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s %(threadName)s %(levelname)s %(name)s: %(message)s"
            )
        )
        handlers.append(file_handler)

    root: logging.Logger = logging.getLogger()
    for handler in handlers:
        setattr(handler, _HANDLER_MARK, True)
        root.addHandler(handler)
    root.setLevel(level.upper())
    # Silence noisy loggers
    for logger_name in ["botocore", "boto3", "s3transfer", "urllib3"]:
        logging.getLogger(logger_name).setLevel(logging.WARNING)


class BucketLocationType(click.ParamType):
    """Parses `bucket:prefix` arguments."""

    name = "bucket:prefix"

    def convert(self, value: Any, param: Any, ctx: Any) -> BucketLocation:
        if isinstance(value, BucketLocation):
            return value
        try:
            return BucketLocation.parse(value)
        except ConfigError as e:
            self.fail(str(e), param, ctx)


@click.command(context_settings=dict(help_option_names=["-h", "--help"]))
@click.argument("source", type=BucketLocationType())
@click.argument("dest", type=BucketLocationType())
@click.option(
    "-l",
    "--logfile",
    type=click.Path(dir_okay=False, writable=True),
    default=None,
    help="Write logs to this file. Without it only critical errors are shown.",
)
@click.option(
    "-p",
    "--progress",
    is_flag=True,
    default=False,
    help="Show a progress indicator (terminal and single thread only).",
)
@click.option(
    "-s",
    "--https",
    is_flag=True,
    default=False,
    help="Use TLS on port 443 instead of plain HTTP on port 80.",
)
@click.option(
    "-t",
    "--threads",
    type=click.IntRange(min=1),
    default=1,
    help="Number of worker threads.",
    show_default=True,
)
@click.option(
    "--endpoint",
    envvar="PREFIX_COPY_ENDPOINT",
    default=None,
    help="Host of an S3-compatible endpoint. Defaults to AWS.",
)
@click.option(
    "--page-size",
    type=click.IntRange(min=1, max=1000),
    default=1000,
    help="Number of keys listed per page.",
    show_default=True,
)
@click.option(
    "--max-attempts",
    type=click.IntRange(min=0),
    default=10,
    help="Copy attempts per key before giving up; 0 retries forever.",
    show_default=True,
)
@click.option(
    "--retry-backoff",
    type=click.FloatRange(min=0),
    default=0.2,
    help="Base delay in seconds before a failed key is retried.",
    show_default=True,
)
@click.option(
    "--log-level",
    default="INFO",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Level of the records written to the log file.",
    show_default=True,
)
def cli(source: BucketLocation, dest: BucketLocation, **kwargs: Any) -> None:
    """
    Copy every object under a prefix from one bucket to another.

    SOURCE and DEST are given as BUCKET:PREFIX; the prefix may be empty.
    Each copied object keeps the grants of its source ACL and the owner of
    the destination bucket is granted FULL_CONTROL. Objects already present
    at the destination with the same ETag are not copied again.

    Credentials may be set with PREFIX_COPY_ACCESS_KEY_ID and
    PREFIX_COPY_SECRET_ACCESS_KEY, otherwise the usual AWS credential chain
    applies.
    """
    load_dotenv()
    setup_logging(kwargs["log_level"], kwargs["logfile"])

    # Lazily import to keep CLI fast
    from prefix_copy.pipeline import PrefixCopyPipeline, RunSummary

    try:
        s3_config: S3Config = S3Config(
            endpoint_host=kwargs["endpoint"], use_https=kwargs["https"]
        )
        app_config: AppConfig = AppConfig(
            threads=kwargs["threads"],
            page_size=kwargs["page_size"],
            progress=kwargs["progress"],
            max_attempts=kwargs["max_attempts"],
            retry_backoff_s=kwargs["retry_backoff"],
        )
        config: Config = Config(
            source=source, destination=dest, s3=s3_config, app=app_config
        )

        summary: RunSummary = PrefixCopyPipeline(config).run()
    except PrefixCopyError as e:
        logger.critical(f"A critical application error occurred: {e}")
        sys.exit(1)
    except Exception:
        logger.critical(
            "An unexpected error caused the application to fail:", exc_info=True
        )
        sys.exit(1)

    if not summary.ok:
        for failure in summary.failures:
            logger.error(f"Not copied: '{failure.key}' ({failure.reason})")
        logger.critical(f"{len(summary.failures)} of {summary.keys} keys failed.")
        sys.exit(1)
    logger.info("✅ Run completed successfully.")


if __name__ == "__main__":
    cli()

# src/prefix_copy/pipeline.py
"""Core orchestration logic for the prefix-copy run."""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional

from prefix_copy.acl import Owner
from prefix_copy.buckets import BucketResolver
from prefix_copy.config import BucketLocation, Config
from prefix_copy.listing import KeyDescriptor, list_pages, partition
from prefix_copy.progress import (
    NullProgressReporter,
    RequestCounter,
    make_reporter,
)
from prefix_copy.session import (
    build_client,
    instrument_client,
    uninstrument_client,
)
from prefix_copy.worker import CopyJob, KeyFailure, WorkerResult, copy_worker

if TYPE_CHECKING:
    from types_boto3_s3.client import S3Client

logger: logging.Logger = logging.getLogger(__name__)


@dataclass
class RunSummary:
    """
    Totals over all pages and workers of a run.

    Attributes:
        pages (int): Listing pages processed.
        keys (int): Keys listed.
        copied (int): Keys whose data was copied.
        skipped (int): Keys already present with a matching ETag.
        acl_applied (int): Keys whose merged ACL was applied.
        retries (int): Times a key was requeued after a transient failure.
        requests (int): Storage API requests sent.
        failures (List[KeyFailure]): Keys that were not fully processed.
    """

    pages: int = 0
    keys: int = 0
    copied: int = 0
    skipped: int = 0
    acl_applied: int = 0
    retries: int = 0
    requests: int = 0
    failures: List[KeyFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def add(self, result: WorkerResult) -> None:
        self.keys += result.keys
        self.copied += result.copied
        self.skipped += result.skipped
        self.acl_applied += result.acl_applied
        self.retries += result.retries
        self.failures.extend(result.failures)


class PrefixCopyPipeline:
    """Orchestrates the copy from start to finish."""

    def __init__(
        self,
        config: Config,
        client: Optional["S3Client"] = None,
        reporter: Optional[NullProgressReporter] = None,
    ) -> None:
        """
        Initializes the pipeline with the given configuration.

        Args:
            config (Config): The application configuration.
            client (S3Client, optional): A storage client to use instead of
                building one from `config.s3`.
            reporter (NullProgressReporter, optional): Progress reporter to
                use instead of the one chosen from `config.app`.
        """
        self._config: Config = config
        if client is None:
            client = build_client(config.s3, config.app.threads)
        self._client: "S3Client" = client
        self._counter: RequestCounter = RequestCounter()
        self._reporter: NullProgressReporter = reporter or make_reporter(
            config.app.progress, config.app.threads
        )

    def run(self) -> RunSummary:
        """
        Executes the copy.

        Both buckets and the caller identity are resolved before any key is
        listed. Pages are then listed one at a time; each page is split
        across fresh worker threads which are all joined before the next
        page is requested.

        Returns:
            RunSummary: Totals of the run.
        """
        source: BucketLocation = self._config.source
        destination: BucketLocation = self._config.destination
        logger.info(f"Copying '{source}' to '{destination}'.")

        summary: RunSummary = RunSummary()
        handler_id: str = instrument_client(self._client, self._counter)
        try:
            resolver: BucketResolver = BucketResolver(self._client)
            source_handle, _ = resolver.resolve(source.bucket)
            dest_handle, dest_owner = resolver.resolve(destination.bucket)
            me: Owner = resolver.caller_identity()
            logger.info(
                f"Destination owner is {dest_owner.id}; applying ACLs as {me.id}."
            )

            job: CopyJob = CopyJob(
                source=source_handle,
                source_prefix=source.prefix,
                destination=dest_handle,
                destination_prefix=destination.prefix,
                destination_owner=dest_owner,
                me=me,
                counter=self._counter,
                reporter=self._reporter,
                max_attempts=self._config.app.max_attempts,
                retry_backoff_s=self._config.app.retry_backoff_s,
                retry_backoff_max_s=self._config.app.retry_backoff_max_s,
            )

            for page in list_pages(
                self._client,
                source_handle.name,
                source.prefix,
                self._config.app.page_size,
            ):
                summary.pages += 1
                for result in self._run_page(job, page):
                    summary.add(result)
        finally:
            uninstrument_client(self._client, handler_id)
            self._reporter.finish()
            summary.requests = self._counter.total

        logger.info(
            f"Processed {summary.keys} keys in {summary.pages} pages: "
            f"{summary.copied} copied, {summary.skipped} unchanged, "
            f"{summary.retries} retries, {len(summary.failures)} failed, "
            f"{summary.requests} requests."
        )
        return summary

    def _run_page(
        self, job: CopyJob, page: List[KeyDescriptor]
    ) -> List[WorkerResult]:
        """
        Runs one worker thread per slice of `page` and waits for all of them.

        Args:
            job (CopyJob): The copy parameters.
            page (List[KeyDescriptor]): The keys of one listing page.

        Returns:
            List[WorkerResult]: One result per slice.
        """
        slices: List[List[KeyDescriptor]] = partition(page, self._config.app.threads)
        if not slices:
            return []

        with ThreadPoolExecutor(
            max_workers=len(slices), thread_name_prefix="copy-worker"
        ) as executor:
            futures: List["Future[WorkerResult]"] = [
                executor.submit(copy_worker, i, job, keys)
                for i, keys in enumerate(slices)
            ]
            results: List[WorkerResult] = []
            for i, future in enumerate(futures):
                try:
                    results.append(future.result())
                except Exception as e:
                    logger.exception(f"Worker {i} failed unexpectedly.")
                    results.append(
                        WorkerResult(
                            worker_id=i,
                            keys=len(slices[i]),
                            failures=[
                                KeyFailure(key=d.key, reason=repr(e), attempts=0)
                                for d in slices[i]
                            ],
                        )
                    )
        return results

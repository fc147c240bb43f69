# src/prefix_copy/worker.py
"""
Defines the copy worker run for each slice of a listing page.

A worker makes two passes over its slice. The first reads the ACL of every
source object. The second copies each object that is missing or changed at
the destination and applies the source grants plus a FULL_CONTROL grant for
the destination owner. Keys that fail transiently in the second pass are
requeued at the end of the worker's own work list.
"""

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Deque, Dict, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from prefix_copy.acl import (
    Owner,
    build_access_control_policy,
    grantees_from_acl,
    merge_owner_grant,
)
from prefix_copy.buckets import BucketHandle
from prefix_copy.exceptions import TransferError
from prefix_copy.listing import KeyDescriptor
from prefix_copy.progress import (
    KEY_DONE,
    KEY_RETRIED,
    NullProgressReporter,
    RequestCounter,
)

if TYPE_CHECKING:
    from types_boto3_s3.client import S3Client

logger: logging.Logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound"})
_MAX_BACKOFF_EXPONENT = 32


@dataclass(frozen=True)
class CopyJob:
    """
    Everything a worker needs besides its slice of keys.

    Attributes:
        source (BucketHandle): The bucket copied from.
        source_prefix (str): The prefix the keys were listed under.
        destination (BucketHandle): The bucket copied to.
        destination_prefix (str): Replaces `source_prefix` in copied keys.
        destination_owner (Owner): Receives FULL_CONTROL on every copy.
        me (Owner): The caller identity the ACLs are applied as.
        counter (RequestCounter): Counts storage API requests.
        reporter (NullProgressReporter): Receives per-key progress.
        max_attempts (int): Copy attempts per key; 0 retries forever.
        retry_backoff_s (float): Base delay before a key is retried.
        retry_backoff_max_s (float): Upper bound for the retry delay.
    """

    source: BucketHandle
    source_prefix: str
    destination: BucketHandle
    destination_prefix: str
    destination_owner: Owner
    me: Owner
    counter: RequestCounter
    reporter: NullProgressReporter = field(default_factory=NullProgressReporter)
    max_attempts: int = 0
    retry_backoff_s: float = 0.0
    retry_backoff_max_s: float = 10.0


@dataclass(frozen=True)
class KeyFailure:
    """A key the worker gave up on, with the last error seen."""

    key: str
    reason: str
    attempts: int


@dataclass
class WorkerResult:
    """
    Outcome of one worker's slice.

    Attributes:
        worker_id (int): The worker that produced this result.
        keys (int): Number of keys in the slice.
        copied (int): Keys whose data was copied.
        skipped (int): Keys already present with a matching ETag.
        acl_applied (int): Keys whose merged ACL was applied.
        retries (int): Number of times a key was requeued.
        failures (List[KeyFailure]): Keys that were not fully processed.
    """

    worker_id: int
    keys: int = 0
    copied: int = 0
    skipped: int = 0
    acl_applied: int = 0
    retries: int = 0
    failures: List[KeyFailure] = field(default_factory=list)


def destination_key(key: str, source_prefix: str, destination_prefix: str) -> str:
    """
    Maps a source key to its destination key.

    Only the first occurrence of the source prefix is replaced.

    Args:
        key (str): The source key.
        source_prefix (str): The listing prefix.
        destination_prefix (str): The destination prefix.

    Returns:
        str: The destination key.
    """
    return key.replace(source_prefix, destination_prefix, 1)


def _is_not_found(error: ClientError) -> bool:
    return error.response.get("Error", {}).get("Code") in _NOT_FOUND_CODES


def _destination_etag(client: "S3Client", bucket: str, key: str) -> Optional[str]:
    """Returns the ETag of a destination object, or None if it does not exist."""
    try:
        head: Dict[str, Any] = client.head_object(Bucket=bucket, Key=key)
    except ClientError as e:
        if _is_not_found(e):
            return None
        raise
    return head.get("ETag")


def _copy_and_apply_acl(
    job: CopyJob, descriptor: KeyDescriptor, result: WorkerResult
) -> None:
    """
    Copies one object if needed and applies its merged ACL.

    Args:
        job (CopyJob): The copy parameters.
        descriptor (KeyDescriptor): The key, with its source grants resolved.
        result (WorkerResult): Counters to update.
    """
    client: "S3Client" = job.destination.client
    dest_key: str = destination_key(
        descriptor.key, job.source_prefix, job.destination_prefix
    )

    if _destination_etag(client, job.destination.name, dest_key) == descriptor.etag:
        logger.debug(f"'{dest_key}' is unchanged, skipping copy.")
        result.skipped += 1
    else:
        client.copy_object(
            Bucket=job.destination.name,
            Key=dest_key,
            CopySource={"Bucket": job.source.name, "Key": descriptor.key},
            MetadataDirective="COPY",
        )
        result.copied += 1

    grantees = merge_owner_grant(descriptor.grantees, job.destination_owner)
    client.put_object_acl(
        Bucket=job.destination.name,
        Key=dest_key,
        AccessControlPolicy=build_access_control_policy(grantees, job.me),
    )
    result.acl_applied += 1
    logger.debug(
        f"Copied 's3://{job.source.name}/{descriptor.key}' to "
        f"'s3://{job.destination.name}/{dest_key}'."
    )


def _backoff(job: CopyJob, attempts: int) -> float:
    if job.retry_backoff_s <= 0:
        return 0.0
    # Unbounded attempts must not overflow the float delay.
    exponent: int = min(attempts - 1, _MAX_BACKOFF_EXPONENT)
    return min(job.retry_backoff_max_s, job.retry_backoff_s * 2**exponent)


def _resolve_acls(job: CopyJob, keys: List[KeyDescriptor]) -> None:
    """Reads the source ACL of every key in the slice."""
    client: "S3Client" = job.source.client
    for descriptor in keys:
        acl: Dict[str, Any] = client.get_object_acl(
            Bucket=job.source.name, Key=descriptor.key
        )
        descriptor.grantees = grantees_from_acl(acl)
        job.reporter.report(job.counter.reset(), KEY_DONE)


def copy_worker(
    worker_id: int, job: CopyJob, keys: List[KeyDescriptor]
) -> WorkerResult:
    """
    Copies one slice of a listing page.

    A failure while reading source ACLs aborts the slice and every key of
    it is reported as failed. Copy or ACL failures requeue the key at the
    end of the work list, until `job.max_attempts` is reached. The backoff
    of a requeued key is only waited out once it is back at the front, so
    the keys queued behind a failure are not delayed by it.

    Args:
        worker_id (int): An identifier for log messages.
        job (CopyJob): The copy parameters shared by all workers.
        keys (List[KeyDescriptor]): The slice to process.

    Returns:
        WorkerResult: What the worker did.
    """
    result: WorkerResult = WorkerResult(worker_id=worker_id, keys=len(keys))
    logger.debug(f"Worker {worker_id} started with {len(keys)} keys.")

    try:
        _resolve_acls(job, keys)
    except (ClientError, BotoCoreError, TransferError) as e:
        logger.error(
            f"Worker {worker_id} could not read source ACLs, "
            f"abandoning {len(keys)} keys: {e}"
        )
        result.failures.extend(
            KeyFailure(key=d.key, reason=f"ACL read failed: {e}", attempts=0)
            for d in keys
        )
        return result

    work: Deque[KeyDescriptor] = deque(keys)
    while work:
        descriptor: KeyDescriptor = work.popleft()
        wait: float = descriptor.not_before - time.monotonic()
        if wait > 0:
            time.sleep(wait)
        try:
            _copy_and_apply_acl(job, descriptor, result)
        except (ClientError, BotoCoreError) as e:
            descriptor.attempts += 1
            if job.max_attempts and descriptor.attempts >= job.max_attempts:
                logger.error(
                    f"Giving up on '{descriptor.key}' after "
                    f"{descriptor.attempts} attempts: {e}"
                )
                result.failures.append(
                    KeyFailure(
                        key=descriptor.key, reason=str(e), attempts=descriptor.attempts
                    )
                )
                job.reporter.report(job.counter.reset(), KEY_RETRIED)
                continue
            logger.debug(
                f"Attempt {descriptor.attempts} for '{descriptor.key}' failed, "
                f"requeueing: {e}"
            )
            result.retries += 1
            job.reporter.report(job.counter.reset(), KEY_RETRIED)
            descriptor.not_before = time.monotonic() + _backoff(
                job, descriptor.attempts
            )
            work.append(descriptor)
            continue
        job.reporter.report(job.counter.reset(), KEY_DONE)

    logger.debug(
        f"Worker {worker_id} finished: {result.copied} copied, "
        f"{result.skipped} unchanged, {len(result.failures)} failed."
    )
    return result

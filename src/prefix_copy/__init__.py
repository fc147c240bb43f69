# src/prefix_copy/__init__.py
"""
prefix-copy: copy every object under a prefix between S3 buckets.

Objects keep the grants of their source ACL, and the owner of the
destination bucket is granted FULL_CONTROL over every copy. Objects that
are already present at the destination with the same ETag are not copied
again, so interrupted runs can simply be restarted.

The primary entry point for programmatic use is the `PrefixCopyPipeline` class.
"""

from typing import List

from prefix_copy.pipeline import PrefixCopyPipeline, RunSummary

__all__: List[str] = ["PrefixCopyPipeline", "RunSummary"]

"""SegFeed exception hierarchy.

This module defines traceable domain errors with clear boundaries.
Every detected invariant violation is raised as one of these types and is
treated as terminal by callers: nothing in the feed retries or recovers.
"""

from __future__ import annotations


class SegFeedError(Exception):
    """Base exception for all SegFeed failures."""


class SegFeedConfigError(SegFeedError):
    """Raised for invalid reader configuration."""


class SegFeedContractError(SegFeedError):
    """Raised when stream declarations disagree with dataset blobs."""


class SegFeedEpochError(SegFeedError):
    """Raised for epoch planning and minibatch accounting violations."""


class SegFeedSequenceError(SegFeedError):
    """Raised when example data cannot be converted into sequences."""


class SegFeedSourceError(SegFeedError):
    """Raised for example source loading failures."""


class SegFeedDependencyError(SegFeedError):
    """Raised when an optional runtime dependency is missing."""

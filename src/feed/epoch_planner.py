"""Per-worker epoch planning.

This module splits a logical epoch across cooperating workers so every
sample is produced exactly once. Full minibatches split evenly; the
minibatch remainder is shared evenly and its last few samples go to the
lowest ranks. When the remainder is too small to give every worker a
sample, the workers holding one absorb it into their next-to-last
minibatch instead of emitting an undersized final one.
"""

from __future__ import annotations

from core.constants import FULL_DATASET_EPOCH
from core.errors import SegFeedEpochError
from core.logging_config import get_logger
from core.types import EpochConfiguration, EpochState, ReaderConfiguration

_LOGGER = get_logger(__name__)


def plan_worker_share(
    total_samples: int,
    minibatch_size: int,
    worker_count: int,
    worker_rank: int,
) -> tuple[int, bool]:
    """Compute one worker's share of an epoch.

    Args:
        total_samples: Samples in the epoch over all workers.
        minibatch_size: Global minibatch size, divisible by worker_count.
        worker_count: Number of cooperating workers.
        worker_rank: Zero-based rank of the worker.

    Returns:
        Tuple of (epoch size for this worker, append-last-minibatch flag).
    """
    full_minibatch_samples = (total_samples // minibatch_size) * minibatch_size
    epoch_size = full_minibatch_samples // worker_count
    remainder = total_samples % minibatch_size
    remainder_per_worker = remainder // worker_count
    epoch_size += remainder_per_worker
    append_last_minibatch = False
    if worker_rank < remainder % worker_count:
        epoch_size += 1
        append_last_minibatch = remainder_per_worker == 0
    return epoch_size, append_last_minibatch


class EpochPlanner:
    """Track one worker's epoch size and consumed sample count."""

    def __init__(
        self,
        worker_rank: int,
        worker_count: int,
        full_traversal_per_worker: bool = False,
    ) -> None:
        """Create planner with a fixed worker identity.

        Args:
            worker_rank: Zero-based rank of this worker.
            worker_count: Number of cooperating workers.
            full_traversal_per_worker: When the full dataset is requested,
                plan as if every worker traverses all examples.
        """
        self._full_traversal_per_worker = full_traversal_per_worker
        self._state = EpochState(worker_rank=worker_rank, worker_count=worker_count)

    @property
    def state(self) -> EpochState:
        return self._state

    def start_epoch(self, config: EpochConfiguration, dataset_example_count: int) -> EpochState:
        """Plan this worker's share of a new epoch.

        Args:
            config: Epoch parameters from the training loop.
            dataset_example_count: Examples in the dataset, used when the
                full dataset is requested.

        Returns:
            Reset epoch state.

        Raises:
            SegFeedEpochError: If the previous epoch is unfinished, the
                worker identity changed or the minibatch size does not
                split across workers.
        """
        state = self._state
        if not state.is_consumed:
            raise SegFeedEpochError(
                "New epoch started without reading all samples from previous epoch "
                f"({state.epoch_size} != {state.current_sample_count})."
            )
        if config.worker_rank != state.worker_rank:
            raise SegFeedEpochError(
                f"Worker rank changed in image dataset feed ({config.worker_rank} != "
                f"{state.worker_rank})."
            )
        if config.worker_count != state.worker_count:
            raise SegFeedEpochError(
                f"Number of workers changed in image dataset feed ({config.worker_count} != "
                f"{state.worker_count})."
            )
        if config.minibatch_size < 1:
            raise SegFeedEpochError(
                f"Minibatch size must be positive, got {config.minibatch_size}."
            )
        if config.minibatch_size % state.worker_count != 0:
            raise SegFeedEpochError(
                f"Minibatch size ({config.minibatch_size}) not divisible by number of workers "
                f"({state.worker_count})."
            )
        total_samples = self._resolve_total_samples(config, dataset_example_count)
        epoch_size, append_last_minibatch = plan_worker_share(
            total_samples,
            config.minibatch_size,
            state.worker_count,
            state.worker_rank,
        )
        state.minibatch_size = config.minibatch_size
        state.epoch_size = epoch_size
        state.append_last_minibatch = append_last_minibatch
        state.current_sample_count = 0
        _LOGGER.info(
            "epoch_started",
            worker_rank=state.worker_rank,
            worker_count=state.worker_count,
            minibatch_size=state.minibatch_size,
            total_samples=total_samples,
            epoch_size=epoch_size,
            append_last_minibatch=append_last_minibatch,
        )
        return state

    def set_configuration(self, config: ReaderConfiguration) -> None:
        """Check that nothing changed since the epoch started."""
        state = self._state
        if config.worker_count != state.worker_count:
            raise SegFeedEpochError(
                f"Number of workers changed since start_epoch {config.worker_count} != "
                f"{state.worker_count}."
            )
        if config.worker_rank != state.worker_rank:
            raise SegFeedEpochError(
                f"Worker rank changed since start_epoch {config.worker_rank} != "
                f"{state.worker_rank}."
            )
        if config.minibatch_size != state.minibatch_size:
            raise SegFeedEpochError(
                f"Minibatch size changed since start_epoch {config.minibatch_size} != "
                f"{state.minibatch_size}."
            )

    def reserve_samples(self, requested_total: int) -> tuple[int, bool]:
        """Resolve how many samples this worker serves for one request.

        Args:
            requested_total: Global sample count asked for by the packer.

        Returns:
            Tuple of (per-worker sample count, end-of-epoch flag).

        Raises:
            SegFeedEpochError: If the request does not match the minibatch
                size, yields zero samples per worker, or the appended
                remainder is malformed.
        """
        state = self._state
        if requested_total != state.minibatch_size:
            raise SegFeedEpochError(
                f"Mismatch between minibatch size ({state.minibatch_size}) and demanded "
                f"sample count ({requested_total})."
            )
        sample_count = requested_total // state.worker_count
        if sample_count == 0:
            raise SegFeedEpochError("Greater number of workers than samples in minibatch.")
        remaining = state.remaining_samples
        if state.append_last_minibatch and remaining <= 2 * sample_count:
            if remaining != sample_count + 1:
                raise SegFeedEpochError(
                    f"Appending more than one sample (remaining={remaining}) to the last "
                    f"minibatch (per-worker size={sample_count})."
                )
            return remaining, True
        if not state.append_last_minibatch and remaining <= sample_count:
            return remaining, True
        return sample_count, False

    def commit(self, sample_count: int) -> None:
        """Record samples produced by a completed request.

        Raises:
            SegFeedEpochError: If the count exceeds the samples left in
                the epoch.
        """
        if sample_count > self._state.remaining_samples:
            raise SegFeedEpochError(
                f"Committing {sample_count} samples with only "
                f"{self._state.remaining_samples} left in the epoch."
            )
        self._state.current_sample_count += sample_count
        if self._state.is_consumed:
            _LOGGER.info(
                "epoch_completed",
                worker_rank=self._state.worker_rank,
                epoch_size=self._state.epoch_size,
            )

    def _resolve_total_samples(self, config: EpochConfiguration, dataset_example_count: int) -> int:
        if config.total_epoch_samples != FULL_DATASET_EPOCH:
            return config.total_epoch_samples
        if self._full_traversal_per_worker:
            return self._state.worker_count * dataset_example_count
        return dataset_example_count

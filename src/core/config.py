"""Reader configuration model for SegFeed.

This module owns parsing and validation of the reader config: worker
identity, dataset location, ids files and stream declarations. Other
modules consume a typed config object instead of raw YAML mappings.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, cast

from core.config_fields import (
    expect_mapping,
    expect_sequence,
    int_with_default,
    optional_bool,
    optional_int,
    optional_string,
    parse_storage_kind,
    reject_unknown_keys,
    required_string,
)
from core.constants import DEFAULT_WORKER_COUNT, DEFAULT_WORKER_RANK
from core.errors import SegFeedConfigError, SegFeedDependencyError
from core.types import IgnoreSpec, StreamDeclaration

_ROOT_KEYS = {
    "worker_rank",
    "worker_count",
    "dataset_dir",
    "ids_files",
    "full_traversal_per_worker",
    "streams",
}
_STREAM_KEYS = {"name", "dataset_name", "storage", "dimension", "ignore"}
_IGNORE_KEYS = {"stream_name", "label"}


@dataclass(frozen=True)
class FeedConfig:
    """Validated reader configuration.

    Attributes:
        worker_rank: Zero-based rank of this worker.
        worker_count: Number of cooperating workers.
        dataset_dir: Optional directory holding the example files.
        ids_files: Optional pipe-delimited list of ids files.
        full_traversal_per_worker: Let every worker traverse the entire
            dataset, so per-worker metrics cover all examples.
        streams: Ordered stream declarations.
    """

    worker_rank: int = DEFAULT_WORKER_RANK
    worker_count: int = DEFAULT_WORKER_COUNT
    dataset_dir: str | None = None
    ids_files: str | None = None
    full_traversal_per_worker: bool = False
    streams: tuple[StreamDeclaration, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        _validate_worker_identity(self.worker_rank, self.worker_count)

    @classmethod
    def from_mapping(cls, payload: object) -> "FeedConfig":
        """Build config from a parsed YAML or JSON mapping.

        Args:
            payload: Raw config payload.

        Returns:
            A validated config object.

        Raises:
            SegFeedConfigError: If fields are missing, unknown or invalid.
        """
        context = "reader config"
        root_mapping = expect_mapping(payload, context)
        reject_unknown_keys(root_mapping, _ROOT_KEYS, "Reader config")
        return cls(
            worker_rank=int_with_default(root_mapping, "worker_rank", DEFAULT_WORKER_RANK, context),
            worker_count=int_with_default(
                root_mapping, "worker_count", DEFAULT_WORKER_COUNT, context
            ),
            dataset_dir=optional_string(root_mapping, "dataset_dir", context),
            ids_files=optional_string(root_mapping, "ids_files", context),
            full_traversal_per_worker=optional_bool(
                root_mapping, "full_traversal_per_worker", False, context
            ),
            streams=_parse_streams(root_mapping),
        )


def load_feed_config(config_path: str) -> FeedConfig:
    """Load and validate a YAML reader config from disk.

    Args:
        config_path: File path to the YAML config.

    Returns:
        Fully validated config object.

    Raises:
        SegFeedDependencyError: If PyYAML is unavailable.
        SegFeedConfigError: If the file is unreadable or fails validation.
    """
    try:
        import yaml  # type: ignore[import-untyped]
    except ImportError as error:  # pragma: no cover - dependency failure
        raise SegFeedDependencyError(
            "YAML reader configs require PyYAML. Install with 'pip install pyyaml'."
        ) from error
    config_file = Path(config_path).expanduser().resolve()
    if not config_file.exists():
        raise SegFeedConfigError(
            f"Reader config does not exist at {config_file}. Provide a valid YAML file path."
        )
    try:
        payload = cast(object, yaml.safe_load(config_file.read_text(encoding="utf-8")))
    except OSError as error:
        raise SegFeedConfigError(
            f"Failed to read reader config at {config_file}: {error}."
        ) from error
    except yaml.YAMLError as error:
        raise SegFeedConfigError(
            f"Failed to parse YAML reader config at {config_file}: {error}."
        ) from error
    if payload is None:
        raise SegFeedConfigError(f"Reader config at {config_file} is empty. Define 'streams'.")
    return FeedConfig.from_mapping(payload)


def _validate_worker_identity(worker_rank: int, worker_count: int) -> None:
    if worker_count < 1:
        raise SegFeedConfigError(f"worker_count must be at least 1, got {worker_count}.")
    if not 0 <= worker_rank < worker_count:
        raise SegFeedConfigError(
            f"worker_rank {worker_rank} is outside [0, {worker_count})."
        )


def _parse_streams(root_mapping: Mapping[str, object]) -> tuple[StreamDeclaration, ...]:
    raw_streams = root_mapping.get("streams")
    if raw_streams is None:
        raise SegFeedConfigError(
            "Reader config missing required field 'streams'. Declare at least one stream."
        )
    stream_rows = expect_sequence(raw_streams, "reader config streams")
    if len(stream_rows) == 0:
        raise SegFeedConfigError("Reader config field 'streams' must include at least one stream.")
    return tuple(_parse_stream(row, index) for index, row in enumerate(stream_rows))


def _parse_stream(stream_value: object, stream_index: int) -> StreamDeclaration:
    context = f"stream #{stream_index + 1}"
    stream_mapping = expect_mapping(stream_value, context)
    reject_unknown_keys(stream_mapping, _STREAM_KEYS, f"Stream #{stream_index + 1}")
    storage = parse_storage_kind(stream_mapping, context)
    dimension = optional_int(stream_mapping, "dimension", context)
    if storage == "sparse" and (dimension is None or dimension < 1):
        raise SegFeedConfigError(
            f"Invalid {context}: sparse streams need a positive 'dimension' (class count)."
        )
    return StreamDeclaration(
        name=required_string(stream_mapping, "name", context),
        dataset_name=required_string(stream_mapping, "dataset_name", context),
        storage=storage,
        dimension=dimension or 0,
        ignore=_parse_ignore(stream_mapping.get("ignore"), context),
    )


def _parse_ignore(raw_ignore: object, context: str) -> IgnoreSpec | None:
    if raw_ignore is None:
        return None
    ignore_context = f"{context} ignore"
    ignore_mapping = expect_mapping(raw_ignore, ignore_context)
    reject_unknown_keys(ignore_mapping, _IGNORE_KEYS, f"Ignore spec of {context}")
    label = optional_int(ignore_mapping, "label", ignore_context)
    if label is None:
        raise SegFeedConfigError(f"Invalid {ignore_context}: missing required field 'label'.")
    return IgnoreSpec(
        stream_name=required_string(ignore_mapping, "stream_name", ignore_context),
        label=label,
    )

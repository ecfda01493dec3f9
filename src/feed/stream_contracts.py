"""Stream contract derivation.

This module maps configured stream declarations onto dataset blobs and
derives the input and output stream descriptions the packer consumes.
Dataset shapes are (channels, height, width) with width varying fastest;
stream layouts list the fastest axis first, so shapes are reversed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from core.errors import SegFeedConfigError, SegFeedContractError
from core.logging_config import get_logger
from core.types import SampleLayout, StorageKind, StreamDeclaration, StreamDescription
from dataset.example_buffer import ExampleBuffer

_LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class StreamContract:
    """One declaration bound to its input stream indices.

    Attributes:
        declaration: Configured stream declaration.
        stream_index: Index of the stream in the input stream list.
        ignore_index: Index of the companion ignore stream, if declared.
    """

    declaration: StreamDeclaration
    stream_index: int
    ignore_index: int | None = None


@dataclass(frozen=True)
class StreamTable:
    """Derived, index-parallel input and output stream descriptions."""

    contracts: tuple[StreamContract, ...]
    input_streams: tuple[StreamDescription, ...]
    output_streams: tuple[StreamDescription, ...]
    max_dimension: int


def reversed_layout(shape: Sequence[int]) -> SampleLayout:
    """Reverse a dataset (c, h, w) shape into a (w, h, c) layout."""
    channels, height, width = shape
    return (width, height, channels)


def derive_stream_table(
    declarations: Sequence[StreamDeclaration],
    blob_names: Sequence[str],
    example: ExampleBuffer,
) -> StreamTable:
    """Derive stream descriptions from declarations and a sample example.

    Args:
        declarations: Ordered stream declarations.
        blob_names: Every blob name available in the dataset.
        example: One fetched example, used only to read blob shapes.

    Returns:
        Stream table with input and output descriptions.

    Raises:
        SegFeedConfigError: If no streams are declared.
        SegFeedContractError: If a blob is missing, a sparse blob has
            more than one channel or a sparse dimension is not positive.
    """
    if len(declarations) == 0:
        raise SegFeedConfigError("Empty stream declaration list provided to image dataset feed.")
    contracts: list[StreamContract] = []
    input_streams: list[StreamDescription] = []
    output_streams: list[StreamDescription] = []
    max_dimension = 0
    for declaration in declarations:
        if declaration.dataset_name not in blob_names:
            raise SegFeedContractError(
                f"Blob with name {declaration.dataset_name} not found in image dataset."
            )
        layout = reversed_layout(example.blob_shape(declaration.dataset_name))
        stream_index = len(input_streams)
        ignore_index = None
        if declaration.storage == "sparse":
            if layout[2] != 1:
                raise SegFeedContractError(
                    f"Invalid image dataset shape for sparse stream '{declaration.name}': "
                    f"blob '{declaration.dataset_name}' has {layout[2]} channels, expected 1."
                )
            if declaration.dimension < 1:
                raise SegFeedContractError(
                    f"Sparse stream '{declaration.name}' needs a positive dimension, "
                    f"got {declaration.dimension}."
                )
            layout = (layout[0], layout[1], declaration.dimension)
            max_dimension = max(max_dimension, declaration.dimension)
        _append_stream(input_streams, output_streams, declaration.name, declaration.storage, layout)
        if declaration.storage == "sparse" and declaration.ignore is not None:
            ignore_index = len(input_streams)
            _append_stream(
                input_streams,
                output_streams,
                declaration.ignore.stream_name,
                "dense",
                (layout[0], layout[1], 1),
            )
        contracts.append(StreamContract(declaration, stream_index, ignore_index))
    table = StreamTable(
        contracts=tuple(contracts),
        input_streams=tuple(input_streams),
        output_streams=tuple(output_streams),
        max_dimension=max_dimension,
    )
    _LOGGER.info(
        "stream_table_derived",
        input_streams=[stream.name for stream in table.input_streams],
        layouts=[list(stream.sample_layout) for stream in table.input_streams],
        max_dimension=max_dimension,
    )
    return table


def _append_stream(
    input_streams: list[StreamDescription],
    output_streams: list[StreamDescription],
    name: str,
    storage: StorageKind,
    layout: SampleLayout,
) -> None:
    # Output streams are always dense.
    input_streams.append(StreamDescription(len(input_streams), name, storage, layout))
    output_streams.append(StreamDescription(len(output_streams), name, "dense", layout))

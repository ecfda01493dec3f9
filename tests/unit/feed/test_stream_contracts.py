"""Unit tests for stream contract derivation."""

from __future__ import annotations

import numpy as np
import pytest

from core.errors import SegFeedConfigError, SegFeedContractError
from core.types import IgnoreSpec, StreamDeclaration
from dataset.example_buffer import ExampleBuffer
from feed.stream_contracts import derive_stream_table, reversed_layout


def _example(label_channels: int = 1) -> ExampleBuffer:
    example = ExampleBuffer(["image", "label"])
    example.set_blob(0, np.zeros((3, 8, 10), dtype=np.float32))
    example.set_blob(1, np.zeros((label_channels, 8, 10), dtype=np.float32))
    return example


def test_reversed_layout_puts_fastest_axis_first() -> None:
    """Dataset (c, h, w) shapes should become (w, h, c) layouts."""
    assert reversed_layout((3, 8, 10)) == (10, 8, 3)


def test_dense_stream_uses_reversed_blob_shape() -> None:
    """Dense streams should expose the reversed dataset shape."""
    declarations = [StreamDeclaration(name="features", dataset_name="image", storage="dense")]

    table = derive_stream_table(declarations, ["image", "label"], _example())

    assert table.input_streams[0].sample_layout == (10, 8, 3)
    assert table.input_streams[0].storage == "dense"
    assert table.max_dimension == 0


def test_sparse_stream_with_ignore_adds_companion_streams() -> None:
    """Sparse streams should use the declared dimension plus a mask stream."""
    declarations = [
        StreamDeclaration(name="features", dataset_name="image", storage="dense"),
        StreamDeclaration(
            name="labels",
            dataset_name="label",
            storage="sparse",
            dimension=21,
            ignore=IgnoreSpec(stream_name="labels_ignore", label=255),
        ),
    ]

    table = derive_stream_table(declarations, ["image", "label"], _example())

    assert [stream.name for stream in table.input_streams] == [
        "features",
        "labels",
        "labels_ignore",
    ]
    assert [stream.id for stream in table.input_streams] == [0, 1, 2]
    assert [stream.storage for stream in table.input_streams] == ["dense", "sparse", "dense"]
    assert [stream.storage for stream in table.output_streams] == ["dense", "dense", "dense"]
    assert table.input_streams[1].sample_layout == (10, 8, 21)
    assert table.input_streams[2].sample_layout == (10, 8, 1)
    assert [stream.sample_layout for stream in table.output_streams] == [
        stream.sample_layout for stream in table.input_streams
    ]
    assert table.contracts[1].stream_index == 1
    assert table.contracts[1].ignore_index == 2
    assert table.max_dimension == 21


def test_missing_blob_raises() -> None:
    """Declarations referencing unknown blobs should fail."""
    declarations = [StreamDeclaration(name="depth", dataset_name="depth", storage="dense")]

    with pytest.raises(SegFeedContractError, match="depth not found"):
        derive_stream_table(declarations, ["image", "label"], _example())


def test_sparse_blob_with_multiple_channels_raises() -> None:
    """Sparse blobs must hold a single class-index channel."""
    declarations = [
        StreamDeclaration(name="labels", dataset_name="label", storage="sparse", dimension=4)
    ]

    with pytest.raises(SegFeedContractError, match="expected 1"):
        derive_stream_table(declarations, ["image", "label"], _example(label_channels=2))


def test_empty_declarations_raise() -> None:
    """At least one stream must be declared."""
    with pytest.raises(SegFeedConfigError):
        derive_stream_table([], ["image"], _example())


def test_sparse_stream_without_positive_dimension_raises() -> None:
    """Sparse declarations built in code must still carry a class count."""
    declarations = [StreamDeclaration(name="labels", dataset_name="label", storage="sparse")]

    with pytest.raises(SegFeedContractError, match="positive dimension, got 0"):
        derive_stream_table(declarations, ["image", "label"], _example())

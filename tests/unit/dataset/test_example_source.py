"""Unit tests for example sources and ids-file parsing."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from core.errors import SegFeedSourceError
from dataset.example_buffer import ExampleBuffer
from dataset.example_source import (
    InMemoryExampleSource,
    NpzExampleSource,
    list_blob_names,
    parse_ids_files,
    read_example_ids,
)


def _write_examples(dataset_dir: Path, count: int) -> None:
    dataset_dir.mkdir(parents=True, exist_ok=True)
    for index in range(count):
        np.savez(
            dataset_dir / f"ex{index:02d}.npz",
            image=np.full((3, 2, 2), index, dtype=np.uint8),
            label=np.full((1, 2, 2), index % 3, dtype=np.uint8),
        )


def test_in_memory_source_wraps_around() -> None:
    """In-memory sources should cycle through examples in order."""
    examples = [{"image": np.full((1, 1, 2), value, dtype=np.float32)} for value in (1, 2)]
    source = InMemoryExampleSource(examples)
    buffer = ExampleBuffer(list_blob_names(source))

    values = []
    for _ in range(3):
        source.fetch_next_example(buffer)
        values.append(float(buffer.take_blob("image")[0]))

    assert values == [1.0, 2.0, 1.0]
    assert source.example_count() == 2


def test_in_memory_source_rejects_missing_blobs() -> None:
    """Every example must carry every blob."""
    examples = [{"image": np.zeros((1, 1, 1))}, {"label": np.zeros((1, 1, 1))}]

    with pytest.raises(SegFeedSourceError, match="missing blobs: image"):
        InMemoryExampleSource(examples)


def test_npz_source_reads_blobs_as_float32(tmp_path: Path) -> None:
    """Archive arrays should land in the buffer as float32 blobs."""
    _write_examples(tmp_path, 2)
    source = NpzExampleSource(str(tmp_path))
    buffer = ExampleBuffer(list_blob_names(source))

    source.fetch_next_example(buffer)
    source.fetch_next_example(buffer)

    assert list_blob_names(source) == ["image", "label"]
    assert buffer.blob_shape("image") == (3, 2, 2)
    image = buffer.take_blob("image")
    assert image.dtype == np.float32
    assert float(image[0]) == 1.0


def test_npz_source_shards_by_loader_index(tmp_path: Path) -> None:
    """Loaders should read disjoint, modulo-assigned examples."""
    _write_examples(tmp_path, 5)
    source = NpzExampleSource(str(tmp_path), loader_index=1, loaders_count=2)
    buffer = ExampleBuffer(list_blob_names(source))

    values = []
    for _ in range(3):
        source.fetch_next_example(buffer)
        values.append(float(buffer.take_blob("image")[0]))

    assert values == [1.0, 3.0, 1.0]
    assert source.example_count() == 5


def test_npz_source_uses_explicit_ids(tmp_path: Path) -> None:
    """Explicit ids should select and order examples."""
    _write_examples(tmp_path, 4)
    source = NpzExampleSource(str(tmp_path), ids=["ex03", "ex01"])
    buffer = ExampleBuffer(list_blob_names(source))

    source.fetch_next_example(buffer)

    assert float(buffer.take_blob("image")[0]) == 3.0
    assert source.example_count() == 2


def test_npz_source_missing_directory_raises(tmp_path: Path) -> None:
    """Missing dataset directories should fail clearly."""
    with pytest.raises(SegFeedSourceError, match="does not exist"):
        NpzExampleSource(str(tmp_path / "missing"))


def test_npz_source_missing_example_file_raises(tmp_path: Path) -> None:
    """Ids without archives should fail."""
    _write_examples(tmp_path, 1)

    with pytest.raises(SegFeedSourceError, match="not found"):
        NpzExampleSource(str(tmp_path), ids=["nope"])


def test_parse_ids_files_splits_on_pipe() -> None:
    """Pipe-delimited lists should drop blank entries."""
    assert parse_ids_files("train_a.txt| train_b.txt||") == ["train_a.txt", "train_b.txt"]


def test_read_example_ids_skips_comments_and_resolves_relative(tmp_path: Path) -> None:
    """Ids files should resolve against the base dir and skip comments."""
    (tmp_path / "a.txt").write_text("ex00\n# comment\n\nex02\n", encoding="utf-8")
    (tmp_path / "b.txt").write_text("ex01\n", encoding="utf-8")

    example_ids = read_example_ids(["a.txt", str(tmp_path / "b.txt")], base_dir=str(tmp_path))

    assert example_ids == ["ex00", "ex02", "ex01"]


def test_read_example_ids_missing_file_raises(tmp_path: Path) -> None:
    """Unreadable ids files should raise a source error."""
    with pytest.raises(SegFeedSourceError):
        read_example_ids(["missing.txt"], base_dir=str(tmp_path))

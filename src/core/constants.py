"""Core constants used across SegFeed modules.

This module centralizes non-domain-specific constants.
Keeping values here avoids magic literals in business logic.
"""

from __future__ import annotations

import sys

import numpy as np

# Total epoch sample value meaning "use every example the dataset has".
FULL_DATASET_EPOCH = sys.maxsize
BLOB_DIMS = 3
IDS_FILE_SEPARATOR = "|"
IDS_FILE_COMMENT_PREFIX = "#"
EXAMPLE_FILE_SUFFIX = ".npz"
BLOB_DTYPE = np.float32
SPARSE_INDEX_DTYPE = np.int64
ELEMENT_TYPE_NAME = "float32"
SPARSE_NONZERO_VALUE = 1.0
IGNORE_KEEP_VALUE = 1.0
IGNORE_MASK_VALUE = 0.0
DEFAULT_WORKER_RANK = 0
DEFAULT_WORKER_COUNT = 1
SUPPORTED_STORAGE_KINDS = ("dense", "sparse")

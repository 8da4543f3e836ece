# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Client-side validation.

Every check raises ``ValidationError`` so a bad request is rejected
before anything is signed or sent.
"""

from __future__ import annotations

import json
import math
import re
from collections.abc import Sequence

from s3vectors.errors import ValidationError
from s3vectors.types import Vector


MIN_DIMENSION = 1
MAX_DIMENSION = 4096
MAX_TOP_K = 30
MAX_BATCH_SIZE = 100
MAX_LIST_RESULTS = 500
MAX_METADATA_BYTES = 40960

#: Regions where the service is available.
SUPPORTED_REGIONS = ("us-east-1", "us-west-2")

_BUCKET_CHARS_RE = re.compile(r"^[a-z0-9-]+$")
_INDEX_CHARS_RE = re.compile(r"^[A-Za-z0-9_-]+$")


def validate_bucket_name(name: str) -> None:
    """Validate a vector bucket name against S3 naming rules."""
    if not 3 <= len(name) <= 63:
        raise ValidationError(
            "Bucket name must be between 3 and 63 characters long"
        )
    if not _BUCKET_CHARS_RE.match(name):
        raise ValidationError(
            "Bucket name can only contain lowercase letters, numbers, "
            "and hyphens"
        )
    if name.startswith("-") or name.endswith("-"):
        raise ValidationError("Bucket name cannot start or end with a hyphen")
    if name.startswith("xn--"):
        raise ValidationError("Bucket name cannot start with 'xn--'")
    if name.endswith("-s3alias"):
        raise ValidationError("Bucket name cannot end with '-s3alias'")
    if ".." in name:
        raise ValidationError("Bucket name cannot contain consecutive periods")


def validate_index_name(name: str) -> None:
    if not 1 <= len(name) <= 255:
        raise ValidationError("Index name must be between 1 and 255 characters")
    if not _INDEX_CHARS_RE.match(name):
        raise ValidationError(
            "Index name can only contain alphanumeric characters, hyphens, "
            "and underscores"
        )


def validate_dimension(dimension: int) -> None:
    if not MIN_DIMENSION <= dimension <= MAX_DIMENSION:
        raise ValidationError(
            f"Vector dimension must be between {MIN_DIMENSION} and "
            f"{MAX_DIMENSION}, got {dimension}"
        )


def validate_top_k(top_k: int) -> None:
    if not 1 <= top_k <= MAX_TOP_K:
        raise ValidationError(f"Top-k must be between 1 and {MAX_TOP_K}")


def validate_max_results(max_results: int | None) -> None:
    if max_results is not None and not 1 <= max_results <= MAX_LIST_RESULTS:
        raise ValidationError(
            f"max_results must be between 1 and {MAX_LIST_RESULTS}"
        )


def validate_region(region: str) -> None:
    if region not in SUPPORTED_REGIONS:
        raise ValidationError(
            f"S3 Vectors is only available in: {', '.join(SUPPORTED_REGIONS)}. "
            f"Got {region!r}."
        )


def validate_floats(values: Sequence[float], what: str = "Vector") -> None:
    """Reject empty vectors and NaN or infinite components."""
    if not values:
        raise ValidationError(f"{what} must not be empty")
    for i, value in enumerate(values):
        if math.isnan(value):
            raise ValidationError(f"{what} contains NaN at index {i}")
        if math.isinf(value):
            raise ValidationError(
                f"{what} contains infinite value at index {i}"
            )


def validate_vector(vector: Vector, expected_dimension: int) -> None:
    """Validate one vector against the index dimension.

    Checks the key, the dimension, the float values and the encoded size
    of the metadata.
    """
    if not vector.key:
        raise ValidationError("Vector key must not be empty")
    if len(vector.data) != expected_dimension:
        raise ValidationError(
            f"Vector {vector.key!r} dimension mismatch: expected "
            f"{expected_dimension}, got {len(vector.data)}"
        )
    validate_floats(vector.data, f"Vector {vector.key!r}")
    if vector.metadata is not None:
        size = len(json.dumps(vector.metadata, separators=(",", ":")).encode())
        if size > MAX_METADATA_BYTES:
            raise ValidationError(
                f"Vector {vector.key!r} metadata size exceeds 40KB limit: "
                f"{size} bytes"
            )


def validate_batch(vectors: Sequence[Vector]) -> None:
    if not vectors:
        raise ValidationError("No vectors provided")
    if len(vectors) > MAX_BATCH_SIZE:
        raise ValidationError(
            f"Batch size {len(vectors)} exceeds maximum of {MAX_BATCH_SIZE}"
        )
    for vector in vectors:
        if not vector.key:
            raise ValidationError("Vector key must not be empty")


def validate_keys(keys: Sequence[str]) -> None:
    if not keys:
        raise ValidationError("No keys provided")
    if any(not k for k in keys):
        raise ValidationError("Vector keys must not be empty")

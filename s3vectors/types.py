# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Wire models for the S3 Vectors API.

The service speaks camelCase JSON; these dataclasses use snake_case and
convert at the boundary with ``from_dict`` / ``to_dict``.  Decoding is
lenient: unknown fields are ignored and optional fields may be absent.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class DistanceMetric(StrEnum):
    COSINE = "cosine"
    EUCLIDEAN = "euclidean"


class DataType(StrEnum):
    FLOAT32 = "float32"


class ResourceStatus(StrEnum):
    """Lifecycle status reported for buckets and indexes."""

    CREATING = "CREATING"
    ACTIVE = "ACTIVE"
    DELETING = "DELETING"
    FAILED = "FAILED"


def _status(value: object) -> ResourceStatus | None:
    if not value:
        return None
    try:
        return ResourceStatus(str(value).upper())
    except ValueError:
        return None


def _prune(data: dict[str, Any]) -> dict[str, Any]:
    """Drop None values so optional fields are omitted on the wire."""
    return {k: v for k, v in data.items() if v is not None}


# ---------------------------------------------------------------------------
# Buckets
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EncryptionConfiguration:
    sse_type: str | None = None
    kms_key_arn: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EncryptionConfiguration:
        return cls(
            sse_type=data.get("sseType"), kms_key_arn=data.get("kmsKeyArn")
        )

    def to_dict(self) -> dict[str, Any]:
        return _prune({"sseType": self.sse_type, "kmsKeyArn": self.kms_key_arn})


@dataclass(frozen=True)
class VectorBucket:
    """A vector bucket.

    Attributes:
        name: Bucket name.
        arn: Bucket ARN.
        creation_time: Creation time as epoch seconds.
        status: Lifecycle status, when the service reports one.
        encryption: Server-side encryption settings.
    """

    name: str
    arn: str | None = None
    creation_time: float | None = None
    status: ResourceStatus | None = None
    encryption: EncryptionConfiguration | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> VectorBucket:
        encryption = data.get("encryptionConfiguration")
        return cls(
            name=data.get("vectorBucketName", ""),
            arn=data.get("vectorBucketArn"),
            creation_time=data.get("creationTime"),
            status=_status(data.get("status")),
            encryption=(
                EncryptionConfiguration.from_dict(encryption)
                if isinstance(encryption, dict)
                else None
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return _prune(
            {
                "vectorBucketName": self.name,
                "vectorBucketArn": self.arn,
                "creationTime": self.creation_time,
                "status": self.status.value if self.status else None,
                "encryptionConfiguration": (
                    self.encryption.to_dict() if self.encryption else None
                ),
            }
        )


@dataclass(frozen=True)
class ListVectorBucketsResult:
    buckets: list[VectorBucket]
    next_token: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ListVectorBucketsResult:
        raw = data.get("vectorBuckets", data.get("buckets", []))
        return cls(
            buckets=[VectorBucket.from_dict(b) for b in raw],
            next_token=data.get("nextToken"),
        )

    def to_dict(self) -> dict[str, Any]:
        return _prune(
            {
                "vectorBuckets": [b.to_dict() for b in self.buckets],
                "nextToken": self.next_token,
            }
        )


# ---------------------------------------------------------------------------
# Indexes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class VectorIndex:
    """A vector index inside a bucket."""

    name: str
    bucket_name: str
    dimension: int
    distance_metric: DistanceMetric = DistanceMetric.COSINE
    data_type: DataType = DataType.FLOAT32
    arn: str | None = None
    creation_time: float | None = None
    status: ResourceStatus | None = None
    non_filterable_metadata_keys: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> VectorIndex:
        metadata_config = data.get("metadataConfiguration") or {}
        return cls(
            name=data.get("indexName", ""),
            bucket_name=data.get("vectorBucketName", ""),
            dimension=int(data.get("dimension", 0)),
            distance_metric=DistanceMetric(
                str(data.get("distanceMetric", DistanceMetric.COSINE)).lower()
            ),
            data_type=DataType(
                str(data.get("dataType", DataType.FLOAT32)).lower()
            ),
            arn=data.get("indexArn"),
            creation_time=data.get("creationTime"),
            status=_status(data.get("status")),
            non_filterable_metadata_keys=tuple(
                metadata_config.get("nonFilterableMetadataKeys", [])
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return _prune(
            {
                "indexName": self.name,
                "vectorBucketName": self.bucket_name,
                "dimension": self.dimension,
                "distanceMetric": self.distance_metric.value,
                "dataType": self.data_type.value,
                "indexArn": self.arn,
                "creationTime": self.creation_time,
                "status": self.status.value if self.status else None,
                "metadataConfiguration": (
                    {
                        "nonFilterableMetadataKeys": list(
                            self.non_filterable_metadata_keys
                        )
                    }
                    if self.non_filterable_metadata_keys
                    else None
                ),
            }
        )


@dataclass(frozen=True)
class IndexSummary:
    name: str
    bucket_name: str
    arn: str | None = None
    creation_time: float | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> IndexSummary:
        return cls(
            name=data.get("indexName", ""),
            bucket_name=data.get("vectorBucketName", ""),
            arn=data.get("indexArn"),
            creation_time=data.get("creationTime"),
        )

    def to_dict(self) -> dict[str, Any]:
        return _prune(
            {
                "indexName": self.name,
                "vectorBucketName": self.bucket_name,
                "indexArn": self.arn,
                "creationTime": self.creation_time,
            }
        )


@dataclass(frozen=True)
class ListIndexesResult:
    indexes: list[IndexSummary]
    next_token: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ListIndexesResult:
        return cls(
            indexes=[
                IndexSummary.from_dict(i) for i in data.get("indexes", [])
            ],
            next_token=data.get("nextToken"),
        )

    def to_dict(self) -> dict[str, Any]:
        return _prune(
            {
                "indexes": [i.to_dict() for i in self.indexes],
                "nextToken": self.next_token,
            }
        )


# ---------------------------------------------------------------------------
# Vectors
# ---------------------------------------------------------------------------


def _float32(data: object) -> list[float] | None:
    if isinstance(data, dict) and "float32" in data:
        return [float(x) for x in data["float32"]]
    return None


@dataclass(frozen=True)
class Vector:
    """A vector to store: key, float32 data and optional metadata."""

    key: str
    data: list[float]
    metadata: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return _prune(
            {
                "key": self.key,
                "data": {"float32": list(self.data)},
                "metadata": self.metadata,
            }
        )


@dataclass(frozen=True)
class RetrievedVector:
    """A vector returned by GetVectors or ListVectors."""

    key: str
    data: list[float] | None = None
    metadata: dict[str, Any] | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RetrievedVector:
        return cls(
            key=data.get("key", ""),
            data=_float32(data.get("data")),
            metadata=data.get("metadata"),
        )

    def to_dict(self) -> dict[str, Any]:
        return _prune(
            {
                "key": self.key,
                "data": (
                    {"float32": self.data} if self.data is not None else None
                ),
                "metadata": self.metadata,
            }
        )


@dataclass(frozen=True)
class ListVectorsResult:
    vectors: list[RetrievedVector]
    next_token: str | None = None

    @property
    def keys(self) -> list[str]:
        return [v.key for v in self.vectors]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ListVectorsResult:
        vectors = [
            RetrievedVector.from_dict(v) for v in data.get("vectors", [])
        ]
        # Older responses only carry bare keys.
        vectors.extend(RetrievedVector(key=k) for k in data.get("keys", []))
        return cls(vectors=vectors, next_token=data.get("nextToken"))

    def to_dict(self) -> dict[str, Any]:
        return _prune(
            {
                "vectors": [v.to_dict() for v in self.vectors],
                "nextToken": self.next_token,
            }
        )


@dataclass(frozen=True)
class QueryMatch:
    """One result of a similarity query."""

    key: str
    distance: float | None = None
    metadata: dict[str, Any] | None = None
    data: list[float] | None = field(default=None, repr=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> QueryMatch:
        distance = data.get("distance")
        return cls(
            key=data.get("key", ""),
            distance=float(distance) if distance is not None else None,
            metadata=data.get("metadata"),
            data=_float32(data.get("data")),
        )

    def to_dict(self) -> dict[str, Any]:
        return _prune(
            {
                "key": self.key,
                "distance": self.distance,
                "metadata": self.metadata,
            }
        )

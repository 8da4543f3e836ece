# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Async client and CLI for AWS S3 Vectors.

The client signs every request with AWS Signature Version 4, retries
throttling, server and connection failures with capped exponential
backoff, and reports failures as a typed ``S3VectorsError`` hierarchy.
"""

__version__ = "0.1.0"

from s3vectors.client import (
    S3VectorsClient,
    batch_put_vectors,
    create_bucket_and_index,
    wait_for_bucket_active,
    wait_for_index_active,
)
from s3vectors.config import ClientConfig, ConfigError, load_profile_credentials
from s3vectors.errors import (
    AlreadyExistsError,
    AuthRequiredError,
    NotFoundError,
    RateLimitedError,
    ResponseError,
    S3VectorsError,
    ServiceError,
    SigningError,
    TransportError,
    ValidationError,
)
from s3vectors.executor import RequestExecutor, RetryPolicy
from s3vectors.signing import Credentials, SigV4Signer
from s3vectors.types import (
    DataType,
    DistanceMetric,
    IndexSummary,
    ListIndexesResult,
    ListVectorBucketsResult,
    ListVectorsResult,
    QueryMatch,
    ResourceStatus,
    RetrievedVector,
    Vector,
    VectorBucket,
    VectorIndex,
)


__all__ = [
    "__version__",
    # client
    "S3VectorsClient",
    "batch_put_vectors",
    "create_bucket_and_index",
    "wait_for_bucket_active",
    "wait_for_index_active",
    # config
    "ClientConfig",
    "ConfigError",
    "load_profile_credentials",
    # errors
    "AlreadyExistsError",
    "AuthRequiredError",
    "NotFoundError",
    "RateLimitedError",
    "ResponseError",
    "S3VectorsError",
    "ServiceError",
    "SigningError",
    "TransportError",
    "ValidationError",
    # executor
    "RequestExecutor",
    "RetryPolicy",
    # signing
    "Credentials",
    "SigV4Signer",
    # types
    "DataType",
    "DistanceMetric",
    "IndexSummary",
    "ListIndexesResult",
    "ListVectorBucketsResult",
    "ListVectorsResult",
    "QueryMatch",
    "ResourceStatus",
    "RetrievedVector",
    "Vector",
    "VectorBucket",
    "VectorIndex",
]

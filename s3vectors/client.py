# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Async client for the S3 Vectors API.

Every operation validates its arguments first (raising ``ValidationError``
without any I/O), then issues one JSON ``POST`` through the
``RequestExecutor``, which signs, retries and classifies errors.

Usage::

    async with S3VectorsClient.from_env() as client:
        await client.create_vector_bucket("my-bucket")
        await client.create_index("my-bucket", "docs", 384)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime
from pathlib import Path
from types import TracebackType
from typing import Any

import httpx

from s3vectors import validation
from s3vectors.config import ClientConfig, load_profile_credentials
from s3vectors.errors import AlreadyExistsError, S3VectorsError
from s3vectors.executor import RequestExecutor, utc_now
from s3vectors.signing import Credentials, SigV4Signer
from s3vectors.types import (
    DataType,
    DistanceMetric,
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


logger = logging.getLogger(__name__)

USER_AGENT = "s3vectors-python"

#: Polls made by the ``wait_for_*_active`` helpers, one second apart.
WAIT_POLL_ATTEMPTS = 60
WAIT_POLL_INTERVAL_SECONDS = 1.0

#: Pause between chunks in ``batch_put_vectors``.
BATCH_PAUSE_SECONDS = 0.1

_POST = "POST"


class S3VectorsClient:
    """Client for one region and one set of credentials.

    Use as an async context manager, or call ``aclose()`` when done.

    Args:
        config: Client configuration.
        http_client: Shared ``httpx.AsyncClient``; the client does not
            close one it did not create.
        sleep: Backoff sleep coroutine, passed to the executor.
        clock: Signing time source, passed to the executor.
    """

    def __init__(
        self,
        config: ClientConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._config = config
        signer = SigV4Signer(config.credentials) if config.credentials else None
        self._executor = RequestExecutor(
            config.endpoint,
            signer,
            policy=config.retry,
            http_client=http_client,
            timeout=config.timeout_seconds,
            verify_ssl=config.verify_ssl,
            user_agent=USER_AGENT,
            sleep=sleep,
            clock=clock,
        )

    # -- constructors -------------------------------------------------------

    @classmethod
    def from_env(
        cls, region: str | None = None, **kwargs: Any
    ) -> S3VectorsClient:
        return cls(ClientConfig.from_env(region=region), **kwargs)

    @classmethod
    def from_profile(
        cls,
        profile: str,
        region: str | None = None,
        credentials_path: Path | None = None,
        **kwargs: Any,
    ) -> S3VectorsClient:
        """Create a client from a profile in the shared credentials file."""
        base = ClientConfig.from_env(region=region)
        credentials = load_profile_credentials(
            profile, base.region, credentials_path
        )
        config = ClientConfig(
            region=base.region,
            credentials=credentials,
            endpoint_url=base.endpoint_url,
        )
        return cls(config, **kwargs)

    @classmethod
    def with_credentials(
        cls,
        region: str,
        access_key_id: str,
        secret_access_key: str,
        session_token: str | None = None,
        **kwargs: Any,
    ) -> S3VectorsClient:
        credentials = Credentials(
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            session_token=session_token,
            region=region,
        )
        return cls(
            ClientConfig(region=region, credentials=credentials), **kwargs
        )

    @classmethod
    def anonymous(cls, region: str, **kwargs: Any) -> S3VectorsClient:
        """Create a client without credentials; every call fails with
        ``AuthRequiredError``."""
        return cls(ClientConfig(region=region), **kwargs)

    # -- lifecycle ----------------------------------------------------------

    @property
    def region(self) -> str:
        return self._config.region

    @property
    def config(self) -> ClientConfig:
        return self._config

    async def aclose(self) -> None:
        await self._executor.aclose()

    async def __aenter__(self) -> S3VectorsClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def _call(self, action: str, body: dict[str, Any]) -> dict[str, Any]:
        return await self._executor.execute(
            _POST,
            f"/{action}",
            {k: v for k, v in body.items() if v is not None},
        )

    # -- buckets ------------------------------------------------------------

    async def create_vector_bucket(
        self, name: str, *, kms_key_arn: str | None = None
    ) -> VectorBucket:
        """Create a vector bucket.

        Args:
            name: Bucket name.
            kms_key_arn: Encrypt with this KMS key instead of SSE-S3.

        Raises:
            AlreadyExistsError: The bucket already exists.
        """
        validation.validate_bucket_name(name)
        logger.info("Creating vector bucket: %s", name)
        encryption = (
            {"sseType": "aws:kms", "kmsKeyArn": kms_key_arn}
            if kms_key_arn
            else None
        )
        data = await self._call(
            "CreateVectorBucket",
            {"vectorBucketName": name, "encryptionConfiguration": encryption},
        )
        bucket = data.get("vectorBucket")
        if isinstance(bucket, dict):
            return VectorBucket.from_dict(bucket)
        return VectorBucket(name=name, arn=data.get("vectorBucketArn"))

    async def get_vector_bucket(self, name: str) -> VectorBucket:
        validation.validate_bucket_name(name)
        logger.info("Getting vector bucket: %s", name)
        data = await self._call("GetVectorBucket", {"vectorBucketName": name})
        raw = data.get("vectorBucket", data)
        if not isinstance(raw, dict):
            raw = {}
        raw.setdefault("vectorBucketName", name)
        return VectorBucket.from_dict(raw)

    async def list_vector_buckets(
        self,
        *,
        max_results: int | None = None,
        next_token: str | None = None,
        prefix: str | None = None,
    ) -> ListVectorBucketsResult:
        validation.validate_max_results(max_results)
        logger.info("Listing vector buckets")
        data = await self._call(
            "ListVectorBuckets",
            {
                "maxResults": max_results,
                "nextToken": next_token,
                "prefix": prefix,
            },
        )
        return ListVectorBucketsResult.from_dict(data)

    async def delete_vector_bucket(self, name: str) -> None:
        validation.validate_bucket_name(name)
        logger.info("Deleting vector bucket: %s", name)
        await self._call("DeleteVectorBucket", {"vectorBucketName": name})

    # -- indexes ------------------------------------------------------------

    async def create_index(
        self,
        bucket: str,
        index: str,
        dimension: int,
        *,
        distance_metric: DistanceMetric = DistanceMetric.COSINE,
        data_type: DataType = DataType.FLOAT32,
        non_filterable_metadata_keys: Sequence[str] | None = None,
    ) -> VectorIndex:
        """Create a vector index in a bucket.

        Args:
            bucket: Bucket name.
            index: Index name.
            dimension: Vector dimension (1-4096).
            distance_metric: Similarity metric.
            data_type: Element type of stored vectors.
            non_filterable_metadata_keys: Metadata keys stored but not
                usable in query filters.
        """
        validation.validate_bucket_name(bucket)
        validation.validate_index_name(index)
        validation.validate_dimension(dimension)
        logger.info(
            "Creating index %s/%s (dimension %d, %s)",
            bucket,
            index,
            dimension,
            distance_metric,
        )
        metadata_config = (
            {"nonFilterableMetadataKeys": list(non_filterable_metadata_keys)}
            if non_filterable_metadata_keys
            else None
        )
        data = await self._call(
            "CreateIndex",
            {
                "vectorBucketName": bucket,
                "indexName": index,
                "dimension": dimension,
                "dataType": DataType(data_type).value,
                "distanceMetric": DistanceMetric(distance_metric).value,
                "metadataConfiguration": metadata_config,
            },
        )
        raw = data.get("index")
        if isinstance(raw, dict):
            return VectorIndex.from_dict(raw)
        return VectorIndex(
            name=index,
            bucket_name=bucket,
            dimension=dimension,
            distance_metric=DistanceMetric(distance_metric),
            data_type=DataType(data_type),
            arn=data.get("indexArn"),
            non_filterable_metadata_keys=tuple(
                non_filterable_metadata_keys or ()
            ),
        )

    async def get_index(self, bucket: str, index: str) -> VectorIndex:
        validation.validate_bucket_name(bucket)
        validation.validate_index_name(index)
        logger.info("Getting index %s/%s", bucket, index)
        data = await self._call(
            "GetIndex", {"vectorBucketName": bucket, "indexName": index}
        )
        raw = data.get("index", data)
        if not isinstance(raw, dict):
            raw = {}
        raw.setdefault("vectorBucketName", bucket)
        raw.setdefault("indexName", index)
        return VectorIndex.from_dict(raw)

    async def list_indexes(
        self,
        bucket: str,
        *,
        max_results: int | None = None,
        next_token: str | None = None,
        prefix: str | None = None,
    ) -> ListIndexesResult:
        validation.validate_bucket_name(bucket)
        validation.validate_max_results(max_results)
        logger.info("Listing indexes in %s", bucket)
        data = await self._call(
            "ListIndexes",
            {
                "vectorBucketName": bucket,
                "maxResults": max_results,
                "nextToken": next_token,
                "prefix": prefix,
            },
        )
        return ListIndexesResult.from_dict(data)

    async def delete_index(self, bucket: str, index: str) -> None:
        validation.validate_bucket_name(bucket)
        validation.validate_index_name(index)
        logger.info("Deleting index %s/%s", bucket, index)
        await self._call(
            "DeleteIndex", {"vectorBucketName": bucket, "indexName": index}
        )

    # -- vectors ------------------------------------------------------------

    async def put_vectors(
        self, bucket: str, index: str, vectors: Sequence[Vector]
    ) -> None:
        """Store up to 100 vectors; existing keys are overwritten."""
        validation.validate_bucket_name(bucket)
        validation.validate_index_name(index)
        validation.validate_batch(vectors)
        logger.info(
            "Putting %d vectors into %s/%s", len(vectors), bucket, index
        )
        await self._call(
            "PutVectors",
            {
                "vectorBucketName": bucket,
                "indexName": index,
                "vectors": [v.to_dict() for v in vectors],
            },
        )

    async def get_vectors(
        self,
        bucket: str,
        index: str,
        keys: Sequence[str],
        *,
        return_data: bool = True,
        return_metadata: bool = True,
    ) -> list[RetrievedVector]:
        validation.validate_bucket_name(bucket)
        validation.validate_index_name(index)
        validation.validate_keys(keys)
        logger.info("Getting %d vectors from %s/%s", len(keys), bucket, index)
        data = await self._call(
            "GetVectors",
            {
                "vectorBucketName": bucket,
                "indexName": index,
                "keys": list(keys),
                "returnData": return_data,
                "returnMetadata": return_metadata,
            },
        )
        return [RetrievedVector.from_dict(v) for v in data.get("vectors", [])]

    async def list_vectors(
        self,
        bucket: str,
        index: str,
        *,
        max_results: int | None = None,
        next_token: str | None = None,
        return_data: bool = False,
        return_metadata: bool = False,
    ) -> ListVectorsResult:
        validation.validate_bucket_name(bucket)
        validation.validate_index_name(index)
        validation.validate_max_results(max_results)
        logger.info("Listing vectors in %s/%s", bucket, index)
        data = await self._call(
            "ListVectors",
            {
                "vectorBucketName": bucket,
                "indexName": index,
                "maxResults": max_results,
                "nextToken": next_token,
                "returnData": return_data,
                "returnMetadata": return_metadata,
            },
        )
        return ListVectorsResult.from_dict(data)

    async def delete_vectors(
        self, bucket: str, index: str, keys: Sequence[str]
    ) -> None:
        validation.validate_bucket_name(bucket)
        validation.validate_index_name(index)
        validation.validate_keys(keys)
        logger.info("Deleting %d vectors from %s/%s", len(keys), bucket, index)
        await self._call(
            "DeleteVectors",
            {
                "vectorBucketName": bucket,
                "indexName": index,
                "keys": list(keys),
            },
        )

    async def query_vectors(
        self,
        bucket: str,
        index: str,
        query_vector: Sequence[float],
        top_k: int = 10,
        *,
        filter: dict[str, Any] | None = None,
        return_metadata: bool = True,
        return_distance: bool = True,
    ) -> list[QueryMatch]:
        """Find the ``top_k`` nearest neighbours of ``query_vector``.

        Args:
            bucket: Bucket name.
            index: Index name.
            query_vector: Query embedding; must match the index dimension.
            top_k: Number of results (1-30).
            filter: Metadata filter expression.
            return_metadata: Include metadata in results.
            return_distance: Include distances in results.

        Returns:
            Matches ordered by increasing distance.
        """
        validation.validate_bucket_name(bucket)
        validation.validate_index_name(index)
        validation.validate_top_k(top_k)
        validation.validate_floats(query_vector, "Query vector")
        logger.info("Querying %s/%s (top_k=%d)", bucket, index, top_k)
        data = await self._call(
            "QueryVectors",
            {
                "vectorBucketName": bucket,
                "indexName": index,
                "queryVector": {"float32": [float(x) for x in query_vector]},
                "topK": top_k,
                "filter": filter,
                "returnMetadata": return_metadata,
                "returnDistance": return_distance,
            },
        )
        return [QueryMatch.from_dict(m) for m in data.get("vectors", [])]


# ---------------------------------------------------------------------------
# Composite helpers
# ---------------------------------------------------------------------------


async def wait_for_bucket_active(
    client: S3VectorsClient,
    bucket: str,
    *,
    attempts: int = WAIT_POLL_ATTEMPTS,
    interval: float = WAIT_POLL_INTERVAL_SECONDS,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> VectorBucket:
    """Poll until the bucket is active.

    A bucket without a reported status is treated as active.

    Raises:
        S3VectorsError: The bucket failed, or did not become active in time.
    """
    logger.info("Waiting for bucket %s to become active", bucket)
    for _ in range(attempts):
        result = await client.get_vector_bucket(bucket)
        if result.status in (None, ResourceStatus.ACTIVE):
            logger.info("Bucket %s is active", bucket)
            return result
        if result.status == ResourceStatus.FAILED:
            raise S3VectorsError(f"Bucket {bucket} creation failed")
        await sleep(interval)
    raise S3VectorsError(
        f"Timeout waiting for bucket {bucket} to become active"
    )


async def wait_for_index_active(
    client: S3VectorsClient,
    bucket: str,
    index: str,
    *,
    attempts: int = WAIT_POLL_ATTEMPTS,
    interval: float = WAIT_POLL_INTERVAL_SECONDS,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> VectorIndex:
    """Poll until the index is active. See ``wait_for_bucket_active``."""
    logger.info("Waiting for index %s/%s to become active", bucket, index)
    for _ in range(attempts):
        result = await client.get_index(bucket, index)
        if result.status in (None, ResourceStatus.ACTIVE):
            logger.info("Index %s/%s is active", bucket, index)
            return result
        if result.status == ResourceStatus.FAILED:
            raise S3VectorsError(f"Index {bucket}/{index} creation failed")
        await sleep(interval)
    raise S3VectorsError(
        f"Timeout waiting for index {bucket}/{index} to become active"
    )


async def create_bucket_and_index(
    client: S3VectorsClient,
    bucket: str,
    index: str,
    dimension: int,
    distance_metric: DistanceMetric = DistanceMetric.COSINE,
    *,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> tuple[VectorBucket, VectorIndex]:
    """Create a bucket and an index, reusing either if it already exists.

    Returns once both report active.
    """
    logger.info("Creating bucket %s and index %s", bucket, index)
    try:
        await client.create_vector_bucket(bucket)
    except AlreadyExistsError:
        logger.info("Bucket %s already exists, using existing", bucket)
    bucket_result = await wait_for_bucket_active(client, bucket, sleep=sleep)

    try:
        await client.create_index(
            bucket, index, dimension, distance_metric=distance_metric
        )
    except AlreadyExistsError:
        logger.info("Index %s already exists, using existing", index)
    index_result = await wait_for_index_active(
        client, bucket, index, sleep=sleep
    )

    return bucket_result, index_result


async def batch_put_vectors(
    client: S3VectorsClient,
    bucket: str,
    index: str,
    vectors: Sequence[Vector],
    expected_dimension: int,
    *,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> int:
    """Validate and upload any number of vectors in chunks of 100.

    Every vector is validated before the first upload, so an invalid
    vector means nothing is written.

    Returns:
        Number of vectors uploaded.
    """
    for vector in vectors:
        validation.validate_vector(vector, expected_dimension)

    size = validation.MAX_BATCH_SIZE
    chunks = [vectors[i : i + size] for i in range(0, len(vectors), size)]
    for i, chunk in enumerate(chunks):
        await client.put_vectors(bucket, index, chunk)
        if len(chunks) > 1 and i < len(chunks) - 1:
            await sleep(BATCH_PAUSE_SECONDS)

    logger.info("Successfully put %d vectors", len(vectors))
    return len(vectors)

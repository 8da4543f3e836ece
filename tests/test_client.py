# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Tests for s3vectors/client.py: operations and composite helpers."""

from pathlib import Path

import pytest
from conftest import FakeService, Sleeper, reply

from s3vectors.client import (
    BATCH_PAUSE_SECONDS,
    S3VectorsClient,
    batch_put_vectors,
    create_bucket_and_index,
    wait_for_bucket_active,
    wait_for_index_active,
)
from s3vectors.errors import (
    AlreadyExistsError,
    AuthRequiredError,
    NotFoundError,
    S3VectorsError,
    ValidationError,
)
from s3vectors.types import DistanceMetric, ResourceStatus, Vector


def _bucket(name: str = "docs", status: str = "ACTIVE") -> dict:
    return {"vectorBucket": {"vectorBucketName": name, "status": status}}


def _index(status: str = "ACTIVE", dimension: int = 3) -> dict:
    return {
        "index": {
            "indexName": "idx",
            "vectorBucketName": "docs",
            "dimension": dimension,
            "distanceMetric": "cosine",
            "status": status,
        }
    }


# ---------------------------------------------------------------------------
# Constructors
# ---------------------------------------------------------------------------


class TestConstructors:
    def test_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AWS_ACCESS_KEY_ID", "AKID")
        monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "secret")
        monkeypatch.setenv("AWS_REGION", "us-west-2")

        client = S3VectorsClient.from_env()

        assert client.region == "us-west-2"
        assert client.config.credentials is not None
        assert client.config.endpoint == "https://s3vectors.us-west-2.api.aws"

    def test_from_profile(self, tmp_path: Path) -> None:
        path = tmp_path / "credentials"
        path.write_text(
            "[work]\n"
            "aws_access_key_id = AKIDWORK\n"
            "aws_secret_access_key = worksecret\n"
        )

        client = S3VectorsClient.from_profile(
            "work", region="us-east-1", credentials_path=path
        )

        creds = client.config.credentials
        assert creds is not None
        assert creds.access_key_id == "AKIDWORK"
        assert creds.region == "us-east-1"

    def test_with_credentials(self) -> None:
        client = S3VectorsClient.with_credentials(
            "us-west-2", "AKID", "secret", session_token="tok"
        )
        creds = client.config.credentials
        assert creds is not None
        assert creds.session_token == "tok"
        assert creds.region == "us-west-2"

    async def test_anonymous_client_requires_auth(
        self, service: FakeService
    ) -> None:
        async with service.http_client() as http:
            client = S3VectorsClient.anonymous("us-east-1", http_client=http)
            with pytest.raises(AuthRequiredError):
                await client.list_vector_buckets()
        assert service.requests == []


# ---------------------------------------------------------------------------
# Buckets
# ---------------------------------------------------------------------------


class TestBuckets:
    async def test_create(
        self, client: S3VectorsClient, service: FakeService
    ) -> None:
        service.add(reply(200, {"vectorBucketArn": "arn:bucket/docs"}))

        bucket = await client.create_vector_bucket("docs")

        assert service.paths == ["/CreateVectorBucket"]
        assert service.json() == {"vectorBucketName": "docs"}
        assert bucket.name == "docs"
        assert bucket.arn == "arn:bucket/docs"

    async def test_create_with_kms_key(
        self, client: S3VectorsClient, service: FakeService
    ) -> None:
        service.add(reply(200, {}))

        await client.create_vector_bucket("docs", kms_key_arn="arn:kms:key")

        assert service.json()["encryptionConfiguration"] == {
            "sseType": "aws:kms",
            "kmsKeyArn": "arn:kms:key",
        }

    async def test_create_existing(
        self, client: S3VectorsClient, service: FakeService
    ) -> None:
        service.add(reply(409, {"__type": "ConflictException", "message": "x"}))
        with pytest.raises(AlreadyExistsError):
            await client.create_vector_bucket("docs")

    async def test_invalid_name_sends_nothing(
        self, client: S3VectorsClient, service: FakeService
    ) -> None:
        with pytest.raises(ValidationError):
            await client.create_vector_bucket("Bad_Name")
        assert service.requests == []

    async def test_get(
        self, client: S3VectorsClient, service: FakeService
    ) -> None:
        service.add(reply(200, _bucket(status="CREATING")))

        bucket = await client.get_vector_bucket("docs")

        assert service.paths == ["/GetVectorBucket"]
        assert bucket.status == ResourceStatus.CREATING

    async def test_get_missing(
        self, client: S3VectorsClient, service: FakeService
    ) -> None:
        service.add(reply(404, {"message": "Bucket not found"}))
        with pytest.raises(NotFoundError):
            await client.get_vector_bucket("docs")

    async def test_get_null_bucket_body(
        self, client: S3VectorsClient, service: FakeService
    ) -> None:
        service.add(reply(200, {"vectorBucket": None}))

        bucket = await client.get_vector_bucket("docs")

        assert bucket.name == "docs"
        assert bucket.arn is None

    async def test_list(
        self, client: S3VectorsClient, service: FakeService
    ) -> None:
        service.add(
            reply(
                200,
                {
                    "vectorBuckets": [
                        {"vectorBucketName": "a"},
                        {"vectorBucketName": "b"},
                    ],
                    "nextToken": "more",
                },
            )
        )

        result = await client.list_vector_buckets(max_results=2, prefix="a")

        assert service.json() == {"maxResults": 2, "prefix": "a"}
        assert [b.name for b in result.buckets] == ["a", "b"]
        assert result.next_token == "more"

    async def test_list_rejects_bad_page_size(
        self, client: S3VectorsClient, service: FakeService
    ) -> None:
        with pytest.raises(ValidationError):
            await client.list_vector_buckets(max_results=1000)
        assert service.requests == []

    async def test_delete(
        self, client: S3VectorsClient, service: FakeService
    ) -> None:
        service.add(reply(200))
        await client.delete_vector_bucket("docs")
        assert service.paths == ["/DeleteVectorBucket"]
        assert service.json() == {"vectorBucketName": "docs"}


# ---------------------------------------------------------------------------
# Indexes
# ---------------------------------------------------------------------------


class TestIndexes:
    async def test_create(
        self, client: S3VectorsClient, service: FakeService
    ) -> None:
        service.add(reply(200, {"indexArn": "arn:index"}))

        index = await client.create_index("docs", "idx", 384)

        assert service.paths == ["/CreateIndex"]
        assert service.json() == {
            "vectorBucketName": "docs",
            "indexName": "idx",
            "dimension": 384,
            "dataType": "float32",
            "distanceMetric": "cosine",
        }
        assert index.dimension == 384
        assert index.arn == "arn:index"

    async def test_create_euclidean_with_non_filterable_keys(
        self, client: S3VectorsClient, service: FakeService
    ) -> None:
        service.add(reply(200, {}))

        await client.create_index(
            "docs",
            "idx",
            8,
            distance_metric=DistanceMetric.EUCLIDEAN,
            non_filterable_metadata_keys=["content"],
        )

        body = service.json()
        assert body["distanceMetric"] == "euclidean"
        assert body["metadataConfiguration"] == {
            "nonFilterableMetadataKeys": ["content"]
        }

    @pytest.mark.parametrize("dimension", [0, 4097])
    async def test_bad_dimension_sends_nothing(
        self,
        client: S3VectorsClient,
        service: FakeService,
        dimension: int,
    ) -> None:
        with pytest.raises(ValidationError):
            await client.create_index("docs", "idx", dimension)
        assert service.requests == []

    async def test_get(
        self, client: S3VectorsClient, service: FakeService
    ) -> None:
        service.add(reply(200, _index()))
        index = await client.get_index("docs", "idx")
        assert service.json() == {
            "vectorBucketName": "docs",
            "indexName": "idx",
        }
        assert index.dimension == 3
        assert index.status == ResourceStatus.ACTIVE

    async def test_get_non_object_index_body(
        self, client: S3VectorsClient, service: FakeService
    ) -> None:
        service.add(reply(200, {"index": "unexpected"}))

        index = await client.get_index("docs", "idx")

        assert (index.bucket_name, index.name) == ("docs", "idx")

    async def test_list(
        self, client: S3VectorsClient, service: FakeService
    ) -> None:
        service.add(
            reply(200, {"indexes": [{"indexName": "a"}, {"indexName": "b"}]})
        )
        result = await client.list_indexes("docs")
        assert service.json() == {"vectorBucketName": "docs"}
        assert [i.name for i in result.indexes] == ["a", "b"]

    async def test_delete(
        self, client: S3VectorsClient, service: FakeService
    ) -> None:
        service.add(reply(200))
        await client.delete_index("docs", "idx")
        assert service.paths == ["/DeleteIndex"]


# ---------------------------------------------------------------------------
# Vectors
# ---------------------------------------------------------------------------


class TestVectors:
    async def test_put(
        self, client: S3VectorsClient, service: FakeService
    ) -> None:
        service.add(reply(200))

        await client.put_vectors(
            "docs", "idx", [Vector("k1", [0.1, 0.2], {"title": "t"})]
        )

        assert service.paths == ["/PutVectors"]
        assert service.json()["vectors"] == [
            {
                "key": "k1",
                "data": {"float32": [0.1, 0.2]},
                "metadata": {"title": "t"},
            }
        ]

    async def test_put_empty_batch(
        self, client: S3VectorsClient, service: FakeService
    ) -> None:
        with pytest.raises(ValidationError, match="No vectors"):
            await client.put_vectors("docs", "idx", [])
        assert service.requests == []

    async def test_get(
        self, client: S3VectorsClient, service: FakeService
    ) -> None:
        service.add(
            reply(
                200,
                {"vectors": [{"key": "k1", "data": {"float32": [1.0]}}]},
            )
        )

        vectors = await client.get_vectors(
            "docs", "idx", ["k1"], return_metadata=False
        )

        assert service.json() == {
            "vectorBucketName": "docs",
            "indexName": "idx",
            "keys": ["k1"],
            "returnData": True,
            "returnMetadata": False,
        }
        assert vectors[0].data == [1.0]

    async def test_list(
        self, client: S3VectorsClient, service: FakeService
    ) -> None:
        service.add(
            reply(200, {"vectors": [{"key": "a"}], "nextToken": "next"})
        )

        result = await client.list_vectors("docs", "idx", max_results=10)

        assert service.json()["maxResults"] == 10
        assert result.keys == ["a"]
        assert result.next_token == "next"

    async def test_delete(
        self, client: S3VectorsClient, service: FakeService
    ) -> None:
        service.add(reply(200))
        await client.delete_vectors("docs", "idx", ["a", "b"])
        assert service.json()["keys"] == ["a", "b"]

    async def test_query(
        self, client: S3VectorsClient, service: FakeService
    ) -> None:
        service.add(
            reply(
                200,
                {
                    "vectors": [
                        {"key": "a", "distance": 0.1, "metadata": {"t": 1}},
                        {"key": "b", "distance": 0.3},
                    ]
                },
            )
        )

        matches = await client.query_vectors(
            "docs", "idx", [0.1, 0.2, 0.3], 2, filter={"genre": "news"}
        )

        assert service.paths == ["/QueryVectors"]
        assert service.json() == {
            "vectorBucketName": "docs",
            "indexName": "idx",
            "queryVector": {"float32": [0.1, 0.2, 0.3]},
            "topK": 2,
            "filter": {"genre": "news"},
            "returnMetadata": True,
            "returnDistance": True,
        }
        assert [m.key for m in matches] == ["a", "b"]
        assert matches[0].distance == 0.1

    @pytest.mark.parametrize("top_k", [0, 31])
    async def test_query_bad_top_k(
        self, client: S3VectorsClient, service: FakeService, top_k: int
    ) -> None:
        with pytest.raises(ValidationError):
            await client.query_vectors("docs", "idx", [0.1], top_k)
        assert service.requests == []

    async def test_query_rejects_nan(
        self, client: S3VectorsClient, service: FakeService
    ) -> None:
        with pytest.raises(ValidationError, match="NaN"):
            await client.query_vectors("docs", "idx", [float("nan")])
        assert service.requests == []


# ---------------------------------------------------------------------------
# Composite helpers
# ---------------------------------------------------------------------------


class TestWaitHelpers:
    async def test_bucket_becomes_active(
        self, client: S3VectorsClient, service: FakeService
    ) -> None:
        service.add(
            reply(200, _bucket(status="CREATING")),
            reply(200, _bucket(status="ACTIVE")),
        )
        sleeps = Sleeper()

        bucket = await wait_for_bucket_active(client, "docs", sleep=sleeps)

        assert bucket.status == ResourceStatus.ACTIVE
        assert sleeps.calls == [1.0]

    async def test_missing_status_counts_as_active(
        self, client: S3VectorsClient, service: FakeService
    ) -> None:
        service.add(reply(200, {"vectorBucket": {"vectorBucketName": "docs"}}))
        bucket = await wait_for_bucket_active(client, "docs", sleep=Sleeper())
        assert bucket.status is None

    async def test_bucket_failed(
        self, client: S3VectorsClient, service: FakeService
    ) -> None:
        service.add(reply(200, _bucket(status="FAILED")))
        with pytest.raises(S3VectorsError, match="creation failed"):
            await wait_for_bucket_active(client, "docs", sleep=Sleeper())

    async def test_bucket_timeout(
        self, client: S3VectorsClient, service: FakeService
    ) -> None:
        service.add(
            reply(200, _bucket(status="CREATING")),
            reply(200, _bucket(status="CREATING")),
        )
        with pytest.raises(S3VectorsError, match="Timeout"):
            await wait_for_bucket_active(
                client, "docs", attempts=2, sleep=Sleeper()
            )

    async def test_index_becomes_active(
        self, client: S3VectorsClient, service: FakeService
    ) -> None:
        service.add(reply(200, _index("CREATING")), reply(200, _index()))
        index = await wait_for_index_active(
            client, "docs", "idx", sleep=Sleeper()
        )
        assert index.status == ResourceStatus.ACTIVE
        assert service.paths == ["/GetIndex", "/GetIndex"]


class TestCreateBucketAndIndex:
    async def test_creates_both(
        self, client: S3VectorsClient, service: FakeService
    ) -> None:
        service.add(
            reply(200, {}),
            reply(200, _bucket()),
            reply(200, {}),
            reply(200, _index()),
        )

        bucket, index = await create_bucket_and_index(
            client, "docs", "idx", 3, sleep=Sleeper()
        )

        assert service.paths == [
            "/CreateVectorBucket",
            "/GetVectorBucket",
            "/CreateIndex",
            "/GetIndex",
        ]
        assert bucket.name == "docs"
        assert index.dimension == 3

    async def test_reuses_existing(
        self, client: S3VectorsClient, service: FakeService
    ) -> None:
        conflict = {"__type": "ConflictException", "message": "exists"}
        service.add(
            reply(409, conflict),
            reply(200, _bucket()),
            reply(409, conflict),
            reply(200, _index()),
        )

        _, index = await create_bucket_and_index(
            client, "docs", "idx", 3, sleep=Sleeper()
        )

        assert index.name == "idx"
        assert service.pending == 0

    async def test_other_errors_propagate(
        self, client: S3VectorsClient, service: FakeService
    ) -> None:
        service.add(reply(400, {"message": "bad request"}))
        with pytest.raises(S3VectorsError, match="bad request"):
            await create_bucket_and_index(
                client, "docs", "idx", 3, sleep=Sleeper()
            )


class TestBatchPutVectors:
    async def test_chunks_of_one_hundred(
        self, client: S3VectorsClient, service: FakeService
    ) -> None:
        vectors = [Vector(f"k{i}", [float(i), 0.0]) for i in range(250)]
        service.add(reply(200), reply(200), reply(200))
        sleeps = Sleeper()

        count = await batch_put_vectors(
            client, "docs", "idx", vectors, 2, sleep=sleeps
        )

        assert count == 250
        assert [len(service.json(i)["vectors"]) for i in range(3)] == [
            100,
            100,
            50,
        ]
        assert sleeps.calls == [BATCH_PAUSE_SECONDS, BATCH_PAUSE_SECONDS]

    async def test_single_chunk_does_not_pause(
        self, client: S3VectorsClient, service: FakeService
    ) -> None:
        service.add(reply(200))
        sleeps = Sleeper()
        await batch_put_vectors(
            client, "docs", "idx", [Vector("k", [1.0])], 1, sleep=sleeps
        )
        assert sleeps.calls == []

    async def test_invalid_vector_uploads_nothing(
        self, client: S3VectorsClient, service: FakeService
    ) -> None:
        vectors = [Vector("ok", [1.0, 2.0]), Vector("bad", [1.0])]
        with pytest.raises(ValidationError, match="dimension mismatch"):
            await batch_put_vectors(
                client, "docs", "idx", vectors, 2, sleep=Sleeper()
            )
        assert service.requests == []

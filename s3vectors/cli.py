# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""s3-vectors CLI: multi-command entry point.

Provides ``s3-vectors <command> <action>`` for managing vector buckets,
indexes and vectors, and for running a small RAG workflow.  Running
``s3-vectors`` with no arguments prints version and usage information.

Commands:

* ``init``    create a stub config file and show credential status
* ``bucket``  create, list, get or delete vector buckets
* ``index``   create, list, get or delete vector indexes
* ``vector``  put, get, list, delete or query vectors
* ``rag``     initialize storage, ingest documents, query
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

from s3vectors import __version__, validation
from s3vectors.client import S3VectorsClient, batch_put_vectors
from s3vectors.config import ClientConfig, ConfigError, get_config_path
from s3vectors.document import ChunkingConfig, DocumentProcessor
from s3vectors.errors import (
    AlreadyExistsError,
    AuthRequiredError,
    NotFoundError,
    RateLimitedError,
    S3VectorsError,
    TransportError,
    ValidationError,
)
from s3vectors.logging import configure_logging
from s3vectors.output import (
    OutputFormat,
    format_data,
    format_timestamp,
    render_table,
    truncate,
)
from s3vectors.rag import (
    DEFAULT_MODEL,
    NO_RESULTS_MESSAGE,
    EmbeddingProvider,
    RagConfig,
    RagPipeline,
    SentenceTransformerEmbedder,
)
from s3vectors.types import DataType, DistanceMetric, Vector


logger = logging.getLogger(__name__)

_PROG = "s3-vectors"

# Known command names.
_SUBCOMMANDS = frozenset({"init", "bucket", "index", "vector", "rag"})

_USAGE = """\
usage: s3-vectors <command> <action> [args]

commands:
  init     Create a stub config file and show credential status
  bucket   Manage vector buckets (create, list, get, delete)
  index    Manage vector indexes (create, list, get, delete)
  vector   Manage vectors (put, get, list, delete, query)
  rag      RAG operations (init, ingest, query)

Run 's3-vectors <command> --help' for command-specific help.\
"""

#: Exit code for invalid input.
EXIT_USAGE = 2


# ── Terminal colors ─────────────────────────────────────────────────


def _use_color() -> bool:
    """Return True when stdout is a TTY and color is not disabled.

    ``NO_COLOR`` and ``TERM=dumb`` disable color.
    """
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("TERM") == "dumb":
        return False
    return sys.stdout.isatty()


class _Style:
    """ANSI escape helpers.  All methods return plain text when color is off."""

    def __init__(self, color: bool) -> None:
        self._on = color

    def _wrap(self, code: str, text: str) -> str:
        if not self._on:
            return text
        return f"\033[{code}m{text}\033[0m"

    def bold(self, text: str) -> str:
        return self._wrap("1", text)

    def green(self, text: str) -> str:
        return self._wrap("32", text)

    def red(self, text: str) -> str:
        return self._wrap("31", text)

    def yellow(self, text: str) -> str:
        return self._wrap("33", text)

    def cyan(self, text: str) -> str:
        return self._wrap("36", text)


# ── Shared plumbing ─────────────────────────────────────────────────


def _common_parser() -> argparse.ArgumentParser:
    """Options accepted by every command."""
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument(
        "-r",
        "--region",
        default=None,
        help="AWS region (default: $AWS_REGION or us-east-1)",
    )
    parser.add_argument(
        "-p",
        "--profile",
        default=os.environ.get("AWS_PROFILE"),
        help="AWS profile from ~/.aws/credentials (default: $AWS_PROFILE)",
    )
    parser.add_argument(
        "--endpoint-url", default=None, help="Override the service endpoint"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help=f"Config file (default: {get_config_path()})",
    )
    parser.add_argument(
        "-o",
        "--output",
        choices=[f.value for f in OutputFormat],
        default=OutputFormat.TABLE.value,
        help="Output format",
    )
    parser.add_argument(
        "--no-verify-ssl",
        action="store_true",
        help="Disable SSL certificate verification",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose output"
    )
    return parser


def _build_config(args: argparse.Namespace) -> ClientConfig:
    config = ClientConfig.from_yaml(
        args.config, region=args.region, profile=args.profile
    )
    config = config.with_overrides(
        endpoint_url=args.endpoint_url,
        verify_ssl=False if args.no_verify_ssl else None,
    )
    if not config.endpoint_url:
        validation.validate_region(config.region)
    return config


def _make_client(args: argparse.Namespace) -> S3VectorsClient:
    """Build the client for a command (patched in tests)."""
    return S3VectorsClient(_build_config(args))


def _make_embedder(args: argparse.Namespace) -> EmbeddingProvider:
    """Build the embedder for RAG commands (patched in tests)."""
    return SentenceTransformerEmbedder(args.model)


def _describe_error(e: Exception) -> str:
    """Turn an error into a message that tells the user what to do."""
    if isinstance(e, AuthRequiredError):
        return (
            f"{e.message}\nRun '{_PROG} init' for setup instructions, or "
            "set AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY."
        )
    if isinstance(e, NotFoundError):
        return f"Not found: {e}"
    if isinstance(e, AlreadyExistsError):
        return f"Already exists: {e}"
    if isinstance(e, RateLimitedError):
        return f"{e}\nThe service is throttling requests; try again later."
    if isinstance(e, TransportError):
        return (
            f"Network error: {e.message}\n"
            "Check your connection and the --region / --endpoint-url."
        )
    if isinstance(e, ConfigError):
        return f"Configuration error: {e}"
    return str(e)


def _run(
    args: argparse.Namespace,
    action: Callable[[S3VectorsClient], Awaitable[int]],
) -> int:
    """Configure logging, build a client and run *action* to completion.

    Returns:
        The action's exit code; 2 for invalid input, 1 for other errors.
    """
    configure_logging(level=logging.DEBUG if args.verbose else logging.WARNING)
    style = _Style(_use_color())

    async def _with_client() -> int:
        async with _make_client(args) as client:
            return await action(client)

    try:
        return asyncio.run(_with_client())
    except ValidationError as e:
        print(style.red(f"Error: {e.message}"), file=sys.stderr)
        return EXIT_USAGE
    except (ConfigError, S3VectorsError) as e:
        print(style.red(f"Error: {_describe_error(e)}"), file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print(style.yellow("Interrupted"), file=sys.stderr)
        return 130


def _emit(args: argparse.Namespace, data: Any, table: str) -> None:
    fmt = OutputFormat(args.output)
    print(table if fmt == OutputFormat.TABLE else format_data(data, fmt))


def _success(args: argparse.Namespace, message: str, **extra: Any) -> None:
    style = _Style(_use_color())
    data = {"status": "success", "message": message, **extra}
    _emit(args, data, style.green(message))


def _confirm(prompt: str) -> bool:
    try:
        answer = input(f"{prompt} [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def _parse_floats(text: str, what: str = "vector") -> list[float]:
    try:
        return [float(x) for x in text.split(",") if x.strip()]
    except ValueError as e:
        raise ValidationError(
            f"Invalid {what}: expected comma-separated numbers"
        ) from e


def _parse_json_object(text: str | None, what: str) -> dict[str, Any] | None:
    if text is None:
        return None
    try:
        value = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Invalid {what} JSON: {e}") from e
    if not isinstance(value, dict):
        raise ValidationError(f"{what} must be a JSON object")
    return value


def _split_keys(values: list[str]) -> list[str]:
    return [k.strip() for v in values for k in v.split(",") if k.strip()]


def _parse_argv(parser: argparse.ArgumentParser, argv: list[str]) -> Any:
    args = parser.parse_args(argv)
    if getattr(args, "action", None) is None:
        parser.print_help(sys.stderr)
        return None
    return args


# ── init ────────────────────────────────────────────────────────────


def cmd_init(argv: list[str]) -> int:
    """Create a stub config file and report credential status.

    Creates ``~/.config/s3vectors/config.yaml`` if it does not already
    exist.

    Args:
        argv: Command arguments.

    Returns:
        Exit code (always 0).
    """
    parser = argparse.ArgumentParser(
        prog=f"{_PROG} init", description="Create a stub config file"
    )
    parser.parse_args(argv)
    style = _Style(_use_color())

    config_path = get_config_path()
    if config_path.exists():
        print(f"Config already exists: {config_path}")
    else:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(_STUB_CONFIG)
        print(f"Created stub config: {config_path}")

    has_creds = bool(
        os.environ.get("AWS_ACCESS_KEY_ID")
        and os.environ.get("AWS_SECRET_ACCESS_KEY")
    )
    region = os.environ.get("AWS_REGION", "us-east-1")
    print()
    print(style.bold("Current configuration:"))
    if has_creds:
        print(f"  {style.green('✓')} Credentials found in environment")
    else:
        print(f"  {style.red('✗')} No credentials found in environment")
    print(f"  {style.green('✓')} Region: {region}")
    if not has_creds:
        print()
        print("Configure credentials with one of:")
        print("  • export AWS_ACCESS_KEY_ID=... AWS_SECRET_ACCESS_KEY=...")
        print(
            f"  • a profile in ~/.aws/credentials, "
            f"then '{_PROG} --profile NAME'"
        )
        print(f"  • the credentials section of {config_path}")
    return 0


# ── bucket ──────────────────────────────────────────────────────────


def cmd_bucket(argv: list[str]) -> int:
    """Manage vector buckets.

    Args:
        argv: Command arguments (``<action> ...``).

    Returns:
        Exit code.
    """
    common = _common_parser()
    parser = argparse.ArgumentParser(
        prog=f"{_PROG} bucket", description="Manage vector buckets"
    )
    sub = parser.add_subparsers(dest="action")

    p = sub.add_parser(
        "create", parents=[common], help="Create a vector bucket"
    )
    p.add_argument("name", help="Bucket name")
    p.add_argument("--kms-key-arn", help="Encrypt with this KMS key")

    p = sub.add_parser("list", parents=[common], help="List vector buckets")
    p.add_argument("--max-results", type=int, default=None)
    p.add_argument("--next-token", default=None)
    p.add_argument("--prefix", default=None)

    p = sub.add_parser("get", parents=[common], help="Describe a vector bucket")
    p.add_argument("name", help="Bucket name")

    p = sub.add_parser(
        "delete", parents=[common], help="Delete a vector bucket"
    )
    p.add_argument("name", help="Bucket name")
    p.add_argument(
        "-f", "--force", action="store_true", help="Skip confirmation"
    )

    args = _parse_argv(parser, argv)
    if args is None:
        return EXIT_USAGE

    if args.action == "delete" and not args.force:
        if not _confirm(f"Delete vector bucket '{args.name}'?"):
            print("Aborted")
            return 1

    async def action(client: S3VectorsClient) -> int:
        if args.action == "create":
            bucket = await client.create_vector_bucket(
                args.name, kms_key_arn=args.kms_key_arn
            )
            _success(
                args,
                f"Vector bucket '{args.name}' created",
                bucket=bucket.to_dict(),
            )
        elif args.action == "list":
            result = await client.list_vector_buckets(
                max_results=args.max_results,
                next_token=args.next_token,
                prefix=args.prefix,
            )
            table = render_table(
                ["NAME", "CREATED", "ARN"],
                [
                    [b.name, format_timestamp(b.creation_time), b.arn]
                    for b in result.buckets
                ],
            )
            if result.next_token:
                table += f"\n\nNext token: {result.next_token}"
            _emit(args, result.to_dict(), table)
        elif args.action == "get":
            bucket = await client.get_vector_bucket(args.name)
            encryption = bucket.encryption
            table = render_table(
                ["FIELD", "VALUE"],
                [
                    ["Name", bucket.name],
                    ["ARN", bucket.arn],
                    ["Created", format_timestamp(bucket.creation_time)],
                    ["Status", bucket.status],
                    ["Encryption", encryption.sse_type if encryption else None],
                ],
            )
            _emit(args, bucket.to_dict(), table)
        else:
            await client.delete_vector_bucket(args.name)
            _success(args, f"Vector bucket '{args.name}' deleted")
        return 0

    return _run(args, action)


# ── index ───────────────────────────────────────────────────────────


def cmd_index(argv: list[str]) -> int:
    """Manage vector indexes.

    Args:
        argv: Command arguments (``<action> ...``).

    Returns:
        Exit code.
    """
    common = _common_parser()
    parser = argparse.ArgumentParser(
        prog=f"{_PROG} index", description="Manage vector indexes"
    )
    sub = parser.add_subparsers(dest="action")

    p = sub.add_parser("create", parents=[common], help="Create an index")
    p.add_argument("bucket", help="Bucket name")
    p.add_argument("name", help="Index name")
    p.add_argument(
        "-d", "--dimension", type=int, required=True, help="Vector dimension"
    )
    p.add_argument(
        "-m",
        "--metric",
        choices=[m.value for m in DistanceMetric],
        default=DistanceMetric.COSINE.value,
        help="Distance metric",
    )
    p.add_argument(
        "--data-type",
        choices=[t.value for t in DataType],
        default=DataType.FLOAT32.value,
    )
    p.add_argument(
        "--non-filterable-key",
        action="append",
        default=[],
        dest="non_filterable_keys",
        help="Metadata key excluded from filtering (repeatable)",
    )

    p = sub.add_parser(
        "list", parents=[common], help="List indexes in a bucket"
    )
    p.add_argument("bucket", help="Bucket name")
    p.add_argument("--max-results", type=int, default=None)
    p.add_argument("--next-token", default=None)
    p.add_argument("--prefix", default=None)

    p = sub.add_parser("get", parents=[common], help="Describe an index")
    p.add_argument("bucket", help="Bucket name")
    p.add_argument("name", help="Index name")

    p = sub.add_parser("delete", parents=[common], help="Delete an index")
    p.add_argument("bucket", help="Bucket name")
    p.add_argument("name", help="Index name")
    p.add_argument(
        "-f", "--force", action="store_true", help="Skip confirmation"
    )

    args = _parse_argv(parser, argv)
    if args is None:
        return EXIT_USAGE

    if args.action == "delete" and not args.force:
        if not _confirm(f"Delete index '{args.bucket}/{args.name}'?"):
            print("Aborted")
            return 1

    async def action(client: S3VectorsClient) -> int:
        if args.action == "create":
            index = await client.create_index(
                args.bucket,
                args.name,
                args.dimension,
                distance_metric=DistanceMetric(args.metric),
                data_type=DataType(args.data_type),
                non_filterable_metadata_keys=args.non_filterable_keys or None,
            )
            _success(
                args,
                f"Index '{args.bucket}/{args.name}' created",
                index=index.to_dict(),
            )
        elif args.action == "list":
            result = await client.list_indexes(
                args.bucket,
                max_results=args.max_results,
                next_token=args.next_token,
                prefix=args.prefix,
            )
            table = render_table(
                ["NAME", "CREATED", "ARN"],
                [
                    [i.name, format_timestamp(i.creation_time), i.arn]
                    for i in result.indexes
                ],
            )
            if result.next_token:
                table += f"\n\nNext token: {result.next_token}"
            _emit(args, result.to_dict(), table)
        elif args.action == "get":
            index = await client.get_index(args.bucket, args.name)
            table = render_table(
                ["FIELD", "VALUE"],
                [
                    ["Name", index.name],
                    ["Bucket", index.bucket_name],
                    ["Dimension", index.dimension],
                    ["Metric", index.distance_metric],
                    ["Data type", index.data_type],
                    ["Status", index.status],
                    ["Created", format_timestamp(index.creation_time)],
                    ["ARN", index.arn],
                ],
            )
            _emit(args, index.to_dict(), table)
        else:
            await client.delete_index(args.bucket, args.name)
            _success(args, f"Index '{args.bucket}/{args.name}' deleted")
        return 0

    return _run(args, action)


# ── vector ──────────────────────────────────────────────────────────


def _load_vector_file(path: Path) -> list[Vector]:
    """Read a JSON array of ``{"key", "data", "metadata"}`` objects.

    ``data`` may be a list of numbers or ``{"float32": [...]}``.
    """
    try:
        raw = json.loads(path.read_text())
    except OSError as e:
        raise ValidationError(f"Cannot read {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ValidationError(f"Invalid JSON in {path}: {e}") from e
    if not isinstance(raw, list):
        raise ValidationError(f"{path} must contain a JSON array of vectors")

    vectors = []
    for i, item in enumerate(raw):
        if not (isinstance(item, dict) and "key" in item and "data" in item):
            raise ValidationError(
                f"Vector {i} in {path} needs 'key' and 'data' fields"
            )
        data = item["data"]
        if isinstance(data, dict):
            data = data.get("float32", [])
        try:
            floats = [float(x) for x in data]
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Vector {i} in {path}: bad data: {e}") from e
        vectors.append(
            Vector(
                key=str(item["key"]),
                data=floats,
                metadata=item.get("metadata"),
            )
        )
    return vectors


def cmd_vector(argv: list[str]) -> int:
    """Manage vectors.

    Args:
        argv: Command arguments (``<action> ...``).

    Returns:
        Exit code.
    """
    common = _common_parser()
    parser = argparse.ArgumentParser(
        prog=f"{_PROG} vector", description="Manage vectors"
    )
    sub = parser.add_subparsers(dest="action")

    p = sub.add_parser(
        "put", parents=[common], help="Put vectors into an index"
    )
    p.add_argument("bucket", help="Bucket name")
    p.add_argument("index", help="Index name")
    p.add_argument("key", nargs="?", help="Vector key (single-vector mode)")
    p.add_argument("-d", "--data", help="Vector data as comma-separated floats")
    p.add_argument("-m", "--metadata", help="Metadata as a JSON object")
    p.add_argument(
        "-f",
        "--file",
        type=Path,
        help="Batch input file (JSON array of vectors)",
    )

    p = sub.add_parser("get", parents=[common], help="Get vectors by key")
    p.add_argument("bucket", help="Bucket name")
    p.add_argument("index", help="Index name")
    p.add_argument("keys", nargs="+", help="Vector keys (comma-separated ok)")
    p.add_argument(
        "--data",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Include vector data",
    )
    p.add_argument(
        "--metadata",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Include metadata",
    )

    p = sub.add_parser(
        "list", parents=[common], help="List vectors in an index"
    )
    p.add_argument("bucket", help="Bucket name")
    p.add_argument("index", help="Index name")
    p.add_argument("--max-results", type=int, default=100)
    p.add_argument("--next-token", default=None)
    p.add_argument("--data", action="store_true", help="Include vector data")
    p.add_argument("--metadata", action="store_true", help="Include metadata")

    p = sub.add_parser("delete", parents=[common], help="Delete vectors by key")
    p.add_argument("bucket", help="Bucket name")
    p.add_argument("index", help="Index name")
    p.add_argument("keys", nargs="+", help="Vector keys (comma-separated ok)")
    p.add_argument("--force", action="store_true", help="Skip confirmation")

    p = sub.add_parser("query", parents=[common], help="Similarity search")
    p.add_argument("bucket", help="Bucket name")
    p.add_argument("index", help="Index name")
    p.add_argument(
        "-q",
        "--query",
        required=True,
        help="Query vector as comma-separated floats",
    )
    p.add_argument(
        "-k", "--top-k", type=int, default=10, help="Number of results"
    )
    p.add_argument("--filter", help="Metadata filter as a JSON object")
    p.add_argument(
        "--metadata",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Include metadata",
    )
    p.add_argument(
        "--distance",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Include distances",
    )

    args = _parse_argv(parser, argv)
    if args is None:
        return EXIT_USAGE

    if args.action == "delete" and not args.force:
        keys = _split_keys(args.keys)
        if not _confirm(
            f"Delete {len(keys)} vector(s) from '{args.bucket}/{args.index}'?"
        ):
            print("Aborted")
            return 1

    async def action(client: S3VectorsClient) -> int:
        if args.action == "put":
            return await _vector_put(client, args)
        if args.action == "get":
            vectors = await client.get_vectors(
                args.bucket,
                args.index,
                _split_keys(args.keys),
                return_data=args.data,
                return_metadata=args.metadata,
            )
            table = render_table(
                ["KEY", "DATA", "METADATA"],
                [
                    [
                        v.key,
                        truncate(json.dumps(v.data), 40) if v.data else None,
                        v.metadata,
                    ]
                    for v in vectors
                ],
            )
            _emit(args, {"vectors": [v.to_dict() for v in vectors]}, table)
        elif args.action == "list":
            result = await client.list_vectors(
                args.bucket,
                args.index,
                max_results=args.max_results,
                next_token=args.next_token,
                return_data=args.data,
                return_metadata=args.metadata,
            )
            table = render_table(
                ["KEY", "METADATA"],
                [[v.key, v.metadata] for v in result.vectors],
            )
            if result.next_token:
                table += f"\n\nNext token: {result.next_token}"
            _emit(args, result.to_dict(), table)
        elif args.action == "delete":
            keys = _split_keys(args.keys)
            await client.delete_vectors(args.bucket, args.index, keys)
            _success(
                args,
                f"Deleted {len(keys)} vector(s) "
                f"from '{args.bucket}/{args.index}'",
                keys=keys,
            )
        else:
            matches = await client.query_vectors(
                args.bucket,
                args.index,
                _parse_floats(args.query, "query vector"),
                args.top_k,
                filter=_parse_json_object(args.filter, "filter"),
                return_metadata=args.metadata,
                return_distance=args.distance,
            )
            table = render_table(
                ["RANK", "KEY", "DISTANCE", "METADATA"],
                [
                    [rank, m.key, m.distance, m.metadata]
                    for rank, m in enumerate(matches, 1)
                ],
            )
            _emit(args, {"vectors": [m.to_dict() for m in matches]}, table)
        return 0

    return _run(args, action)


async def _vector_put(client: S3VectorsClient, args: argparse.Namespace) -> int:
    if args.file is not None:
        vectors = _load_vector_file(args.file)
        index = await client.get_index(args.bucket, args.index)
        count = await batch_put_vectors(
            client, args.bucket, args.index, vectors, index.dimension
        )
    else:
        if not args.key or not args.data:
            raise ValidationError("Provide KEY and --data, or --file")
        vector = Vector(
            key=args.key,
            data=_parse_floats(args.data),
            metadata=_parse_json_object(args.metadata, "metadata"),
        )
        validation.validate_floats(vector.data)
        await client.put_vectors(args.bucket, args.index, [vector])
        count = 1
    _success(
        args,
        f"Put {count} vector(s) into '{args.bucket}/{args.index}'",
        count=count,
    )
    return 0


# ── rag ─────────────────────────────────────────────────────────────


def cmd_rag(argv: list[str]) -> int:
    """RAG operations.

    Args:
        argv: Command arguments (``<action> ...``).

    Returns:
        Exit code.
    """
    common = _common_parser()
    defaults = RagConfig()
    rag_common = argparse.ArgumentParser(add_help=False)
    rag_common.add_argument("--bucket", default=defaults.bucket_name)
    rag_common.add_argument("--index", default=defaults.index_name)
    rag_common.add_argument(
        "--model", default=DEFAULT_MODEL, help="sentence-transformers model"
    )

    parser = argparse.ArgumentParser(
        prog=f"{_PROG} rag", description="RAG operations"
    )
    sub = parser.add_subparsers(dest="action")

    sub.add_parser(
        "init",
        parents=[common, rag_common],
        help="Create the RAG bucket and index",
    )

    p = sub.add_parser(
        "ingest", parents=[common, rag_common], help="Ingest documents"
    )
    p.add_argument("path", type=Path, help="Directory or file to ingest")
    p.add_argument("--chunk-size", type=int, default=ChunkingConfig.chunk_size)
    p.add_argument(
        "--chunk-overlap", type=int, default=ChunkingConfig.chunk_overlap
    )

    p = sub.add_parser(
        "query", parents=[common, rag_common], help="Query ingested documents"
    )
    p.add_argument("query", help="Query text")
    p.add_argument(
        "-k", "--top-k", type=int, default=5, help="Number of results"
    )

    args = _parse_argv(parser, argv)
    if args is None:
        return EXIT_USAGE

    async def action(client: S3VectorsClient) -> int:
        config = RagConfig(bucket_name=args.bucket, index_name=args.index)
        processor = None
        if args.action == "ingest":
            try:
                chunking = ChunkingConfig(
                    chunk_size=args.chunk_size, chunk_overlap=args.chunk_overlap
                )
            except ValueError as e:
                raise ValidationError(str(e)) from e
            processor = DocumentProcessor(chunking)
        pipeline = RagPipeline(client, _make_embedder(args), config, processor)

        if args.action == "init":
            await pipeline.initialize()
            _success(
                args,
                f"RAG storage ready: '{args.bucket}/{args.index}'",
                bucket=args.bucket,
                index=args.index,
                region=client.region,
            )
            return 0

        if args.action == "ingest":
            if not args.path.exists():
                raise ValidationError(f"Path not found: {args.path}")
            report = await pipeline.ingest_documents(args.path)
            data = {
                "status": "success" if report.ok else "partial",
                "path": str(args.path),
                "documents": report.documents,
                "chunks": report.chunks,
                "uploaded": report.uploaded,
                "errors": report.errors,
                "elapsed_seconds": round(report.elapsed_seconds, 2),
            }
            table = (
                f"Ingested {report.documents} document(s): "
                f"{report.uploaded} of {report.chunks} chunk(s) uploaded "
                f"in {report.elapsed_seconds:.1f}s"
            )
            for error in report.errors:
                table += f"\n  error: {error}"
            _emit(args, data, table)
            return 0 if report.ok else 1

        validation.validate_top_k(args.top_k)
        results = await pipeline.search(args.query, args.top_k)
        response = (
            pipeline.generate_response(args.query, results)
            if results
            else NO_RESULTS_MESSAGE
        )
        data = {
            "query": args.query,
            "response": response,
            "results": [
                {"chunk_id": r.chunk_id, "score": r.score, "content": r.content}
                for r in results
            ],
        }
        _emit(args, data, response)
        return 0

    return _run(args, action)


# ── Entry point ─────────────────────────────────────────────────────


_DISPATCH: dict[str, str] = {
    "init": "cmd_init",
    "bucket": "cmd_bucket",
    "index": "cmd_index",
    "vector": "cmd_vector",
    "rag": "cmd_rag",
}


def _print_info() -> None:
    """Print version information and available commands."""
    print(f"s3-vectors {__version__}")
    print()
    print(_USAGE)


def cli() -> None:
    """Entry point for ``s3-vectors``.

    When no arguments are given, prints version and usage information.
    """
    argv = sys.argv[1:]

    if not argv or argv[0] in ("--help", "-h"):
        _print_info()
        sys.exit(0)

    if argv[0] == "--version":
        print(__version__)
        sys.exit(0)

    if argv[0] not in _SUBCOMMANDS:
        print(f"{_PROG}: unknown command '{argv[0]}'", file=sys.stderr)
        print(_USAGE, file=sys.stderr)
        sys.exit(EXIT_USAGE)

    command = argv[0]
    rest = argv[1:]

    # Look up handler by name so tests can mock individual commands.
    import s3vectors.cli as _self

    handler = getattr(_self, _DISPATCH[command])
    sys.exit(handler(rest))


#: Stub configuration template written by ``s3-vectors init``.
_STUB_CONFIG = """\
# s3-vectors configuration
#
# Values may reference environment variables with !env, e.g.
#   secret_access_key: !env AWS_SECRET_ACCESS_KEY

region: us-east-1

# profile: default
# endpoint_url: https://s3vectors.us-east-1.api.aws
# timeout: 30
# verify_ssl: true

# retry:
#   max_retries: 3
#   initial_backoff_ms: 100
#   max_backoff_ms: 5000

# credentials:
#   access_key_id: !env AWS_ACCESS_KEY_ID
#   secret_access_key: !env AWS_SECRET_ACCESS_KEY
"""

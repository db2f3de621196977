"""
Read access to the object store holding node data.

The gateway only needs three things from storage: object metadata, the
object itself, and a pre-signed URL for it. :class:`ObjectStore` describes
that capability. :class:`S3ObjectStore` provides it against an S3-compatible
service, and :class:`MemoryObjectStore` against a dict (for development and
testing).
"""

import io
import logging
from abc import ABC, abstractmethod
from typing import Any, BinaryIO, Dict, Iterator, Mapping, NamedTuple, \
    Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from flask import Flask, current_app

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = {'404', 'NoSuchKey', 'NotFound', 'NoSuchBucket'}
CHUNK_SIZE = 64 * 1024


class ConfigurationError(RuntimeError):
    """Raised when a required storage parameter is missing."""


class StorageError(RuntimeError):
    """The object store failed to complete a request."""


class ObjectNotFound(StorageError):
    """The requested object (or its bucket) does not exist."""


class ObjectInfo(NamedTuple):
    """Object metadata."""

    content_length: Optional[int] = None
    content_language: Optional[str] = None


class StoredObject:
    """An open object body."""

    def __init__(self, body: BinaryIO,
                 content_length: Optional[int] = None) -> None:
        self.body = body
        self.content_length = content_length

    def iter_chunks(self, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
        """Read the body in chunks until exhausted."""
        while True:
            chunk = self.body.read(chunk_size)
            if not chunk:
                break
            yield chunk

    def close(self) -> None:
        """Release the underlying connection."""
        self.body.close()


class ObjectStore(ABC):
    """Read-only access to stored objects."""

    @abstractmethod
    def head_object(self, key: str) -> ObjectInfo:
        """Get metadata for ``key``."""

    @abstractmethod
    def get_object(self, key: str) -> StoredObject:
        """Open ``key`` for reading."""

    @abstractmethod
    def presign_get_url(self, key: str, ttl: int) -> str:
        """Get a URL from which ``key`` can be read for ``ttl`` seconds."""


class S3ObjectStore(ObjectStore):
    """Objects in a single bucket of an S3-compatible service."""

    def __init__(self, bucket: str, endpoint_url: Optional[str] = None,
                 access_key_id: Optional[str] = None,
                 secret_access_key: Optional[str] = None,
                 region: Optional[str] = None, timeout: float = 30.0,
                 client: Any = None) -> None:
        self.bucket = bucket
        if client is None:
            session = boto3.session.Session()
            client_args: Dict[str, Optional[str]] = {
                'endpoint_url': endpoint_url,
                'region_name': region,
                'aws_access_key_id': access_key_id,
                'aws_secret_access_key': secret_access_key,
            }
            client = session.client(
                's3',
                config=Config(s3={'addressing_style': 'path'},
                              connect_timeout=timeout, read_timeout=timeout),
                **{k: v for k, v in client_args.items() if v}
            )
        self._client = client

    def head_object(self, key: str) -> ObjectInfo:
        try:
            response = self._client.head_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise _translate(e) from e
        length = response.get('ContentLength')
        return ObjectInfo(
            content_length=int(length) if length is not None else None,
            content_language=response.get('ContentLanguage')
        )

    def get_object(self, key: str) -> StoredObject:
        try:
            response = self._client.get_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise _translate(e) from e
        length = response.get('ContentLength')
        return StoredObject(
            response['Body'],
            int(length) if length is not None else None
        )

    def presign_get_url(self, key: str, ttl: int) -> str:
        try:
            url: str = self._client.generate_presigned_url(
                'get_object',
                Params={'Bucket': self.bucket, 'Key': key},
                ExpiresIn=ttl
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f'error getting presigned url: {e}') from e
        return url


def _translate(e: Exception) -> StorageError:
    if isinstance(e, ClientError):
        code = str(e.response.get('Error', {}).get('Code', ''))
        if code in NOT_FOUND_CODES:
            return ObjectNotFound(str(e))
    return StorageError(str(e))


class MemoryObjectStore(ObjectStore):
    """Objects held in memory, keyed by their full key."""

    def __init__(self, objects: Optional[Mapping[str, bytes]] = None,
                 base_url: str = 'http://localhost/presigned/') -> None:
        self.objects: Dict[str, bytes] = dict(objects or {})
        self.base_url = base_url

    def _load(self, key: str) -> bytes:
        try:
            return self.objects[key]
        except KeyError as e:
            raise ObjectNotFound(f'NotFound: {key}') from e

    def head_object(self, key: str) -> ObjectInfo:
        return ObjectInfo(content_length=len(self._load(key)))

    def get_object(self, key: str) -> StoredObject:
        content = self._load(key)
        return StoredObject(io.BytesIO(content), len(content))

    def presign_get_url(self, key: str, ttl: int) -> str:
        self._load(key)
        return f'{self.base_url}{key}?expires={ttl}'


def create_store(config: Mapping[str, Any]) -> ObjectStore:
    """Build the object store described by the application config."""
    backend = config.get('STORAGE_BACKEND', 's3')
    if backend == 'memory':
        logger.warning('Using in-memory object store')
        return MemoryObjectStore()
    if backend != 's3':
        raise ConfigurationError(f'Unknown storage backend: {backend}')

    endpoint = config.get('S3_ENDPOINT')
    bucket = config.get('S3_BUCKET')
    if not endpoint or not bucket:
        raise ConfigurationError('S3_ENDPOINT and S3_BUCKET are required')
    logger.info('Using S3 bucket %s at %s', bucket, endpoint)
    return S3ObjectStore(
        bucket,
        endpoint_url=endpoint,
        access_key_id=config.get('S3_ACCESS_KEY_ID'),
        secret_access_key=config.get('S3_SECRET_ACCESS_KEY'),
        region=config.get('S3_REGION'),
        timeout=float(config.get('STORAGE_TIMEOUT', 30))
    )


def init_app(app: Flask, store: Optional[ObjectStore] = None) -> None:
    """Attach an object store to ``app``."""
    if store is None:
        store = create_store(app.config)
    app.extensions['object_store'] = store


def current_store() -> ObjectStore:
    """Get the object store for the current application."""
    try:
        store: ObjectStore = current_app.extensions['object_store']
    except KeyError as e:
        raise ConfigurationError('Object store is not initialized') from e
    return store

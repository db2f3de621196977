"""Defines the files, nodes and policies handled by the data gateway."""

import re
from datetime import datetime, timedelta
from types import MappingProxyType
from typing import Iterable, Mapping, NamedTuple, Optional, Tuple

from pytz import UTC

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
INT64_MIN = -2 ** 63
INT64_MAX = 2 ** 63 - 1

_NANOSECONDS = re.compile(r'^[+-]?[0-9]+$')


class InvalidFileID(ValueError):
    """Raised when a request path does not identify a stored file."""


class InvalidPath(InvalidFileID):
    """The path does not have exactly four ``/``-delimited segments."""


class EmptySegment(InvalidFileID):
    """One of the path segments is empty."""


class MissingTimestampSeparator(InvalidFileID):
    """The filename segment has no ``-`` after its timestamp."""


class InvalidTimestamp(InvalidFileID):
    """The filename prefix is not a signed 64-bit nanosecond timestamp."""


class StorageFile(NamedTuple):
    """A single file produced by a task running on a node."""

    job_id: str
    """Job that scheduled the task."""

    task_id: str
    """Task (plugin instance) that produced the file."""

    node_id: str
    """Node on which the task ran, as given in the request path."""

    filename: str
    """
    Full filename segment, including its ``{timestamp}-`` prefix.

    This is the name under which the object is stored.
    """

    timestamp: datetime
    """Time at which the file was produced (UTC)."""


class NodePolicy(NamedTuple):
    """Access policy for the data of a single node."""

    node_id: str
    restricted: bool = True
    """If set, the node's data is never public."""

    commission_date: Optional[datetime] = None
    """Data recorded on or after this date is public. ``None`` means never."""

    retire_date: Optional[datetime] = None
    """Parsed from the node table but not used in access decisions."""


class Credential(NamedTuple):
    """A static username/password pair."""

    username: str
    password: str

    def __repr__(self) -> str:
        """Keep passwords out of logs and tracebacks."""
        return f'Credential(username={self.username!r}, password=***)'


class AuthorizerConfig(NamedTuple):
    """
    An immutable snapshot of everything the authorizer decides on.

    Use :meth:`AuthorizerConfig.create` to build one; it normalizes node IDs
    and freezes the containers so that a snapshot can be shared between
    threads without copying.
    """

    credentials: Tuple[Credential, ...] = ()
    nodes: Mapping[str, NodePolicy] = MappingProxyType({})
    restricted_task_substrings: Tuple[str, ...] = ()

    @classmethod
    def create(cls, credentials: Iterable[Credential] = (),
               nodes: Optional[Mapping[str, NodePolicy]] = None,
               restricted_task_substrings: Iterable[str] = ()
               ) -> 'AuthorizerConfig':
        """Build a normalized, read-only configuration snapshot."""
        return cls(
            credentials=tuple(credentials),
            nodes=freeze_nodes(nodes or {}),
            restricted_task_substrings=tuple(
                s for s in restricted_task_substrings if s
            )
        )

    def with_nodes(self, nodes: Mapping[str, NodePolicy]) -> 'AuthorizerConfig':
        """Copy of this snapshot with a different node table."""
        return self._replace(nodes=freeze_nodes(nodes))


def freeze_nodes(nodes: Mapping[str, NodePolicy]) -> Mapping[str, NodePolicy]:
    """Read-only copy of ``nodes`` keyed by lowercase node ID."""
    return MappingProxyType({
        node_id.lower(): policy for node_id, policy in nodes.items()
    })


def from_nanoseconds(nsec: int) -> datetime:
    """Convert a nanosecond Unix timestamp to an aware UTC datetime."""
    return EPOCH + timedelta(microseconds=nsec // 1000)


def to_nanoseconds(timestamp: datetime) -> int:
    """Convert an aware datetime to a nanosecond Unix timestamp."""
    delta = timestamp - EPOCH
    return ((delta.days * 86400 + delta.seconds) * 10 ** 6
            + delta.microseconds) * 1000


def parse_nanosecond_timestamp(value: str) -> datetime:
    """Parse a base-10, signed 64-bit count of nanoseconds since the epoch."""
    if not _NANOSECONDS.match(value):
        raise InvalidTimestamp(f'invalid syntax: {value!r}')
    nsec = int(value)
    if not INT64_MIN <= nsec <= INT64_MAX:
        raise InvalidTimestamp(f'value out of range: {value!r}')
    return from_nanoseconds(nsec)


def extract_timestamp(filename: str) -> datetime:
    """Get the timestamp encoded before the first dash of ``filename``."""
    prefix, sep, _ = filename.partition('-')
    if not sep:
        raise MissingTimestampSeparator('missing dash separator in filename')
    return parse_nanosecond_timestamp(prefix)


def parse_file_path(path: str) -> StorageFile:
    """
    Get the file identified by a request path.

    Parameters
    ----------
    path : str
        A path of the form ``{job}/{task}/{node}/{timestamp}-{name}``, where
        ``timestamp`` is in nanoseconds since the Unix epoch.

    Returns
    -------
    :class:`StorageFile`

    Raises
    ------
    :class:`InvalidFileID`
        If the path is malformed. The message is suitable for the client.

    """
    parts = path.split('/')
    if len(parts) != 4:
        raise InvalidPath(f'invalid path: {path!r}')

    job_id, task_id, node_id, filename = parts
    for label, value in (('job', job_id), ('task', task_id),
                         ('node', node_id), ('filename', filename)):
        if not value:
            raise EmptySegment(f'{label} must be nonempty')

    try:
        timestamp = extract_timestamp(filename)
    except InvalidFileID as e:
        raise type(e)(
            f'failed to extract timestamp from filename: {e}'
        ) from e

    return StorageFile(job_id=job_id, task_id=task_id, node_id=node_id,
                       filename=filename, timestamp=timestamp)

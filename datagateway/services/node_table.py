"""
Loads per-node access policies from the production node listing.

The listing is a JSON array of records such as::

    {"node_id": "000048B02D15BC7C", "files_public": true,
     "commission_date": "2021-06-01", "retire_date": ""}

Older listings carry ``restricted`` instead of ``files_public``. Records with
an unrecognizable node ID are dropped; records with a malformed date are kept
without that date. Only a failure to get or decode the listing as a whole is
an error.
"""

import logging
import re
import threading
from datetime import datetime
from typing import Any, Dict, Iterable, Optional

import requests
from flask import Flask
from pytz import UTC

from ..authorization import TableAuthorizer, split_list
from ..domain import NodePolicy

logger = logging.getLogger(__name__)

NODE_ID = re.compile(r'^[a-f0-9]{16}$')
DATE_FORMAT = '%Y-%m-%d'

_TRUE = {'true', 't', 'yes', 'y', '1'}
_FALSE = {'false', 'f', 'no', 'n', '0', ''}


class NodeTableError(RuntimeError):
    """The node table could not be retrieved or decoded."""


def get_node_table(url: str, timeout: float = 10.0,
                   force_restricted: Iterable[str] = ()
                   ) -> Dict[str, NodePolicy]:
    """
    Get the node policy table from ``url``.

    Parameters
    ----------
    url : str
        Location of the JSON node listing.
    timeout : float
        Seconds to wait for the remote service to connect and to respond.
    force_restricted : iterable
        Node IDs that are restricted regardless of the listing.

    Returns
    -------
    dict
        Policies keyed by lowercase node ID.

    Raises
    ------
    :class:`NodeTableError`

    """
    try:
        response = requests.get(url, timeout=timeout)
    except requests.RequestException as e:
        raise NodeTableError(f'failed to get node table: {e}') from e
    if not response.ok:
        raise NodeTableError(
            f'failed to get node table: {response.status_code} '
            f'{response.reason}'
        )
    try:
        items = response.json()
    except ValueError as e:
        raise NodeTableError(f'error when reading node table: {e}') from e
    return read_node_table(items, force_restricted=force_restricted)


def read_node_table(items: Any, force_restricted: Iterable[str] = ()
                    ) -> Dict[str, NodePolicy]:
    """Normalize a decoded node listing into a policy table."""
    if not isinstance(items, list):
        raise NodeTableError('error when reading node table: expected a list')
    forced = {node_id.lower() for node_id in force_restricted}

    nodes: Dict[str, NodePolicy] = {}
    for item in items:
        if not isinstance(item, dict):
            continue
        node_id = item.get('node_id')
        if not isinstance(node_id, str):
            continue
        node_id = node_id.lower()
        if not NODE_ID.match(node_id):
            continue

        nodes[node_id] = NodePolicy(
            node_id=node_id,
            restricted=node_id in forced or _restricted(node_id, item),
            commission_date=_parse_date(node_id, 'commission date',
                                        item.get('commission_date')),
            retire_date=_parse_date(node_id, 'retire date',
                                    item.get('retire_date'))
        )
    return nodes


def _restricted(node_id: str, item: Dict[str, Any]) -> bool:
    if 'restricted' in item:
        return _parse_flag(node_id, 'restricted', item['restricted'],
                           default=True)
    if 'files_public' in item:
        return not _parse_flag(node_id, 'files_public', item['files_public'],
                               default=False)
    return True


def _parse_flag(node_id: str, name: str, value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return default
    if str(value).strip().lower() in _TRUE:
        return True
    if str(value).strip().lower() in _FALSE:
        return False
    logger.warning('%s flag is invalid for node %s: %r', name, node_id, value)
    return default


def _parse_date(node_id: str, name: str, value: Any) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.strptime(str(value), DATE_FORMAT).replace(tzinfo=UTC)
    except ValueError:
        logger.warning('%s is invalid for node %s: %r', name, node_id, value)
        return None


class NodeTableRefresher:
    """
    Keeps the node table of a :class:`.TableAuthorizer` up to date.

    Runs in a daemon thread. After a failed refresh the previous table stays
    in effect and the next attempt comes after ``retry_interval`` instead of
    ``interval``.
    """

    def __init__(self, authorizer: TableAuthorizer, url: str,
                 interval: float = 60.0, retry_interval: float = 10.0,
                 timeout: float = 10.0,
                 force_restricted: Iterable[str] = ()) -> None:
        self.authorizer = authorizer
        self.url = url
        self.interval = interval
        self.retry_interval = retry_interval
        self.timeout = timeout
        self.force_restricted = tuple(force_restricted)
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def refresh(self) -> bool:
        """Load the node table once; return whether it was updated."""
        try:
            nodes = get_node_table(self.url, timeout=self.timeout,
                                   force_restricted=self.force_restricted)
        except NodeTableError as e:
            logger.error('Node table refresh failed: %s', e)
            return False
        self.authorizer.update_nodes(nodes)
        logger.info('Loaded %i nodes from %s', len(nodes), self.url)
        return True

    def next_delay(self, succeeded: bool) -> float:
        """Seconds to wait before the next refresh."""
        return self.interval if succeeded else self.retry_interval

    def run(self) -> None:
        """Refresh until stopped."""
        while not self._stop.is_set():
            # refresh() handles NodeTableError; anything else is a bug in
            # reading an unexpected listing and must not end the thread.
            try:
                succeeded = self.refresh()
            except Exception:
                logger.exception('Unexpected error refreshing node table')
                succeeded = False
            self._stop.wait(self.next_delay(succeeded))

    def start(self) -> None:
        """Start refreshing in the background."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self.run, daemon=True,
                                        name='node-table-refresher')
        self._thread.start()
        logger.info('Refreshing node table from %s every %ss',
                    self.url, self.interval)

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        """Stop refreshing and wait for the thread to finish."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    @property
    def running(self) -> bool:
        """Whether the background thread is alive."""
        return self._thread is not None and self._thread.is_alive()


def init_app(app: Flask) -> None:
    """Start refreshing the app's node table if a listing is configured."""
    url = app.config.get('NODE_TABLE_URL')
    if not url:
        logger.warning('NODE_TABLE_URL is not set; no node is public')
        return
    authorizer = app.extensions.get('authorizer')
    if not isinstance(authorizer, TableAuthorizer):
        raise RuntimeError('Node table requires a TableAuthorizer')
    refresher = NodeTableRefresher(
        authorizer,
        url,
        interval=float(app.config.get('NODE_TABLE_REFRESH_INTERVAL', 60)),
        retry_interval=float(app.config.get('NODE_TABLE_RETRY_INTERVAL', 10)),
        timeout=float(app.config.get('NODE_TABLE_TIMEOUT', 10)),
        force_restricted=split_list(
            app.config.get('POLICY_RESTRICTED_NODES', '')
        )
    )
    app.extensions['node_table_refresher'] = refresher
    refresher.start()

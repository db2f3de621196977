"""
Decides who may read which files.

The gateway asks a single question of an :class:`Authorizer`: may the holder
of these (optional) credentials read this file? The production
implementation, :class:`TableAuthorizer`, answers it from a snapshot of
static credentials and a table of per-node policies. The snapshot is replaced
wholesale whenever the node table is refreshed, so readers never see a
half-updated policy.

A file is readable without credentials ("policy-public") when its node is in
the table, is not restricted, has a commission date on or before the file's
timestamp, and the file's task does not match a restricted task substring.
Valid credentials grant access to everything.
"""

import hmac
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, List, Mapping, Optional

from flask import Flask, current_app

from .domain import AuthorizerConfig, Credential, NodePolicy, StorageFile

logger = logging.getLogger(__name__)


class Authorizer(ABC):
    """Decides whether a request may read a file."""

    @abstractmethod
    def authorized(self, f: StorageFile, username: str, password: str,
                   has_credentials: bool) -> bool:
        """Whether the (optional) credentials grant access to ``f``."""


class AllowAll(Authorizer):
    """Grants every request."""

    def authorized(self, f: StorageFile, username: str, password: str,
                   has_credentials: bool) -> bool:
        return True


class DenyAll(Authorizer):
    """Refuses every request."""

    def authorized(self, f: StorageFile, username: str, password: str,
                   has_credentials: bool) -> bool:
        return False


class TableAuthorizer(Authorizer):
    """
    Authorizes against static credentials and a table of node policies.

    The configuration is an immutable :class:`.AuthorizerConfig`. Writers
    swap the reference under a lock; readers take the reference once per
    call and evaluate entirely against it.
    """

    def __init__(self, config: Optional[AuthorizerConfig] = None) -> None:
        self._lock = threading.Lock()
        self._config = config

    def current_config(self) -> Optional[AuthorizerConfig]:
        """Get the configuration snapshot currently in effect."""
        with self._lock:
            return self._config

    def update_config(self, config: AuthorizerConfig) -> None:
        """Replace the configuration snapshot."""
        with self._lock:
            self._config = config

    def update_nodes(self, nodes: Mapping[str, NodePolicy]) -> None:
        """Replace the node table, keeping credentials and task rules."""
        with self._lock:
            config = self._config or AuthorizerConfig.create()
            self._config = config.with_nodes(nodes)

    def authorized(self, f: StorageFile, username: str, password: str,
                   has_credentials: bool) -> bool:
        config = self.current_config()
        if config is None:
            return False
        return (authenticated(config, username, password, has_credentials)
                or policy_public(config, f))


def authenticated(config: AuthorizerConfig, username: str, password: str,
                  has_credentials: bool) -> bool:
    """
    Check the supplied credentials against every configured credential.

    Username and password are both compared in constant time and the results
    combined bitwise, so the time taken does not depend on which of the two
    differed.
    """
    if not has_credentials:
        return False
    user = username.encode('utf-8')
    secret = password.encode('utf-8')
    matched = 0
    for credential in config.credentials:
        x = hmac.compare_digest(user, credential.username.encode('utf-8'))
        y = hmac.compare_digest(secret, credential.password.encode('utf-8'))
        matched |= int(x) & int(y)
    return matched == 1


def policy_public(config: AuthorizerConfig, f: StorageFile) -> bool:
    """Whether ``f`` may be read without credentials under ``config``."""
    node = config.nodes.get(f.node_id.lower())
    if node is None or node.restricted or node.commission_date is None:
        return False
    if f.timestamp < node.commission_date:
        return False
    return not any(s in f.task_id for s in config.restricted_task_substrings)


def parse_static_credentials(value: str) -> List[Credential]:
    """
    Parse a comma-delimited list of ``username:password`` pairs.

    The password may itself contain colons; the username may not.
    """
    credentials: List[Credential] = []
    if not value:
        return credentials
    for item in value.split(','):
        username, sep, password = item.partition(':')
        if not sep:
            raise ValueError('failed to parse static credentials')
        credentials.append(Credential(username, password))
    return credentials


def split_list(value: str) -> List[str]:
    """Split a comma-delimited config value, dropping blank items."""
    return [item.strip() for item in value.split(',') if item.strip()]


def config_from_app(config: Mapping[str, Any]) -> AuthorizerConfig:
    """Build the initial authorizer configuration from Flask config."""
    credentials = parse_static_credentials(
        config.get('STATIC_CREDENTIALS', '')
    )
    username = config.get('POLICY_RESTRICTED_USERNAME', '')
    password = config.get('POLICY_RESTRICTED_PASSWORD', '')
    if username and password:
        credentials.append(Credential(username, password))
    if not credentials:
        logger.warning('No static credentials configured')
    substrings = split_list(
        config.get('POLICY_RESTRICTED_TASK_SUBSTRINGS', '')
    )
    return AuthorizerConfig.create(credentials=credentials,
                                   restricted_task_substrings=substrings)


def init_app(app: Flask, authorizer: Optional[Authorizer] = None) -> None:
    """Attach the process-wide authorizer to ``app``."""
    if authorizer is None:
        authorizer = TableAuthorizer(config_from_app(app.config))
    app.extensions['authorizer'] = authorizer


def current_authorizer() -> Authorizer:
    """Get the authorizer for the current application."""
    try:
        authorizer: Authorizer = current_app.extensions['authorizer']
    except KeyError as e:
        raise RuntimeError('Authorizer is not initialized') from e
    return authorizer

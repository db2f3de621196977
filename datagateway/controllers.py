"""
Request handling for stored files.

Each request moves through parsing, authorization, fetching and responding,
stopping at the first failure. Failures are raised as
:mod:`werkzeug.exceptions`, which the application renders as JSON.
"""

import logging
from typing import Iterator

from flask import Request, Response, current_app, redirect
from werkzeug.exceptions import BadRequest, InternalServerError, NotFound, \
    Unauthorized

from .authorization import current_authorizer
from .domain import InvalidFileID, StorageFile, parse_file_path
from .metrics import BYTES_SENT
from .services.storage import ObjectNotFound, StorageError, StoredObject, \
    current_store

logger = logging.getLogger(__name__)


class BasicAuthRequired(Unauthorized):
    """Unauthorized, with a challenge for HTTP Basic credentials."""

    def __init__(self, domain: str, description: str = 'not authorized'
                 ) -> None:
        super().__init__(description)
        self.domain = domain

    def get_headers(self, *args, **kwargs):  # type: ignore
        headers = super().get_headers(*args, **kwargs)
        headers.append(('WWW-Authenticate', f'Basic domain={self.domain}'))
        return headers


def head_file(path: str, request: Request) -> Response:
    """Respond with the metadata of the file at ``path``."""
    f = _get_file(path, request)
    _authorize(f, request)
    try:
        info = current_store().head_object(storage_key(f))
    except StorageError as e:
        raise _storage_exception(e, request) from e

    response = Response(status=200)
    _set_disposition(response, f)
    if info.content_length is not None:
        response.headers['Content-Length'] = str(info.content_length)
    if info.content_language:
        response.headers['Content-Language'] = info.content_language
    return response


def get_file(path: str, request: Request) -> Response:
    """Respond with the contents of the file at ``path``."""
    f = _get_file(path, request)
    _authorize(f, request)
    if current_app.config.get('GET_STRATEGY', 'stream') == 'redirect':
        return _redirect_to_presigned(f, request)
    return _stream(f, request)


def storage_key(f: StorageFile) -> str:
    """Key under which ``f`` is stored in the bucket."""
    root = current_app.config.get('S3_ROOT_FOLDER', '').strip('/')
    parts = [f.job_id, f.task_id, f.node_id, f.filename]
    return '/'.join([root] + parts if root else parts)


def _describe(request: Request) -> str:
    return f'{request.method} {request.url} -> {request.remote_addr}'


def _get_file(path: str, request: Request) -> StorageFile:
    logger.info('%s: serving', _describe(request))
    try:
        return parse_file_path(path)
    except InvalidFileID as e:
        raise BadRequest(str(e)) from e


def _authorize(f: StorageFile, request: Request) -> None:
    auth = request.authorization
    if auth is not None and auth.type == 'basic':
        username = auth.username or ''
        password = auth.password or ''
        has_credentials = True
    else:
        username, password, has_credentials = '', '', False

    if current_authorizer().authorized(f, username, password,
                                       has_credentials):
        return
    logger.info('%s: not authorized', _describe(request))
    raise BasicAuthRequired(current_app.config.get('AUTH_DOMAIN', 'localhost'))


def _storage_exception(e: StorageError, request: Request) -> Exception:
    if isinstance(e, ObjectNotFound):
        logger.info('%s: not found', _describe(request))
        return NotFound('not found')
    logger.error('%s: s3 error: %s', _describe(request), e)
    return InternalServerError(f'internal server error with S3 request: {e}')


def _set_disposition(response: Response, f: StorageFile) -> None:
    response.headers['Content-Disposition'] = \
        f'attachment; filename={f.filename}'


def _redirect_to_presigned(f: StorageFile, request: Request) -> Response:
    ttl = int(current_app.config.get('PRESIGN_TTL', 60))
    try:
        url = current_store().presign_get_url(storage_key(f), ttl)
    except StorageError as e:
        raise _storage_exception(e, request) from e
    response = redirect(url, code=307)
    _set_disposition(response, f)
    return response


def _stream(f: StorageFile, request: Request) -> Response:
    try:
        obj = current_store().get_object(storage_key(f))
    except StorageError as e:
        raise _storage_exception(e, request) from e

    response = Response(_copy(obj, _describe(request)),
                        mimetype='application/octet-stream')
    response.call_on_close(obj.close)
    _set_disposition(response, f)
    if obj.content_length is not None:
        response.headers['Content-Length'] = str(obj.content_length)
    return response


def _copy(obj: StoredObject, description: str) -> Iterator[bytes]:
    """Yield the object body, counting bytes even if the client goes away."""
    sent = 0
    try:
        for chunk in obj.iter_chunks():
            sent += len(chunk)
            yield chunk
    finally:
        BYTES_SENT.inc(sent)
        logger.info('%s: sent %i bytes', description, sent)

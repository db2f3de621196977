"""Routes for the data gateway."""

from flask import Blueprint, Response, current_app, jsonify, request
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from werkzeug.routing import PathConverter

from . import controllers
from .metrics import RESPONSES

DATA_PREFIX = '/api/v1/data/'
SERVICE_ID = 'SAGE object store (node data)'


class FilePathConverter(PathConverter):
    """Like ``path``, but an empty or slash-led value matches too."""

    regex = '.*?'
    part_isolating = False


blueprint = Blueprint('datagateway', __name__, url_prefix='')


@blueprint.after_app_request
def add_headers(response: Response) -> Response:
    """Allow cross-origin reads and count data responses."""
    response.headers['Access-Control-Allow-Origin'] = '*'
    if request.path.startswith(DATA_PREFIX):
        RESPONSES.labels(request.method, response.status_code).inc()
    return response


@blueprint.route('/', methods=['GET'])
def discover() -> Response:
    """Show what is available under ``/``."""
    return jsonify({
        'id': SERVICE_ID,
        'available_resources': ['api/v1/'],
        'version': current_app.config.get('VERSION'),
    })


@blueprint.route('/api/v1/', methods=['GET'])
def discover_v1() -> Response:
    """Show what is available under ``/api/v1/``."""
    return jsonify({'id': SERVICE_ID, 'available_resources': ['data/']})


@blueprint.route('/api/v1/data/<filepath:file_path>', methods=['GET', 'HEAD'],
                 merge_slashes=False)
def serve_file(file_path: str) -> Response:
    """Get a stored file, or only its metadata for ``HEAD``."""
    if request.method == 'HEAD':
        return controllers.head_file(file_path, request)
    return controllers.get_file(file_path, request)


@blueprint.route('/metrics', methods=['GET'])
def metrics() -> Response:
    """Prometheus metrics."""
    return Response(generate_latest(), content_type=CONTENT_TYPE_LATEST)

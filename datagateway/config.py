"""Flask configuration for the data gateway."""

import os

VERSION = os.environ.get('VERSION', '0.1.0')

LOGLEVEL = os.environ.get('LOGLEVEL', 'INFO')

STORAGE_BACKEND = os.environ.get('STORAGE_BACKEND', 's3')
"""Either ``s3``, or ``memory`` for an empty in-process store (dev only)."""

S3_ENDPOINT = os.environ.get('S3_ENDPOINT')
S3_ACCESS_KEY_ID = os.environ.get('S3_ACCESS_KEY_ID')
S3_SECRET_ACCESS_KEY = os.environ.get('S3_SECRET_ACCESS_KEY')
S3_BUCKET = os.environ.get('S3_BUCKET')
S3_REGION = os.environ.get('S3_REGION', 'us-west-2')
S3_ROOT_FOLDER = os.environ.get('S3_ROOT_FOLDER', '')
"""Prefix of all keys served by the gateway."""

STORAGE_TIMEOUT = float(os.environ.get('STORAGE_TIMEOUT', '30'))

GET_STRATEGY = os.environ.get('GET_STRATEGY', 'stream')
"""
How GET requests are fulfilled.

``stream`` proxies the object body; ``redirect`` sends the client to a
pre-signed URL that is valid for ``PRESIGN_TTL`` seconds.
"""

PRESIGN_TTL = int(os.environ.get('PRESIGN_TTL', '60'))

STATIC_CREDENTIALS = os.environ.get('STATIC_CREDENTIALS', '')
"""Comma-delimited ``username:password`` pairs that may read everything."""

POLICY_RESTRICTED_USERNAME = os.environ.get('POLICY_RESTRICTED_USERNAME', '')
POLICY_RESTRICTED_PASSWORD = os.environ.get('POLICY_RESTRICTED_PASSWORD', '')

POLICY_RESTRICTED_TASK_SUBSTRINGS = \
    os.environ.get('POLICY_RESTRICTED_TASK_SUBSTRINGS', '')
"""Comma-delimited; tasks containing any of these are never public."""

POLICY_RESTRICTED_NODES = os.environ.get('POLICY_RESTRICTED_NODES', '')
"""Comma-delimited node IDs that are never public."""

NODE_TABLE_URL = os.environ.get('NODE_TABLE_URL', '')
"""Node listing to load policies from. If unset, no node is public."""

NODE_TABLE_REFRESH_INTERVAL = \
    float(os.environ.get('NODE_TABLE_REFRESH_INTERVAL', '60'))
NODE_TABLE_RETRY_INTERVAL = \
    float(os.environ.get('NODE_TABLE_RETRY_INTERVAL', '10'))
NODE_TABLE_TIMEOUT = float(os.environ.get('NODE_TABLE_TIMEOUT', '10'))

AUTH_DOMAIN = os.environ.get('AUTH_DOMAIN', 'localhost')
"""Domain given in the ``WWW-Authenticate`` challenge."""

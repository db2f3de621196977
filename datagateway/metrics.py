"""Prometheus metrics exported on ``/metrics``."""

from prometheus_client import Counter

BYTES_SENT = Counter(
    'datagateway_bytes_sent',
    'Bytes of object data sent to clients.'
)
RESPONSES = Counter(
    'datagateway_responses',
    'Responses to data requests, by method and status code.',
    ['method', 'code']
)

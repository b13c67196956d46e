from prometheus_client import Histogram, Counter, generate_latest, CONTENT_TYPE_LATEST
from flask import Response

REQUEST_LATENCY = Histogram(
    "burnbox_request_latency_seconds", "Request latency seconds", ["endpoint"],
    buckets=(.01, .05, .1, .5, 1, 2, 5, 10, 20, 30, 60, 120)
)
REQUEST_COUNT = Counter(
    "burnbox_requests_total", "Total requests", ["method", "endpoint", "http_status"]
)
REDIS_OPS = Counter(
    "burnbox_redis_operations_total", "Count of Redis operations by type", ["op"]
)

def metrics_response():
    return Response(generate_latest(), mimetype=CONTENT_TYPE_LATEST)

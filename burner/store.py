"""
List store backed by Redis. Every call is counted in burnbox_redis_operations_total.
"""
import redis

from burner.prometheus_metrics import REDIS_OPS


class ListStore:
    def __init__(self, client):
        self.client = client

    @classmethod
    def from_config(cls, cfg):
        rc = cfg.get("redis", {})
        pool = redis.ConnectionPool(
            host=rc.get("host", "localhost"),
            port=rc.get("port", 6379),
            socket_timeout=rc.get("socket_timeout", 5),
            decode_responses=True,
        )
        return cls(redis.Redis(connection_pool=pool))

    def members(self, key):
        REDIS_OPS.labels(op="lrange").inc()
        return self.client.lrange(key, 0, -1)

    def push(self, key, value):
        REDIS_OPS.labels(op="rpush").inc()
        return self.client.rpush(key, value)

    def info(self):
        REDIS_OPS.labels(op="info").inc()
        return self.client.info()

    def ping(self):
        REDIS_OPS.labels(op="ping").inc()
        return self.client.ping()

    def close(self):
        self.client.close()

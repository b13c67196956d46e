#!/usr/bin/env python3
"""
burnbox HTTP service.

- /burn?seconds=20&workers=<cpus>&mem_mb=0 generates CPU load (plus optional
  memory pressure) for HPA testing and answers {"ok":true} once every worker stopped
- /lrange, /rpush, /info, /healthz talk to Redis
- /env dumps the process environment, /metrics serves Prometheus metrics
"""
import argparse
import json
import logging
import multiprocessing
import os
import signal
import threading
import time

import redis
from flask import Flask, Response, g, request
from werkzeug.exceptions import HTTPException

from burner import burn
from burner.config import load_config
from burner.prometheus_metrics import REQUEST_COUNT, REQUEST_LATENCY, metrics_response
from burner.store import ListStore

logger = logging.getLogger(__name__)


class ServiceContext:
    """Process-wide state handed to the handlers that need it."""

    def __init__(self, store, limits, mp_context, cancel):
        self.store = store
        self.limits = limits
        self.mp_context = mp_context
        # set on shutdown; every running burn stops its workers when it sees it
        self.cancel = cancel


def _format_info(info):
    lines = []
    for k, v in info.items():
        if isinstance(v, dict):
            v = ",".join(f"{ik}={iv}" for ik, iv in v.items())
        lines.append(f"{k}:{v}")
    return "\n".join(lines) + "\n"


def create_app(cfg=None, store=None, cancel=None):
    cfg = cfg or load_config()
    mp_context = multiprocessing.get_context(cfg["burn"]["start_method"])
    ctx = ServiceContext(
        store=store if store is not None else ListStore.from_config(cfg),
        limits=cfg["burn"],
        mp_context=mp_context,
        cancel=cancel if cancel is not None else threading.Event(),
    )

    app = Flask(__name__)
    app.extensions["burnbox"] = ctx

    @app.before_request
    def start_timer():
        g.started = time.perf_counter()

    @app.after_request
    def record(response):
        endpoint = request.url_rule.rule if request.url_rule else "unmatched"
        elapsed = time.perf_counter() - g.get("started", time.perf_counter())
        REQUEST_LATENCY.labels(endpoint=endpoint).observe(elapsed)
        REQUEST_COUNT.labels(request.method, endpoint, response.status_code).inc()
        logger.info("[http] %s %s -> %d in %.3fs",
                    request.method, request.full_path.rstrip("?"), response.status_code, elapsed)
        return response

    @app.errorhandler(Exception)
    def internal_error(e):
        if isinstance(e, HTTPException):
            return e
        logger.exception("[http] %s %s failed", request.method, request.path)
        return Response(str(e), status=500, mimetype="text/plain")

    def json_response(obj):
        return Response(json.dumps(obj, indent=2), mimetype="application/json")

    @app.route("/burn")
    def burn_handler():
        load = burn.resolve(request.args, limits=ctx.limits)
        burn.burn(load, cancel=ctx.cancel, ctx=ctx.mp_context)
        return Response('{"ok":true}', mimetype="application/json")

    @app.route("/lrange/<key>")
    def list_range(key):
        return json_response(ctx.store.members(key))

    @app.route("/rpush/<key>/<value>")
    def list_push(key, value):
        ctx.store.push(key, value)
        return list_range(key)

    @app.route("/info")
    def info():
        return Response(_format_info(ctx.store.info()), mimetype="text/plain; charset=utf-8")

    @app.route("/env")
    def env():
        return json_response(dict(os.environ))

    @app.route("/healthz")
    def healthz():
        try:
            ctx.store.ping()
        except redis.RedisError as e:
            return Response(str(e), status=500, mimetype="text/plain")
        return Response(status=200)

    @app.route("/metrics")
    def metrics():
        return metrics_response()

    return app


def main(argv=None):
    parser = argparse.ArgumentParser(description="burnbox load generator service")
    parser.add_argument("--config", default=os.getenv("BURNBOX_CONFIG"))
    args = parser.parse_args(argv)

    cfg = load_config(args.config)
    logging.basicConfig(level=cfg["log_level"],
                        format="%(asctime)s %(levelname)s %(name)s %(message)s")

    app = create_app(cfg)
    ctx = app.extensions["burnbox"]

    def shutdown(signum, frame):
        logger.info("[burnbox] signal %d received, cancelling running burns", signum)
        ctx.cancel.set()
        raise SystemExit(0)

    signal.signal(signal.SIGTERM, shutdown)
    signal.signal(signal.SIGINT, shutdown)

    logger.info("[burnbox] listening on :%d, redis at %s:%d",
                cfg["port"], cfg["redis"]["host"], cfg["redis"]["port"])
    try:
        app.run(host="0.0.0.0", port=cfg["port"], threaded=True)
    finally:
        ctx.store.close()


if __name__ == "__main__":
    main()

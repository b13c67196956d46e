#!/usr/bin/env python3
"""
Driver that reads a CSV schedule and replays it as /burn calls against a burnbox service.
CSV format: seconds,workers,mem_mb,concurrency,pause
Empty or missing burn columns are left out of the query so the service applies its defaults.
"""
import argparse
import csv
import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor

import requests

from burner.burn import DEFAULT_SECONDS

logger = logging.getLogger(__name__)

BURN_ENDPOINT = os.getenv("BURN_ENDPOINT", "http://localhost:3000/burn")
BURN_SCHEDULE = os.getenv("BURN_SCHEDULE", "schedule.csv")
SLACK_SEC = float(os.getenv("DRIVER_SLACK", "10"))

BURN_PARAMS = ("seconds", "workers", "mem_mb")


def burn_params(row):
    return {k: row[k].strip() for k in BURN_PARAMS if (row.get(k) or "").strip()}


def expected_seconds(params):
    try:
        return max(1, int(params.get("seconds", DEFAULT_SECONDS)))
    except ValueError:
        return DEFAULT_SECONDS


def call_burn(params, endpoint=BURN_ENDPOINT, slack=SLACK_SEC):
    start = time.monotonic()
    r = requests.get(endpoint, params=params, timeout=expected_seconds(params) + slack)
    r.raise_for_status()
    return time.monotonic() - start


def replay_row(row, endpoint=BURN_ENDPOINT, slack=SLACK_SEC):
    """Fire `concurrency` simultaneous calls for one row; returns (ok, failed)."""
    params = burn_params(row)
    concurrency = max(1, int(row.get("concurrency") or 1))
    ok = failed = 0
    with ThreadPoolExecutor(max_workers=concurrency) as pool:
        futures = [pool.submit(call_burn, params, endpoint, slack) for _ in range(concurrency)]
        for f in futures:
            try:
                took = f.result()
                ok += 1
                logger.info("[driver] burn %s done in %.2fs", params, took)
            except requests.RequestException as e:
                failed += 1
                logger.warning("[driver] burn %s failed: %s", params, e)
    return ok, failed


def replay_once(path=BURN_SCHEDULE, endpoint=BURN_ENDPOINT, slack=SLACK_SEC):
    if not os.path.exists(path):
        logger.error("[driver] no schedule found at %s", path)
        return 0, 0
    ok = failed = 0
    with open(path) as f:
        for row in csv.DictReader(f):
            row_ok, row_failed = replay_row(row, endpoint, slack)
            ok += row_ok
            failed += row_failed
            time.sleep(float(row.get("pause") or 0))
    logger.info("[driver] schedule %s finished: %d ok, %d failed", path, ok, failed)
    return ok, failed


def main(argv=None):
    parser = argparse.ArgumentParser(description="replay a /burn schedule")
    parser.add_argument("--schedule", default=BURN_SCHEDULE)
    parser.add_argument("--endpoint", default=BURN_ENDPOINT)
    parser.add_argument("--slack", type=float, default=SLACK_SEC)
    parser.add_argument("--loop", action="store_true", help="repeat the schedule forever")
    args = parser.parse_args(argv)

    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"),
                        format="%(asctime)s %(levelname)s %(name)s %(message)s")
    while True:
        replay_once(args.schedule, args.endpoint, args.slack)
        if not args.loop:
            break


if __name__ == "__main__":
    main()

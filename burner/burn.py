"""
Synthetic CPU / memory load for exercising autoscalers.

- resolve(): turn raw query args into a LoadRequest (defaults + clamps, never fails)
- allocate(): commit mem_mb MiB of physical memory by touching every page
- burn(): run `workers` busy-loop processes until one shared deadline, then wait
  for every one of them to report back before returning
"""
import logging
import math
import multiprocessing
import os
import queue
import re
import time
from collections import namedtuple

logger = logging.getLogger(__name__)

DEFAULT_SECONDS = 20
DEFAULT_MEM_MB = 0

BLOCK_SIZE = 1024 * 1024
PAGE_SIZE = 4096

EPSILON = 0.0001
RESET_AT = 1e9

# how often the barrier wakes up to look for workers that died without signalling
LIVENESS_POLL_S = 0.2

LoadRequest = namedtuple("LoadRequest", ["seconds", "workers", "mem_mb"])


class WorkerLost(RuntimeError):
    """A worker process exited without emitting its completion signal."""


def available_cpus():
    try:
        return len(os.sched_getaffinity(0))
    except AttributeError:
        return os.cpu_count() or 1


# same accepted range and syntax as Go's strconv.Atoi on 64-bit hosts
INT_PATTERN = re.compile(r"[+-]?[0-9]+", re.ASCII)
INT_MIN = -(2 ** 63)
INT_MAX = 2 ** 63 - 1


def _int_or(raw, default):
    if not isinstance(raw, str) or not INT_PATTERN.fullmatch(raw):
        return default
    value = int(raw)
    if not INT_MIN <= value <= INT_MAX:
        return default
    return value


def _cap(value, limit):
    if limit is None:
        return value
    return min(value, limit)


def resolve(args, cpu_count=None, limits=None):
    """Build a LoadRequest from raw string args (e.g. request.args).

    Missing or unparseable fields take their defaults (20s, one worker per
    available CPU, no memory); values under the floor are raised to it.
    `limits` may carry max_seconds / max_workers / max_mem_mb caps; a None cap
    leaves the field unbounded.
    """
    limits = limits or {}
    if cpu_count is None:
        cpu_count = available_cpus()

    seconds = max(1, _int_or(args.get("seconds"), DEFAULT_SECONDS))
    workers = max(1, _int_or(args.get("workers"), cpu_count))
    mem_mb = max(0, _int_or(args.get("mem_mb"), DEFAULT_MEM_MB))

    return LoadRequest(
        seconds=max(1, _cap(seconds, limits.get("max_seconds"))),
        workers=max(1, _cap(workers, limits.get("max_workers"))),
        mem_mb=max(0, _cap(mem_mb, limits.get("max_mem_mb"))),
    )


def allocate(mem_mb):
    """Allocate mem_mb 1 MiB blocks, writing one byte per page so the kernel
    has to back every page before we return."""
    touch = b"\x01" * (BLOCK_SIZE // PAGE_SIZE)
    blocks = []
    for _ in range(mem_mb):
        block = bytearray(BLOCK_SIZE)
        block[::PAGE_SIZE] = touch
        blocks.append(block)
    return blocks


class Deadline:
    """One expiry instant shared by every worker of a request.

    time.monotonic() is system-wide, so the value survives the trip into a
    worker process unchanged. `stopped` is a lock-free shared byte owned by
    this request alone; the coordinator raises it to end the request early.
    Workers only ever read the float and the byte.
    """

    def __init__(self, seconds, ctx=None):
        self.expires_at = time.monotonic() + seconds
        self.stopped = (ctx or multiprocessing).RawValue("b", 0)

    def stop(self):
        self.stopped.value = 1

    def expired(self):
        return self.stopped.value != 0 or time.monotonic() >= self.expires_at

    def remaining(self):
        return max(0.0, self.expires_at - time.monotonic())


def spin(index, deadline, done):
    """Worker body: burn CPU until the deadline, then signal exactly once."""
    x = EPSILON
    while not deadline.expired():
        x += math.sqrt(x)
        if x > RESET_AT:
            x = EPSILON
    done.put(index)


class CompletionBarrier:
    """Waits for exactly `expected` completion signals on one channel."""

    def __init__(self, expected, ctx):
        self.expected = expected
        self.channel = ctx.Queue()

    def _lost(self, workers, received):
        return [i for i, w in enumerate(workers) if i not in received and not w.is_alive()]

    def wait(self, workers=(), on_idle=None):
        """Block until every signal arrived; returns how many were received.

        While the channel is idle, `on_idle` is called and `workers`
        (indexable by signal index) is checked, to fail instead of hanging
        if a worker was killed.
        """
        received = set()
        while len(received) < self.expected:
            try:
                received.add(self.channel.get(timeout=LIVENESS_POLL_S))
                continue
            except queue.Empty:
                pass
            if on_idle is not None:
                on_idle()
            if not self._lost(workers, received):
                continue
            # a worker that exited right after signalling may still be in flight
            try:
                while True:
                    received.add(self.channel.get(timeout=LIVENESS_POLL_S))
            except queue.Empty:
                pass
            lost = self._lost(workers, received)
            if lost:
                raise WorkerLost(f"workers {lost} exited without signalling completion")
        return len(received)


def burn(load, cancel=None, ctx=None):
    """Run one load request to completion and return the number of workers
    that reported back (always load.workers).

    `cancel` is the caller's in-process cancellation event (threading.Event);
    it is only looked at by this coordinator, never by the workers.
    """
    if ctx is None:
        ctx = multiprocessing.get_context("spawn")

    started = time.monotonic()
    junk = allocate(load.mem_mb)
    logger.info("[burn] seconds=%d workers=%d mem_mb=%d (%d blocks touched)",
                load.seconds, load.workers, load.mem_mb, len(junk))

    deadline = Deadline(load.seconds, ctx)
    barrier = CompletionBarrier(load.workers, ctx)
    procs = [
        ctx.Process(target=spin, args=(i, deadline, barrier.channel), daemon=True)
        for i in range(barrier.expected)
    ]

    def forward_cancel():
        if cancel is not None and cancel.is_set():
            deadline.stop()

    try:
        for p in procs:
            p.start()
        received = barrier.wait(procs, on_idle=forward_cancel)
    finally:
        deadline.stop()
        for p in procs:
            if p.pid is not None:
                p.join()
        barrier.channel.close()

    logger.info("[burn] %d/%d workers stopped after %.2fs",
                received, barrier.expected, time.monotonic() - started)
    del junk
    return received

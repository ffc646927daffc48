"""Timing helpers for pipeline stages."""
import logging
import time
from contextlib import contextmanager
from functools import wraps
from typing import Dict, Optional

def _now():
    return time.perf_counter()

@contextmanager
def section_timer(name: str, logger: logging.Logger, sink: Optional[Dict[str, float]] = None):
    """Time a section; the duration is also added to ``sink[name]`` when given."""
    t0 = _now()
    try:
        yield
    finally:
        dt = _now() - t0
        if sink is not None:
            sink[name] = sink.get(name, 0.0) + dt
        logger.debug("TIMER %s took %.3f s", name, dt)

def timeit(logger: logging.Logger, name: str | None = None):
    """Time a specific operation"""
    def deco(fn):
        label = name or fn.__qualname__
        @wraps(fn)
        def wrapper(*args, **kwargs):
            t0 = _now()
            try:
                return fn(*args, **kwargs)
            finally:
                dt = _now() - t0
                logger.info("TIMER %s took %.3f s", label, dt)
        return wrapper
    return deco

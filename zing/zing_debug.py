"""
Opt-in trace output for the interpreter.

Tracing is off unless `activate()` is called or ZING_DEBUG is set in the
environment. Lines are written to stderr prefixed with the time elapsed since
activation.
"""
import os
import sys
import time
from typing import Optional

_active = False
_started: Optional[float] = None


def activate():
    global _active, _started
    _active = True
    _started = time.monotonic()


def deactivate():
    global _active, _started
    _active = False
    _started = None


def is_active() -> bool:
    return _active or bool(os.environ.get("ZING_DEBUG"))


def _elapsed_str() -> str:
    if _started is None:
        return ""
    elapsed_ms = int((time.monotonic() - _started) * 1000)
    ms = elapsed_ms % 1000
    seconds = (elapsed_ms // 1000) % 60
    minutes = (elapsed_ms // 60_000) % 60
    hours = elapsed_ms // 3_600_000
    return f"[{hours}:{minutes:02}:{seconds:02}.{ms:03}] "


def dbg(*parts):
    """Write one trace line to stderr when tracing is active."""
    if not is_active():
        return
    try:
        print("[DBG]", f"{_elapsed_str()}--", *parts, file=sys.stderr)
    except Exception:
        pass

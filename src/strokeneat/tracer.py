"""
Hierarchical runtime tracing for the stroke beautification engine.

Provides structured, nested logging with timing information so a single
beautification call (fit, candidate search, solves, projections) can be
followed without stepping through code.
"""

import dataclasses
import functools
import hashlib
import inspect
import json
import sys
import time
from contextlib import contextmanager
from datetime import datetime
from typing import NamedTuple

import networkx as nx
import numpy as np
from pydantic import BaseModel


class TracerConfig:
    """Configuration for the tracer."""

    def __init__(self):
        self.enabled = False
        self.level = "INFO"
        self.file_path = None
        self.json_output = False
        self._file_handle = None

    def configure(self, enabled=False, level="INFO", file_path=None, json_output=False):
        """Configure tracer settings."""
        self.enabled = enabled
        self.level = level.upper()
        self.file_path = file_path
        self.json_output = json_output

        if self._file_handle:
            self._file_handle.close()
            self._file_handle = None

        if file_path and enabled:
            self._file_handle = open(file_path, "w", encoding="utf-8")

    def close(self):
        """Close file handle if open."""
        if self._file_handle:
            self._file_handle.close()
            self._file_handle = None


class _Span(NamedTuple):
    name: str
    module: str
    started: float


def _format_meta(meta):
    return " ".join(f"{k}={summarize(v)}" for k, v in meta.items())


class Tracer:
    """
    Hierarchical tracer for structured engine logging.

    Supports nested spans with timing, argument summarization, and
    text or JSON-lines output. Nesting depth is the number of open spans.
    """

    LEVELS = {"ERROR": 0, "WARN": 1, "INFO": 2, "DEBUG": 3}

    def __init__(self):
        self.config = TracerConfig()
        self._spans = []

    @property
    def depth(self):
        return len(self._spans)

    def _should_log(self, level):
        if not self.config.enabled:
            return False
        return self.LEVELS.get(level, 2) <= self.LEVELS.get(self.config.level, 2)

    def _format_timestamp(self):
        """Format current time as HH:MM:SS.mmm."""
        now = datetime.now()
        return now.strftime("%H:%M:%S.") + f"{now.microsecond // 1000:03d}"

    def _emit(self, line):
        print(line, file=sys.stderr)
        handle = self.config._file_handle
        if handle:
            handle.write(line + "\n")
            handle.flush()

    def _write(self, level, module, func, message, meta=None):
        if not self._should_log(level):
            return

        timestamp = self._format_timestamp()
        location = f"{module}:{func}" if func else module
        self._emit(f"{timestamp} {level:<5} {'  ' * self.depth}{location}  {message}")

        if self.config.json_output:
            self._emit(json.dumps({
                "timestamp": timestamp,
                "level": level,
                "depth": self.depth,
                "module": module,
                "function": func,
                "message": message,
                "meta": {k: summarize(v) for k, v in (meta or {}).items()},
            }))

    def _close_span(self):
        span = self._spans.pop()
        return span, (time.perf_counter() - span.started) * 1000

    @contextmanager
    def span(self, name, module="", **meta):
        """
        Context manager for a traced span.

        Logs start and end with timing information. A failing span is
        logged at ERROR and the exception is re-raised.
        """
        if not self.config.enabled:
            yield
            return

        self._write("INFO", module, name, f"start {_format_meta(meta)}".strip(), meta)
        self._spans.append(_Span(name, module, time.perf_counter()))

        try:
            yield
        except Exception as e:
            _, elapsed = self._close_span()
            self._write("ERROR", module, name, f"failed dt={elapsed:.0f}ms error={type(e).__name__}: {str(e)[:100]}")
            raise

        _, elapsed = self._close_span()
        self._write("INFO", module, name, f"end ok dt={elapsed:.0f}ms")

    def event(self, message, level="INFO", **meta):
        """Log a one-off event within the current span."""
        if not self._should_log(level):
            return

        current = self._spans[-1] if self._spans else _Span("", "", 0.0)
        self._write(level, current.module, current.name, f"{message} {_format_meta(meta)}".strip(), meta)


def summarize(obj, max_len=200):
    """
    Summarize an object for logging.

    Returns a compact string representation that never exceeds max_len chars.
    3D points print as coordinates; larger arrays as dtype, shape and a content
    hash. Objects with a summary() method (curves, strokes) describe
    themselves; constraints, curve points, pydantic models, networkx graphs
    and the usual builtins get their own short forms.
    """
    try:
        result = _summarize_impl(obj)
        if len(result) > max_len:
            return result[:max_len - 3] + "..."
        return result
    except Exception:
        return f"<{type(obj).__name__}>"


def _format_point(p):
    return "[" + ",".join(f"{float(c):.4g}" for c in p) + "]"


def _summarize_impl(obj):
    """Implementation of summarize without length capping."""
    type_name = type(obj).__name__

    match obj:
        case None:
            return "None"

        case np.ndarray() if obj.shape == (3,):
            return _format_point(obj)

        case np.ndarray():
            shape_str = "x".join(str(s) for s in obj.shape)
            content = obj.tobytes() if 0 < obj.size < 1000 else str(obj.shape).encode()
            return f"ndarray({obj.dtype},{shape_str},h={hashlib.md5(content).hexdigest()[:8]})"

        case np.generic():
            return _summarize_impl(obj.item())

        case _ if callable(getattr(obj, "summary", None)):
            return obj.summary()

        case nx.Graph():
            return f"{type_name}(nodes={obj.number_of_nodes()},edges={obj.number_of_edges()})"

        case BaseModel():
            fields = list(type(obj).model_fields.keys())[:3]
            return f"{type_name}(fields={fields}...)"

        case _ if dataclasses.is_dataclass(obj) and hasattr(obj, "position"):
            # constraint records
            return f"{type_name}(position={_format_point(obj.position)})"

        case tuple() if hasattr(obj, "_fields"):
            parts = [
                f"{name}={_summarize_impl(value)}"
                for name, value in zip(obj._fields, obj)
                if isinstance(value, (int, float, np.ndarray))
            ]
            return f"{type_name}({','.join(parts)})"

        case str() if len(obj) > 50:
            return f"str(len={len(obj)},h={hashlib.md5(obj.encode()).hexdigest()[:8]})"

        case str():
            return repr(obj)

        case bytes():
            return f"bytes(len={len(obj)},h={hashlib.md5(obj).hexdigest()[:8]})"

        case list() | tuple() | frozenset() | set() if len(obj) == 0:
            return f"{type_name}(len=0)"

        case list() | tuple() | frozenset() | set():
            first_type = type(next(iter(obj))).__name__
            return f"{type_name}(len={len(obj)},first={first_type})"

        case dict():
            keys_str = ",".join(str(k) for k in list(obj.keys())[:5])
            return f"dict(len={len(obj)},keys=[{keys_str}])"

        case bool() | int():
            return str(obj)

        case float():
            return f"{obj:.6g}"

    return f"<{type_name}>"


def trace(label=None, arg_names=None):
    """
    Decorator to trace function execution.

    Wraps a function in a span that logs start/end with timing. Arguments
    listed in arg_names are summarized into the start line, whether passed
    by position or by keyword.
    """
    def decorator(func):
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            if not _tracer.config.enabled:
                return func(*args, **kwargs)

            func_module = func.__module__.split(".")[-1] if func.__module__ else ""
            func_name = label or func.__name__

            meta = {}
            if arg_names:
                bound = signature.bind_partial(*args, **kwargs).arguments
                meta = {name: bound[name] for name in arg_names if name in bound}

            with _tracer.span(func_name, module=func_module, **meta):
                return func(*args, **kwargs)

        return wrapper
    return decorator


# Global tracer instance
_tracer = Tracer()


def get_tracer():
    """Get the global tracer instance."""
    return _tracer


def configure_tracer(enabled=False, level="INFO", file_path=None, json_output=False):
    """Configure the global tracer."""
    _tracer.config.configure(
        enabled=enabled,
        level=level,
        file_path=file_path,
        json_output=json_output,
    )

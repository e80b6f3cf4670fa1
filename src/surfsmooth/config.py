"""Global configuration for the surfsmooth kernels.

This module provides a package-wide configuration surface: the logging level
of the ``surfsmooth`` logger, the floating dtype of kernel outputs and the
snapping tolerance used by the triangle interpolator. Settings are read from
the environment at import time and can be changed programmatically with
:func:`configure` or temporarily with the :func:`use` context manager.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
import contextlib
import logging
import math
import os
from typing import Any, ContextManager, Iterator, Optional

import numpy as np


# -----------------------------------------------------------------------------
# Logging
# -----------------------------------------------------------------------------
_PACKAGE_LOGGER = logging.getLogger("surfsmooth")
_LOGGER = logging.getLogger(__name__)


def _parse_log_level(val: str | int | None, default: int = logging.WARNING) -> int:
    """Parse a logging level string or int into a `logging` level constant.

    Args:
        val: The desired level (e.g., "DEBUG", 10). May be None.
        default: Fallback level if `val` cannot be parsed.

    Returns:
        An integer logging level (e.g., logging.DEBUG).
    """
    if val is None:
        return default
    if isinstance(val, int):
        return val
    lvl = getattr(logging, str(val).strip().upper(), None)
    if isinstance(lvl, int):
        return lvl
    return default


def set_log_level(level: str | int = "WARNING") -> None:
    """Set the level of the package logger programmatically.

    Args:
        level: A standard logging level name or integer.
    """
    _PACKAGE_LOGGER.setLevel(_parse_log_level(level))


# Default level can be overridden by env.
set_log_level(os.getenv("SURFSMOOTH_LOGLEVEL", "WARNING"))


# -----------------------------------------------------------------------------
# Env helpers
# -----------------------------------------------------------------------------
def float_env(varname: str, default: float) -> float:
    """Read an environment variable and interpret it as a float.

    Raises:
        ValueError: If the value cannot be parsed as a float.
    """
    raw = os.getenv(varname)
    if raw is None or not raw.strip():
        return float(default)
    try:
        return float(raw)
    except ValueError:
        raise ValueError(
            f"invalid float value {raw!r} for environment {varname!r}"
        ) from None


# -----------------------------------------------------------------------------
# Settings
# -----------------------------------------------------------------------------
_SUPPORTED_DTYPES = ("float64", "float32")


def _check_dtype(dtype: Any) -> np.dtype:
    """Return `dtype` as a NumPy dtype, restricted to the supported floats."""
    try:
        dt = np.dtype(dtype)
    except TypeError:
        raise ValueError(f"unsupported dtype {dtype!r}") from None
    if dt.name not in _SUPPORTED_DTYPES:
        raise ValueError(
            f"unsupported dtype {dt.name!r}; expected one of {_SUPPORTED_DTYPES}"
        )
    return dt


def _check_snap_tol(snap_tol: float) -> float:
    tol = float(snap_tol)
    if not math.isfinite(tol) or tol < 0.0:
        raise ValueError(f"snap_tol must be finite and >= 0; got {snap_tol!r}")
    return tol


@dataclass(frozen=True)
class Settings:
    """Snapshot of the active kernel settings.

    Attributes:
        dtype: Floating dtype of kernel outputs.
        snap_tol: Query-to-vertex distance at or below which the triangle
            interpolator returns the vertex value exactly.
    """

    dtype: np.dtype
    snap_tol: float


def _settings_from_env() -> Settings:
    dtype = _check_dtype(os.getenv("SURFSMOOTH_DTYPE", "float64").strip() or "float64")
    snap_tol = _check_snap_tol(float_env("SURFSMOOTH_SNAP_TOL", 0.0))
    _LOGGER.debug("Env settings: dtype=%s snap_tol=%g", dtype.name, snap_tol)
    return Settings(dtype=dtype, snap_tol=snap_tol)


# -----------------------------------------------------------------------------
# Config singleton
# -----------------------------------------------------------------------------
class Config:
    """Global configuration for the surfsmooth kernels.

    Holds the active :class:`Settings`; kernels read them on every call so a
    change through :meth:`configure` or :meth:`use` takes effect immediately.
    """

    def __init__(self) -> None:
        """Initialize config using environment defaults."""
        self._settings = _settings_from_env()
        _LOGGER.info(
            "Config initialized: dtype=%s snap_tol=%g",
            self._settings.dtype.name,
            self._settings.snap_tol,
        )

    def configure(
        self,
        *,
        dtype: Optional[Any] = None,
        snap_tol: Optional[float] = None,
        log_level: Optional[str | int] = None,
    ) -> Config:
        """Update the active settings; arguments left as None are unchanged.

        Args:
            dtype: Output dtype, 'float64' or 'float32'.
            snap_tol: Non-negative interpolation snapping tolerance.
            log_level: Level for the package logger.

        Returns:
            The `Config` instance (for chaining).

        Raises:
            ValueError: If `dtype` or `snap_tol` is invalid.
        """
        changes: dict[str, Any] = {}
        if dtype is not None:
            changes["dtype"] = _check_dtype(dtype)
        if snap_tol is not None:
            changes["snap_tol"] = _check_snap_tol(snap_tol)
        if log_level is not None:
            set_log_level(log_level)
        self._settings = replace(self._settings, **changes)
        _LOGGER.info(
            "Reconfigured: dtype=%s snap_tol=%g",
            self._settings.dtype.name,
            self._settings.snap_tol,
        )
        return self

    @contextlib.contextmanager
    def use(
        self,
        *,
        dtype: Optional[Any] = None,
        snap_tol: Optional[float] = None,
    ) -> Iterator[Settings]:
        """Temporarily change settings within a context manager.

        Yields:
            The active settings. Restores the previous settings on exit.
        """
        prev = self._settings
        try:
            self.configure(dtype=dtype, snap_tol=snap_tol)
            yield self._settings
        finally:
            self._settings = prev
            _LOGGER.info(
                "Restored previous settings: dtype=%s snap_tol=%g",
                prev.dtype.name,
                prev.snap_tol,
            )

    @property
    def settings(self) -> Settings:
        """Return the active settings snapshot."""
        return self._settings

    @property
    def dtype(self) -> np.dtype:
        """Return the floating dtype of kernel outputs."""
        return self._settings.dtype

    @property
    def snap_tol(self) -> float:
        """Return the interpolation snapping tolerance."""
        return self._settings.snap_tol


# Singleton & forwards
config = Config()


def configure(
    *,
    dtype: Optional[Any] = None,
    snap_tol: Optional[float] = None,
    log_level: Optional[str | int] = None,
) -> Config:
    """Update the active settings (module-level)."""
    return config.configure(dtype=dtype, snap_tol=snap_tol, log_level=log_level)


def use(
    *,
    dtype: Optional[Any] = None,
    snap_tol: Optional[float] = None,
) -> ContextManager[Settings]:
    """Temporarily change settings within a context manager (module-level)."""
    return config.use(dtype=dtype, snap_tol=snap_tol)


def output_dtype() -> np.dtype:
    """Return the floating dtype of kernel outputs (module-level)."""
    return config.dtype


def snap_tol() -> float:
    """Return the interpolation snapping tolerance (module-level)."""
    return config.snap_tol

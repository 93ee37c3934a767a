"""Environment and dependency preflight checks.

The editor needs pycairo for drawing and GTK 4 + libadwaita bindings for the
window. The export CLI only needs pycairo. Set MINDCANVAS_SKIP_PREFLIGHT=1 to
bypass (useful for development).
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from typing import Optional

SKIP_ENV = "MINDCANVAS_SKIP_PREFLIGHT"
MIN_PYTHON = (3, 9)


@dataclass(frozen=True)
class PreflightResult:
    ok: bool
    message: str


def _check_python_version() -> Optional[str]:
    if sys.version_info < MIN_PYTHON:
        wanted = ".".join(str(p) for p in MIN_PYTHON)
        return f"MindCanvas needs Python {wanted} or newer (running {sys.version.split()[0]})."
    return None


def _check_cairo() -> Optional[str]:
    try:
        import cairo  # type: ignore[import-not-found]  # noqa: F401
    except ImportError as exc:
        return (
            "Missing Python dependency 'pycairo'. "
            "Install it with pip (pycairo) and ensure the cairo library is available. "
            f"Underlying error: {exc}"
        )
    return None


def _check_gtk() -> Optional[str]:
    try:
        import gi  # type: ignore[import-not-found]

        gi.require_version("Gtk", "4.0")
        gi.require_version("Adw", "1")
        gi.require_version("Gdk", "4.0")
        from gi.repository import Gtk, Adw, Gdk  # type: ignore[import-not-found]  # noqa: F401
    except (ImportError, ValueError) as exc:
        return (
            "Missing GTK 4/libadwaita bindings. Install PyGObject (pip install "
            "'mindcanvas[gui]') together with your distribution's gtk4 and "
            "libadwaita packages. "
            f"Underlying error: {exc}"
        )
    return None


def run_preflight(*, check_deps: bool = True, require_gui: bool = True) -> PreflightResult:
    """Run checks and return a structured result."""
    if os.environ.get(SKIP_ENV) == "1":
        return PreflightResult(True, f"Preflight skipped via {SKIP_ENV}=1")

    error = _check_python_version()
    if error:
        return PreflightResult(False, error)

    if check_deps:
        error = _check_cairo()
        if error is None and require_gui:
            error = _check_gtk()
        if error:
            return PreflightResult(False, error)

    return PreflightResult(True, "Preflight OK")


def run_preflight_or_die(*, check_deps: bool = True, require_gui: bool = True) -> None:
    result = run_preflight(check_deps=check_deps, require_gui=require_gui)
    if result.ok:
        return

    sys.stderr.write("\nMindCanvas preflight check failed:\n")
    sys.stderr.write(result.message)
    sys.stderr.write("\n\n")
    sys.stderr.write(
        "Suggested setup:\n"
        "  Fedora:  sudo dnf install gtk4 libadwaita python3-gobject cairo\n"
        "  Debian:  sudo apt install gir1.2-gtk-4.0 gir1.2-adw-1 python3-gi libcairo2\n"
        "  pip install -e '.[gui]'\n\n"
    )
    raise SystemExit(1)

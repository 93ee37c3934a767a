#!/usr/bin/env python3
"""Setup script for MindCanvas."""

import os
import sys
from setuptools import setup, find_packages


def _run_install_preflight() -> None:
    """Fail fast on unsupported interpreters.

    Note: installing from a wheel will not execute setup.py, so the full
    checks also run at startup via `mindcanvas.launcher`.
    """
    if os.environ.get("MINDCANVAS_SKIP_PREFLIGHT") == "1":
        return
    try:
        from mindcanvas.preflight import run_preflight_or_die
        # Python deps are not installed yet at this point; only check the interpreter.
        run_preflight_or_die(check_deps=False, require_gui=False)
    except SystemExit:
        raise
    except Exception as exc:  # pylint: disable=broad-except
        sys.stderr.write("\nMindCanvas preflight error while installing:\n")
        sys.stderr.write(str(exc) + "\n")
        raise SystemExit(1)


_run_install_preflight()

setup(
    name="mindcanvas",
    version="1.0.0",
    description="An interactive mind-map editor with a headless export CLI",
    author="MindCanvas Project",
    license="MIT",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.9",
    install_requires=[
        "pycairo>=1.25.0",
    ],
    extras_require={
        "gui": ["PyGObject>=3.46.0"],
        "test": ["pytest>=7"],
    },
    entry_points={
        "console_scripts": [
            "mindcanvas=mindcanvas.launcher:main",
            "mindcanvas-export=mindcanvas.cli:main",
        ],
        "gui_scripts": [
            "mindcanvas-gui=mindcanvas.launcher:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: X11 Applications :: GTK",
        "Intended Audience :: End Users/Desktop",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX :: Linux",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.12",
        "Topic :: Office/Business",
    ],
)

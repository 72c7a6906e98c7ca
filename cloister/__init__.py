"""Public package surface for cloister.

Exports ``main`` for programmatic CLI invocation.
The pipeline itself lives in ``cloister.scope``, ``cloister.archive`` and
``cloister.run``.
"""

from __future__ import annotations


def main(*args, **kwargs):
    """Lazily import CLI entrypoint to keep package imports lightweight."""
    from .cli import main as _main

    return _main(*args, **kwargs)

__all__ = ["main"]

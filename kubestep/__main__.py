"""Entry point for `python -m kubestep`.

Usage:
    python -m kubestep run --variables variables.json --script deploy.sh
    python -m kubestep discover --variables variables.json
"""

from __future__ import annotations

from kubestep.cli import cli

cli()

"""KubeStep command-line interface.

Exposes:
    cli -- Click group entry point (registered as ``kubestep`` script).
"""

from kubestep.cli.main import cli

__all__ = ["cli"]

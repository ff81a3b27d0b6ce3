"""
Pipestage
~~~~~~~~~

Pluggable transform stages for batch ETL pipelines: a typed stage contract,
a single-column record adapter, and kind-tagged stage configuration.
"""

from pipestage.__version__ import __version__

__all__ = ["__version__"]

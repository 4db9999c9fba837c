"""Entry point for `python -m podinformer`.

Usage:
    INTERVAL=5m LABEL_SELECTOR=app=miniapi python -m podinformer
    CHURN_LIMIT=1000 python -m podinformer
"""

from __future__ import annotations

from podinformer.app import cli

cli()

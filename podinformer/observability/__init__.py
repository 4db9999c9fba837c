"""Logging and metrics for podinformer."""

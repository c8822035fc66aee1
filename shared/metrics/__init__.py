"""Prometheus metrics module."""

from .prometheus_metrics import HTTPMetrics

__all__ = ["HTTPMetrics"]

# src/padelrank/middleware/__init__.py

"""Middleware components for PadelRank API."""

from .logging import RequestLoggingMiddleware

__all__ = ["RequestLoggingMiddleware"]

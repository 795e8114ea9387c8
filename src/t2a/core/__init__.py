"""
Core Infrastructure for t2a.

This package provides foundational components:
    - config.py: Configuration loading and validation
    - logging/: Structured logging with numeric levels
    - metrics.py: Prometheus metrics collection
"""

"""
Utility modules for the application.
Provides telemetry and middleware.
"""
from .telemetry import setup_telemetry, metrics_collector
from .middleware import (
    RequestIDMiddleware,
    TimingMiddleware,
    ErrorHandlingMiddleware
)

__all__ = [
    'setup_telemetry',
    'metrics_collector',
    'RequestIDMiddleware',
    'TimingMiddleware',
    'ErrorHandlingMiddleware',
]

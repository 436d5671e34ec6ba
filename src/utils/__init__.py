# ========================
# src/utils/__init__.py
# ========================

"""
Utilities Package

Common utilities and helper functions for Chartor.
"""

from .config import Config
from .performance_monitor import monitor_performance, PerformanceMonitor, stopwatch, Stopwatch
from .logging_setup import setup_logging, setup_access_log
from .data_generator import SampleDataGenerator

__all__ = [
    'Config',
    'monitor_performance',
    'PerformanceMonitor',
    'stopwatch',
    'Stopwatch',
    'setup_logging',
    'setup_access_log',
    'SampleDataGenerator',
]

# ========================
# src/utils/performance_monitor.py
# ========================

"""
Performance Monitoring Utilities

Stage timing and memory sampling for the chart pipeline.
"""

import time
import os
import logging
from contextlib import contextmanager
from typing import Dict, Any, Optional, List

import psutil

logger = logging.getLogger(__name__)


class Stopwatch:
    """Wall-clock timer whose elapsed value is readable while running and after stop."""

    def __init__(self):
        self.started_at = time.perf_counter()
        self.stopped_at: Optional[float] = None

    def stop(self) -> float:
        if self.stopped_at is None:
            self.stopped_at = time.perf_counter()
        return self.elapsed

    @property
    def elapsed(self) -> float:
        end = self.stopped_at if self.stopped_at is not None else time.perf_counter()
        return end - self.started_at


@contextmanager
def stopwatch():
    """
    Time the enclosed block.

    Yields:
        Stopwatch: stopped when the block exits, even on error
    """
    watch = Stopwatch()
    try:
        yield watch
    finally:
        watch.stop()


class PerformanceMonitor:
    """
    Performance monitoring utility for the pipeline.
    Tracks memory usage, processing time and stage checkpoints.
    """

    def __init__(self, name: str = "Pipeline"):
        """
        Initialize performance monitor.

        Args:
            name (str): Name for this monitoring session
        """
        self.name = name
        self.start_time = None
        self.end_time = None
        self.peak_memory_mb = 0.0
        self.records_processed = 0
        self.checkpoints: List[Dict[str, Any]] = []

        logger.debug(f"PerformanceMonitor initialized: {name}")

    def start_monitoring(self) -> None:
        """Start performance monitoring."""
        self.start_time = time.time()
        self.peak_memory_mb = self._get_memory_usage_mb()

        logger.info(f"{self.name} - Performance monitoring started")
        logger.debug(f"Initial memory usage: {self.peak_memory_mb:.2f} MB")

    def update_progress(self, records: int) -> None:
        """
        Update progress tracking.

        Args:
            records (int): Number of records handled since the last update
        """
        self.records_processed += records
        self.peak_memory_mb = max(self.peak_memory_mb, self._get_memory_usage_mb())

    def add_checkpoint(self, name: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        """
        Add a performance checkpoint.

        Args:
            name (str): Checkpoint name
            metadata (dict): Optional metadata to store
        """
        memory_mb = self._get_memory_usage_mb()
        self.peak_memory_mb = max(self.peak_memory_mb, memory_mb)
        checkpoint = {
            'name': name,
            'timestamp': time.time(),
            'memory_mb': memory_mb,
            'records_processed': self.records_processed,
            'metadata': metadata or {}
        }
        self.checkpoints.append(checkpoint)
        logger.debug(f"Checkpoint '{name}': {checkpoint}")

    def stop_monitoring(self) -> Dict[str, Any]:
        """
        Stop monitoring and return performance summary.

        Returns:
            dict: Performance statistics
        """
        self.end_time = time.time()
        total_time = self.end_time - self.start_time if self.start_time else 0
        throughput = self.records_processed / total_time if total_time > 0 else 0

        summary = {
            'name': self.name,
            'total_processing_time_seconds': total_time,
            'records_processed': self.records_processed,
            'average_throughput_records_per_second': throughput,
            'peak_memory_usage_mb': self.peak_memory_mb,
            'checkpoints': self.checkpoints
        }

        logger.info(
            f"{self.name} - {total_time:.3f}s, "
            f"{self.records_processed:,} records, "
            f"{throughput:.0f} records/sec, "
            f"peak memory {self.peak_memory_mb:.2f} MB"
        )
        return summary

    def _get_memory_usage_mb(self) -> float:
        """Get current memory usage in MB."""
        try:
            process = psutil.Process(os.getpid())
            return process.memory_info().rss / (1024 * 1024)
        except psutil.Error as e:
            logger.debug(f"Could not get memory usage: {e}")
            return 0.0


@contextmanager
def monitor_performance(name: str = "Pipeline"):
    """
    Context manager for easy performance monitoring.

    Args:
        name (str): Name for this monitoring session

    Yields:
        PerformanceMonitor: Monitor instance
    """
    monitor = PerformanceMonitor(name)
    monitor.start_monitoring()
    try:
        yield monitor
    finally:
        monitor.stop_monitoring()

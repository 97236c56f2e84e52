"""
Thread-safe Counter

Accumulates imported record totals across load workers for progress reporting.
"""

import threading


class Counter:
    """Integer accumulator guarded by a single lock"""

    def __init__(self, initial=0):
        self._total = initial
        self._lock = threading.Lock()

    @property
    def total(self):
        with self._lock:
            return self._total

    def increment(self):
        """Add one and return the new total"""
        return self.add(1)

    def add(self, value):
        """Add value and return the new total"""
        with self._lock:
            self._total += value
            return self._total

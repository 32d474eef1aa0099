"""
Holder for the current DynamicParameters. Readers always get a complete,
immutable set; writers replace it whole.
"""

from __future__ import annotations

import threading
from typing import Callable

from scanner.models import DynamicParameters


class ParameterStore:
    def __init__(self, initial: DynamicParameters) -> None:
        self._params = initial
        self._lock = threading.Lock()

    def get(self) -> DynamicParameters:
        with self._lock:
            return self._params

    def replace(self, params: DynamicParameters) -> None:
        with self._lock:
            self._params = params

    def apply(self, fn: Callable[[DynamicParameters], DynamicParameters]) -> DynamicParameters:
        """Read-compute-replace under one lock. Returns the new parameters."""
        with self._lock:
            self._params = fn(self._params)
            return self._params

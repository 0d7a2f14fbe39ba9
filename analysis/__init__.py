"""Numeric kernels for annotated ranges."""
from .metrics import range_min_max, response_time_seconds

__all__ = ["range_min_max", "response_time_seconds"]

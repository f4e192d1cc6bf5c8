"""Utilities package"""
from .config import config
from .logger import logger
from .performance import monitor, PerformanceMonitor

__all__ = ["config", "logger", "monitor", "PerformanceMonitor"]

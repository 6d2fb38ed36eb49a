"""
工具模块
日志配置、遥测记录
"""

from .logger import setup_logger, setup_all_loggers, PerformanceLogger
from .telemetry import TelemetryRecorder, publish_best_effort

__all__ = [
    'setup_logger',
    'setup_all_loggers',
    'PerformanceLogger',
    'TelemetryRecorder',
    'publish_best_effort',
]

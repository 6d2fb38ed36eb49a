"""
日志系统模块
统一的日志配置和管理
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from logging.handlers import RotatingFileHandler

from .. import config


def setup_logger(
    name: str,
    log_file: str = None,
    level: int = logging.INFO,
    console: bool = True,
    max_bytes: int = 10*1024*1024,  # 10MB
    backup_count: int = 5
) -> logging.Logger:
    """配置日志记录器

    Args:
        name: 日志记录器名称
        log_file: 日志文件路径（None则只输出到控制台）
        level: 日志级别
        console: 是否输出到控制台
        max_bytes: 单个日志文件最大字节数
        backup_count: 保留的备份文件数量

    Returns:
        配置好的Logger对象

    Example:
        >>> nav_logger = setup_logger('mpc_host.navigation', 'data/logs/nav.log')
        >>> nav_logger.info('控制周期完成')
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # 避免重复添加handler
    if logger.handlers:
        return logger

    formatter = logging.Formatter(fmt=config.LOG_FORMAT, datefmt=config.LOG_DATE_FORMAT)

    # 文件处理器（带轮转）
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding='utf-8'
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    # 控制台处理器
    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger


def setup_all_loggers(base_dir: str = None, level: int = None) -> dict:
    """按 config 配置 mpc_host 各子模块的日志记录器

    Args:
        base_dir: 日志基础目录（None则使用config.LOG_DIR）
        level: 日志级别（None则使用config.LOG_LEVEL）

    Returns:
        dict: 所有logger的字典
    """
    base_path = Path(base_dir or config.LOG_DIR)
    if level is None:
        level = getattr(logging, config.LOG_LEVEL.upper(), logging.INFO)

    # 创建时间戳后缀
    timestamp = datetime.now().strftime('%Y%m%d')

    def log_file(prefix):
        if not config.ENABLE_FILE_LOG:
            return None
        return base_path / f'{prefix}_{timestamp}.log'

    loggers = {
        'main': setup_logger('mpc_host', log_file('main'), level,
                             console=config.ENABLE_CONSOLE_LOG),
        'navigation': setup_logger('mpc_host.navigation', log_file('nav'), level,
                                   console=False),
        'communication': setup_logger('mpc_host.communication', log_file('comm'), level,
                                      console=False),
    }

    return loggers


class PerformanceLogger:
    """性能日志记录器

    用于记录控制周期耗时等性能指标，只保存累计统计（次数、总和、最小、最大），
    长时间运行内存不增长
    """

    def __init__(self, logger: logging.Logger, report_every: int = 100):
        self.logger = logger
        self.report_every = report_every
        self.stats = {}

    def log_execution_time(self, func_name: str, duration: float):
        """记录函数执行时间

        Args:
            func_name: 函数名称
            duration: 执行时长（秒）
        """
        if func_name not in self.stats:
            self.stats[func_name] = {
                'count': 0,
                'total': 0.0,
                'min': duration,
                'max': duration
            }

        stats = self.stats[func_name]
        stats['count'] += 1
        stats['total'] += duration
        stats['min'] = min(stats['min'], duration)
        stats['max'] = max(stats['max'], duration)

        if stats['count'] % self.report_every == 0:
            avg_time = stats['total'] / stats['count']
            self.logger.info(
                f"[性能] {func_name}: 调用{stats['count']}次, "
                f"平均{avg_time*1000:.2f}ms"
            )

    def get_statistics(self, func_name: str = None):
        """获取性能统计

        Args:
            func_name: 函数名（None=所有）

        Returns:
            统计信息字典
        """
        def summarize(name):
            stats = self.stats[name]
            return {
                'count': stats['count'],
                'avg': stats['total'] / stats['count'],
                'min': stats['min'],
                'max': stats['max']
            }

        if func_name:
            return summarize(func_name) if func_name in self.stats else None

        return {name: summarize(name) for name in self.stats}

"""
可视化模块
提供路径跟踪实时可视化功能
"""

from .tracking_visualizer import TrackingVisualizer

__all__ = ['TrackingVisualizer']

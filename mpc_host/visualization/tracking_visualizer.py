"""
路径跟踪可视化模块
在机器人本体坐标系下显示局部路径、前视点和机器人足迹
"""

from pathlib import Path as FilePath
from typing import List, Optional, Sequence, Tuple

import matplotlib.pyplot as plt
import matplotlib.patches as patches

from .. import config


class TrackingVisualizer:
    """路径跟踪可视化器

    实现 TelemetrySink 接口，可直接挂到 ControlCycle 上：
    - publish_local_plan: 更新局部路径
    - publish_carrot: 更新前视点

    Attributes:
        fig: matplotlib图形对象
        ax: 主坐标轴

    Example:
        >>> visualizer = TrackingVisualizer(footprint=config.ROBOT_FOOTPRINT)
        >>> controller = ControlCycle(costmap, tf_buffer, bridge, telemetry=[visualizer])
        >>> visualizer.save_figure('data/debug/tracking.png')
    """

    def __init__(self,
                 footprint: Optional[Sequence[Tuple[float, float]]] = None,
                 figsize: Optional[Tuple[int, int]] = None,
                 view_range: Optional[float] = None,
                 interactive: bool = False):
        """初始化可视化器

        Args:
            footprint: 机器人足迹多边形，None则使用config.ROBOT_FOOTPRINT
            figsize: 图形大小（宽, 高）单位英寸，None则使用config.VISUALIZE_WINDOW_SIZE
            view_range: 显示范围（米），None则使用config.VISUALIZE_VIEW_RANGE
            interactive: 是否每次更新后刷新窗口
        """
        if figsize is None:
            figsize = config.VISUALIZE_WINDOW_SIZE
        if view_range is None:
            view_range = config.VISUALIZE_VIEW_RANGE
        if footprint is None:
            footprint = config.ROBOT_FOOTPRINT

        self.view_range = view_range
        self.interactive = interactive

        self.fig, self.ax = plt.subplots(figsize=figsize)
        self.fig.suptitle('MPC Local Controller - Carrot Tracking', fontsize=14, fontweight='bold')

        self.ax.set_xlim(-view_range, view_range)
        self.ax.set_ylim(-view_range, view_range)
        self.ax.set_aspect('equal')
        self.ax.grid(True, alpha=0.3)
        self.ax.set_xlabel('X (m, base frame)')
        self.ax.set_ylabel('Y (m, base frame)')

        # 机器人足迹（本体坐标系下固定不动）
        self.footprint_patch = patches.Polygon(
            list(footprint), closed=True, fill=False, edgecolor='blue', linewidth=2)
        self.ax.add_patch(self.footprint_patch)
        self.ax.arrow(0.0, 0.0, 0.3, 0.0, head_width=0.08, color='blue')

        # 局部路径 / 前视点
        self.path_line, = self.ax.plot([], [], 'g-', linewidth=2, label='Local Plan')
        self.carrot_scatter = self.ax.scatter([], [], c='red', s=80, marker='*',
                                              zorder=5, label='Carrot')
        self.ax.legend(loc='upper right')

        # 状态栏文本
        self.status_text = self.ax.text(
            0.02, 0.98, '', transform=self.ax.transAxes,
            verticalalignment='top', fontsize=9,
            bbox=dict(boxstyle='round', facecolor='wheat', alpha=0.8))

        self.local_plan_points: List[Tuple[float, float]] = []
        self.carrot: Optional[Tuple[float, float]] = None
        self.frame_count = 0

    # ========== TelemetrySink 接口 ==========

    def publish_local_plan(self, path):
        self.local_plan_points = [(p.pose.x, p.pose.y) for p in path.poses]
        self._redraw()

    def publish_carrot(self, marker):
        self.carrot = (marker.x, marker.y)
        self._redraw()

    # ========== 绘制 ==========

    def _redraw(self):
        if self.local_plan_points:
            xs, ys = zip(*self.local_plan_points)
            self.path_line.set_data(xs, ys)
        else:
            self.path_line.set_data([], [])

        if self.carrot is not None:
            self.carrot_scatter.set_offsets([self.carrot])

        self.frame_count += 1
        carrot_text = (f"({self.carrot[0]:.2f}, {self.carrot[1]:.2f})"
                       if self.carrot is not None else '-')
        self.status_text.set_text(
            f"Frame: {self.frame_count}\n"
            f"Plan poses: {len(self.local_plan_points)}\n"
            f"Carrot: {carrot_text}")

        if self.interactive:
            self.fig.canvas.draw_idle()
            plt.pause(0.001)

    def save_figure(self, filename: str):
        """保存当前图像"""
        path = FilePath(filename)
        path.parent.mkdir(parents=True, exist_ok=True)
        self.fig.savefig(path, dpi=100, bbox_inches='tight')
        print(f"[可视化] 图像已保存: {path}")

    def close(self):
        """关闭窗口"""
        plt.close(self.fig)

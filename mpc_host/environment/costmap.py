"""
局部代价地图模块
最小化的栅格代价地图和足迹碰撞检测，供演示与测试使用
"""

import math
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

import numpy as np

from .. import config


FREE_SPACE = 0
LETHAL_COST = config.LETHAL_COST


@dataclass
class CostmapConfig:
    """代价地图配置参数"""
    width: int = config.COSTMAP_WIDTH  # 栅格数量
    height: int = config.COSTMAP_HEIGHT
    resolution: float = config.COSTMAP_RESOLUTION  # 米/栅格
    origin_x: float = config.COSTMAP_ORIGIN_X  # 栅格(0,0)左下角的世界坐标（米）
    origin_y: float = config.COSTMAP_ORIGIN_Y
    global_frame: str = config.ODOM_FRAME
    base_frame: str = config.BASE_FRAME
    footprint: List[Tuple[float, float]] = field(
        default_factory=lambda: list(config.ROBOT_FOOTPRINT))


class GridCostmap:
    """栅格代价地图

    每个栅格一个 uint8 代价：
    - 0: 空闲
    - 1-254: 代价递增
    - 255: 致命（碰撞）

    Attributes:
        costs: 代价矩阵 (height x width)
        config: 地图配置
        collision_checker: 足迹碰撞检测器

    Example:
        >>> costmap = GridCostmap(CostmapConfig(width=100, height=100, resolution=0.05))
        >>> costmap.fill_rect(1.0, -0.5, 1.2, 0.5, LETHAL_COST)
        >>> cost = costmap.footprint_cost_at_pose(0.0, 0.0, 0.0, costmap.robot_footprint)
    """

    def __init__(self, costmap_config: CostmapConfig = None):
        """初始化代价地图

        Args:
            costmap_config: 地图配置，None则使用默认配置
        """
        self.config = costmap_config if costmap_config else CostmapConfig()

        self.costs = np.full(
            (self.config.height, self.config.width),
            FREE_SPACE,
            dtype=np.uint8
        )

        self.collision_checker = FootprintCollisionChecker(self)

    # ========== Costmap 接口 ==========

    @property
    def size_in_cells_x(self) -> int:
        return self.config.width

    @property
    def size_in_cells_y(self) -> int:
        return self.config.height

    @property
    def resolution(self) -> float:
        return self.config.resolution

    @property
    def global_frame_id(self) -> str:
        return self.config.global_frame

    @property
    def base_frame_id(self) -> str:
        return self.config.base_frame

    @property
    def robot_footprint(self) -> List[Tuple[float, float]]:
        return list(self.config.footprint)

    def footprint_cost_at_pose(self, x: float, y: float, yaw: float,
                               footprint: Sequence[Tuple[float, float]]) -> int:
        return self.collision_checker.footprint_cost_at_pose(x, y, yaw, footprint)

    # ========== 坐标转换 ==========

    def world_to_map(self, x: float, y: float) -> Tuple[int, int]:
        """世界坐标转栅格坐标（可能越界，需配合is_valid_cell）

        Args:
            x, y: 世界坐标（米）

        Returns:
            (mx, my): 栅格坐标
        """
        mx = int(math.floor((x - self.config.origin_x) / self.config.resolution))
        my = int(math.floor((y - self.config.origin_y) / self.config.resolution))
        return mx, my

    def map_to_world(self, mx: int, my: int) -> Tuple[float, float]:
        """栅格坐标转世界坐标（栅格中心）"""
        x = self.config.origin_x + (mx + 0.5) * self.config.resolution
        y = self.config.origin_y + (my + 0.5) * self.config.resolution
        return x, y

    def is_valid_cell(self, mx: int, my: int) -> bool:
        """检查栅格坐标是否在地图范围内"""
        return 0 <= mx < self.config.width and 0 <= my < self.config.height

    # ========== 读写代价 ==========

    def get_cost(self, mx: int, my: int) -> int:
        """读取栅格代价，越界视为致命"""
        if not self.is_valid_cell(mx, my):
            return LETHAL_COST
        return int(self.costs[my, mx])

    def set_cost(self, mx: int, my: int, cost: int):
        if self.is_valid_cell(mx, my):
            self.costs[my, mx] = cost

    def cost_at_world(self, x: float, y: float) -> int:
        return self.get_cost(*self.world_to_map(x, y))

    def fill_rect(self, x0: float, y0: float, x1: float, y1: float, cost: int):
        """把世界坐标矩形区域内的栅格设为指定代价"""
        mx0, my0 = self.world_to_map(min(x0, x1), min(y0, y1))
        mx1, my1 = self.world_to_map(max(x0, x1), max(y0, y1))
        mx0, my0 = max(mx0, 0), max(my0, 0)
        mx1 = min(mx1, self.config.width - 1)
        my1 = min(my1, self.config.height - 1)
        if mx0 > mx1 or my0 > my1:
            return
        self.costs[my0:my1 + 1, mx0:mx1 + 1] = cost

    def clear(self):
        """清空为自由空间"""
        self.costs.fill(FREE_SPACE)


class FootprintCollisionChecker:
    """足迹碰撞检测器

    足迹少于3个顶点时只检查中心点；
    否则先检查中心点，再沿多边形每条边（Bresenham）取最大代价，遇到致命值立即返回
    """

    def __init__(self, costmap: GridCostmap):
        self.costmap = costmap

    def point_cost(self, mx: int, my: int) -> int:
        return self.costmap.get_cost(mx, my)

    def line_cost(self, x0: int, y0: int, x1: int, y1: int) -> int:
        """一条栅格线段上的最大代价"""
        line_cost = 0
        for mx, my in bresenham_line(x0, y0, x1, y1):
            cost = self.point_cost(mx, my)
            if cost == LETHAL_COST:
                return cost
            line_cost = max(line_cost, cost)
        return line_cost

    def footprint_cost_at_pose(self, x: float, y: float, yaw: float,
                               footprint: Sequence[Tuple[float, float]]) -> int:
        """足迹放在 (x, y, yaw) 时的代价

        Args:
            x, y: 世界坐标（米）
            yaw: 航向角（弧度）
            footprint: 本体坐标系下的足迹多边形顶点

        Returns:
            代价 [0, 255]
        """
        center_cost = self.point_cost(*self.costmap.world_to_map(x, y))
        if len(footprint) < 3 or center_cost == LETHAL_COST:
            return center_cost

        c, s = math.cos(yaw), math.sin(yaw)
        cells = [
            self.costmap.world_to_map(x + px * c - py * s, y + px * s + py * c)
            for px, py in footprint
        ]

        footprint_cost = center_cost
        for i, (x0, y0) in enumerate(cells):
            x1, y1 = cells[(i + 1) % len(cells)]
            cost = self.line_cost(x0, y0, x1, y1)
            if cost == LETHAL_COST:
                return cost
            footprint_cost = max(footprint_cost, cost)

        return footprint_cost


def bresenham_line(x0: int, y0: int, x1: int, y1: int) -> List[Tuple[int, int]]:
    """Bresenham直线算法

    生成从(x0, y0)到(x1, y1)的所有栅格坐标（含两端）
    """
    cells = []

    dx = abs(x1 - x0)
    dy = abs(y1 - y0)

    sx = 1 if x0 < x1 else -1
    sy = 1 if y0 < y1 else -1

    err = dx - dy

    x, y = x0, y0

    while True:
        cells.append((x, y))

        if x == x1 and y == y1:
            break

        e2 = 2 * err

        if e2 > -dy:
            err -= dy
            x += sx

        if e2 < dx:
            err += dx
            y += sy

    return cells

"""
前视距离与前视点（carrot）选择模块
"""

import math
from dataclasses import dataclass

import numpy as np

from .. import config
from .exceptions import EmptyWindowError
from .geometry import Path, PoseStamped, Velocity


@dataclass
class LookaheadConfig:
    """前视距离配置（运行时可通过动态参数整体替换）"""
    min_dist: float = config.LOOKAHEAD_DIST_MIN  # 减速模式 (m)
    max_dist: float = config.LOOKAHEAD_DIST_MAX  # 正常模式 (m)
    close_to_goal_dist: float = config.LOOKAHEAD_DIST_CLOSE_TO_GOAL  # 接近目标 (m)

    def __post_init__(self):
        for name in ('min_dist', 'max_dist', 'close_to_goal_dist'):
            value = getattr(self, name)
            if not (math.isfinite(value) and value > 0):
                raise ValueError(f"LookaheadConfig: {name} 必须为大于0的有限值，实际为{value}")


class LookaheadSelector:
    """前视点选择器

    距离策略：
    - 减速模式且未接近目标：min_dist
    - 否则：max_dist；接近目标时改用 close_to_goal_dist

    前视点：局部路径上第一个到机器人原点距离 >= 前视距离的位姿，
    没有则取最后一个位姿（保证最终收敛到目标）

    Example:
        >>> selector = LookaheadSelector(LookaheadConfig(0.3, 1.0, 0.5))
        >>> dist = selector.select_lookahead_distance(speed, False, False)
        >>> carrot = selector.select_carrot_point(dist, local_plan)
    """

    def __init__(self, lookahead_config: LookaheadConfig = None):
        self.config = lookahead_config if lookahead_config else LookaheadConfig()

    def select_lookahead_distance(self, speed: Velocity, closer_to_goal: bool,
                                  slow_down: bool) -> float:
        """选择前视距离

        Args:
            speed: 当前速度（保留接口，当前策略不使用）
            closer_to_goal: 是否接近目标
            slow_down: 是否处于减速模式

        Returns:
            前视距离（米）
        """
        lookahead_dist = self.config.min_dist

        if not slow_down or closer_to_goal:
            lookahead_dist = self.config.max_dist
            if closer_to_goal:
                lookahead_dist = self.config.close_to_goal_dist

        return lookahead_dist

    def select_carrot_point(self, lookahead_dist: float, local_plan: Path) -> PoseStamped:
        """在局部路径上选择前视点

        Args:
            lookahead_dist: 前视距离（米）
            local_plan: 本体坐标系下的局部路径

        Returns:
            局部路径中的某个位姿（同一对象，不复制）
        """
        if not local_plan.poses:
            raise EmptyWindowError("局部路径为空，无法选择前视点")

        positions = local_plan.positions()
        far_enough = np.hypot(positions[:, 0], positions[:, 1]) >= lookahead_dist

        if not far_enough.any():
            return local_plan.poses[-1]

        return local_plan.poses[int(np.argmax(far_enough))]

    def is_closer_to_goal(self, robot_pose: PoseStamped, plan: Path) -> bool:
        """机器人到路径终点的直线距离是否不超过 close_to_goal_dist

        Args:
            robot_pose: 机器人位姿（与 plan 同一坐标系）
            plan: 全局路径
        """
        final_pose = plan.final_pose
        if final_pose is None:
            return False
        return robot_pose.pose.distance_to(final_pose.pose) <= self.config.close_to_goal_dist

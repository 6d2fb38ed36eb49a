"""
全局路径裁剪与重投影模块
把全局路径中机器人附近的一段变换到机器人本体坐标系，并丢弃已走过的前缀
"""

import logging
import math
from typing import Optional, Sequence

import numpy as np

from .exceptions import EmptyPlanError, EmptyWindowError, FrameTransformError
from .geometry import Path, PoseStamped
from .interfaces import Costmap, TelemetrySink, TransformService
from ..utils.telemetry import publish_best_effort


logger = logging.getLogger(__name__)


class PlanTransformer:
    """全局路径变换器

    每个控制周期执行：
    1. 把机器人位姿变换到全局路径坐标系
    2. 线性扫描找到离机器人最近的路径点（窗口起点）
    3. 从起点向后找到第一个超出有效半径的点（窗口终点，不含）
    4. 把窗口内的位姿变换到本体坐标系
    5. 原地删除窗口起点之前的路径点（只向前消费，不会回头）

    有效半径 = 局部代价地图对角线长度的一半

    Attributes:
        costmap: 局部代价地图（提供尺寸、分辨率、本体坐标系）
        transforms: 坐标变换服务
        telemetry: 遥测输出列表
        robot_pose: 最近一次变换得到的机器人位姿（全局路径坐标系）

    Example:
        >>> transformer = PlanTransformer(costmap, tf_buffer)
        >>> local_plan = transformer.transform(global_plan, robot_pose)
    """

    def __init__(self, costmap: Costmap, transforms: TransformService,
                 telemetry: Sequence[TelemetrySink] = ()):
        self.costmap = costmap
        self.transforms = transforms
        self.telemetry = list(telemetry)
        self.robot_pose: Optional[PoseStamped] = None

    @property
    def max_transform_dist(self) -> float:
        """有效半径（米）"""
        diagonal_cells = math.hypot(self.costmap.size_in_cells_x, self.costmap.size_in_cells_y)
        return diagonal_cells * self.costmap.resolution / 2.0

    def transform(self, plan: Path, robot_pose: PoseStamped) -> Path:
        """裁剪全局路径并变换到本体坐标系

        Args:
            plan: 全局路径（会被原地删除前缀）
            robot_pose: 机器人当前位姿（任意坐标系）

        Returns:
            本体坐标系下的局部路径

        Raises:
            EmptyPlanError: 全局路径为空
            FrameTransformError: 机器人位姿或路径点无法变换
            EmptyWindowError: 有效半径内没有路径点
        """
        if not plan.poses:
            raise EmptyPlanError("全局路径长度为0")

        # 机器人在全局路径坐标系下的位姿
        try:
            self.robot_pose = self.transforms.transform_pose(robot_pose, plan.frame_id)
        except FrameTransformError as e:
            raise FrameTransformError(
                f"无法把机器人位姿变换到全局路径坐标系: {e}") from e

        positions = plan.positions()
        dists = np.hypot(positions[:, 0] - self.robot_pose.x,
                         positions[:, 1] - self.robot_pose.y)

        # 窗口起点：最近点（并列时取第一个）
        begin = int(np.argmin(dists))

        # 窗口终点：第一个超出有效半径的点
        beyond = np.nonzero(dists[begin:] > self.max_transform_dist)[0]
        end = begin + int(beyond[0]) if beyond.size else len(plan.poses)

        base_frame = self.costmap.base_frame_id
        local_plan = Path(base_frame, stamp=robot_pose.stamp)
        for global_pose in plan.poses[begin:end]:
            stamped = PoseStamped(global_pose.pose, plan.frame_id, robot_pose.stamp)
            local_plan.poses.append(self.transforms.transform_pose(stamped, base_frame))

        # 已经走过的部分不再需要
        if begin > 0:
            del plan.poses[:begin]
            logger.debug(f"丢弃已走过的 {begin} 个路径点，剩余 {len(plan.poses)}")

        publish_best_effort(self.telemetry, 'publish_local_plan', local_plan)

        if not local_plan.poses:
            raise EmptyWindowError("裁剪后的局部路径没有任何位姿")

        return local_plan

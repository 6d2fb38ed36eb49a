"""
几何数据类定义
位姿、速度、路径等在各模块之间传递的数据结构
"""

import math
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np


def normalize_angle(angle: float) -> float:
    """归一化角度到[-π, π]"""
    return math.atan2(math.sin(angle), math.cos(angle))


def yaw_from_quaternion(qx: float, qy: float, qz: float, qw: float) -> float:
    """四元数转航向角（绕Z轴）

    Args:
        qx, qy, qz, qw: 单位四元数

    Returns:
        航向角（弧度，[-π, π]）
    """
    siny_cosp = 2.0 * (qw * qz + qx * qy)
    cosy_cosp = 1.0 - 2.0 * (qy * qy + qz * qz)
    return math.atan2(siny_cosp, cosy_cosp)


def quaternion_from_yaw(yaw: float) -> Tuple[float, float, float, float]:
    """航向角转四元数 (qx, qy, qz, qw)"""
    half = yaw / 2.0
    return 0.0, 0.0, math.sin(half), math.cos(half)


@dataclass(frozen=True)
class Pose2D:
    """平面位姿

    Attributes:
        x: X坐标（米）
        y: Y坐标（米）
        yaw: 航向角（弧度）
    """
    x: float = 0.0
    y: float = 0.0
    yaw: float = 0.0

    @classmethod
    def from_quaternion(cls, x: float, y: float,
                        qx: float, qy: float, qz: float, qw: float) -> 'Pose2D':
        return cls(x, y, yaw_from_quaternion(qx, qy, qz, qw))

    @property
    def quaternion(self) -> Tuple[float, float, float, float]:
        return quaternion_from_yaw(self.yaw)

    def distance_to(self, other: 'Pose2D') -> float:
        """欧氏距离（米）"""
        return math.hypot(self.x - other.x, self.y - other.y)

    def to_matrix(self) -> np.ndarray:
        """3x3齐次变换矩阵"""
        c, s = math.cos(self.yaw), math.sin(self.yaw)
        return np.array([
            [c, -s, self.x],
            [s, c, self.y],
            [0.0, 0.0, 1.0],
        ])

    @classmethod
    def from_matrix(cls, matrix: np.ndarray) -> 'Pose2D':
        return cls(float(matrix[0, 2]), float(matrix[1, 2]),
                   math.atan2(matrix[1, 0], matrix[0, 0]))


@dataclass
class PoseStamped:
    """带坐标系和时间戳的位姿"""
    pose: Pose2D
    frame_id: str
    stamp: float = 0.0

    @property
    def x(self) -> float:
        return self.pose.x

    @property
    def y(self) -> float:
        return self.pose.y

    @property
    def yaw(self) -> float:
        return self.pose.yaw


@dataclass
class Velocity:
    """速度（Twist）

    Attributes:
        linear_x: 前向线速度 (m/s)
        linear_y: 横向线速度 (m/s)，全向底盘使用
        angular_z: 角速度 (rad/s)
    """
    linear_x: float = 0.0
    linear_y: float = 0.0
    angular_z: float = 0.0


@dataclass
class VelocityCommand:
    """带坐标系和时间戳的速度指令（TwistStamped）"""
    velocity: Velocity
    frame_id: str = ''
    stamp: float = 0.0


@dataclass
class Path:
    """路径：按顺序排列的带时间戳位姿

    poses 会被 PlanTransformer 原地裁剪（删除机器人已经走过的前缀）
    """
    frame_id: str
    poses: List[PoseStamped] = field(default_factory=list)
    stamp: float = 0.0

    def __len__(self) -> int:
        return len(self.poses)

    @property
    def final_pose(self) -> Optional[PoseStamped]:
        return self.poses[-1] if self.poses else None

    def positions(self) -> np.ndarray:
        """所有位姿的位置 (N x 2)"""
        if not self.poses:
            return np.empty((0, 2))
        return np.array([(p.pose.x, p.pose.y) for p in self.poses], dtype=float)

    @classmethod
    def from_points(cls, points, frame_id: str, stamp: float = 0.0) -> 'Path':
        """从 (x, y) 或 (x, y, yaw) 点列创建路径

        未给出航向时，取指向下一个点的方向（最后一点沿用前一段方向）
        """
        points = [tuple(p) for p in points]
        poses = []
        for i, point in enumerate(points):
            if len(point) >= 3:
                yaw = point[2]
            elif i + 1 < len(points):
                yaw = math.atan2(points[i + 1][1] - point[1], points[i + 1][0] - point[0])
            elif i > 0:
                yaw = math.atan2(point[1] - points[i - 1][1], point[0] - points[i - 1][0])
            else:
                yaw = 0.0
            poses.append(PoseStamped(Pose2D(point[0], point[1], yaw), frame_id, stamp))
        return cls(frame_id, poses, stamp)


@dataclass
class CarrotMarker:
    """前视点标记（遥测用）"""
    x: float
    y: float
    z: float
    frame_id: str
    stamp: float = 0.0

    @classmethod
    def from_pose(cls, carrot: PoseStamped, height: float) -> 'CarrotMarker':
        return cls(carrot.pose.x, carrot.pose.y, height, carrot.frame_id, carrot.stamp)

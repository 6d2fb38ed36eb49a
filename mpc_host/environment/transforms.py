"""
坐标变换模块
平面 SE(2) 坐标系树，按父子关系链式查询变换
"""

import threading
from collections import deque
from typing import Dict, List, Optional, Tuple

import numpy as np

from ..navigation.exceptions import FrameTransformError
from ..navigation.geometry import Pose2D, PoseStamped


class TransformBuffer:
    """坐标变换缓存

    set_transform(parent, child, pose) 表示 child 坐标系原点在 parent 坐标系下的位姿，
    查询时在无向图上做BFS，反向边使用逆变换

    Example:
        >>> tf_buffer = TransformBuffer()
        >>> tf_buffer.set_transform('map', 'odom', Pose2D(1.0, 0.0, 0.0))
        >>> tf_buffer.set_transform('odom', 'base_link', Pose2D(0.5, 0.0, np.pi / 2))
        >>> local = tf_buffer.transform_pose(pose_in_map, 'base_link')
    """

    def __init__(self):
        # (parent, child) -> child在parent下的3x3齐次矩阵
        self._transforms: Dict[Tuple[str, str], np.ndarray] = {}
        self._stamps: Dict[Tuple[str, str], float] = {}
        self._lock = threading.Lock()

    def set_transform(self, parent: str, child: str, pose: Pose2D, stamp: float = 0.0):
        """设置（或更新）父子坐标系之间的变换"""
        if parent == child:
            raise ValueError(f"父子坐标系不能相同: {parent}")

        with self._lock:
            # 同一对坐标系只保留一个方向
            self._transforms.pop((child, parent), None)
            self._stamps.pop((child, parent), None)
            self._transforms[(parent, child)] = pose.to_matrix()
            self._stamps[(parent, child)] = stamp

    def frames(self) -> List[str]:
        """所有已知坐标系"""
        with self._lock:
            names = {frame for edge in self._transforms for frame in edge}
        return sorted(names)

    def can_transform(self, target_frame: str, source_frame: str) -> bool:
        with self._lock:
            return self._find_chain(target_frame, source_frame) is not None

    def lookup(self, target_frame: str, source_frame: str) -> np.ndarray:
        """查询把 source 坐标系下的点变换到 target 坐标系的矩阵

        Raises:
            FrameTransformError: 两个坐标系不连通
        """
        if target_frame == source_frame:
            return np.eye(3)

        with self._lock:
            chain = self._find_chain(target_frame, source_frame)
            if chain is None:
                raise FrameTransformError(
                    f"无法查询变换: {source_frame} -> {target_frame}（坐标系不连通）")

            # chain: target = f0, f1, ..., fn = source
            matrix = np.eye(3)
            for parent, child in zip(chain[:-1], chain[1:]):
                matrix = matrix @ self._edge(parent, child)

        return matrix

    def transform_pose(self, pose: PoseStamped, target_frame: str) -> PoseStamped:
        """把位姿变换到目标坐标系

        Raises:
            FrameTransformError: 无法变换
        """
        if pose.frame_id == target_frame:
            return PoseStamped(pose.pose, target_frame, pose.stamp)

        matrix = self.lookup(target_frame, pose.frame_id) @ pose.pose.to_matrix()
        return PoseStamped(Pose2D.from_matrix(matrix), target_frame, pose.stamp)

    def _edge(self, frame_a: str, frame_b: str) -> np.ndarray:
        """frame_b 在 frame_a 下的矩阵（调用方需持有锁）"""
        if (frame_a, frame_b) in self._transforms:
            return self._transforms[(frame_a, frame_b)]
        return np.linalg.inv(self._transforms[(frame_b, frame_a)])

    def _find_chain(self, start: str, goal: str) -> Optional[List[str]]:
        """BFS查找坐标系链（调用方需持有锁）"""
        neighbors: Dict[str, List[str]] = {}
        for parent, child in self._transforms:
            neighbors.setdefault(parent, []).append(child)
            neighbors.setdefault(child, []).append(parent)

        if start not in neighbors or goal not in neighbors:
            return None

        previous = {start: None}
        queue = deque([start])
        while queue:
            frame = queue.popleft()
            if frame == goal:
                chain = []
                while frame is not None:
                    chain.append(frame)
                    frame = previous[frame]
                return chain[::-1]
            for neighbor in neighbors[frame]:
                if neighbor not in previous:
                    previous[neighbor] = frame
                    queue.append(neighbor)

        return None

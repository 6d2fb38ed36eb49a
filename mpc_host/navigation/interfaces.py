"""
外部协作者接口定义
代价地图、坐标变换、遥测、优化器均通过这些窄接口访问
"""

from typing import List, Protocol, Sequence, Tuple, runtime_checkable

from .geometry import CarrotMarker, Path, Pose2D, PoseStamped, Velocity, VelocityCommand


@runtime_checkable
class Costmap(Protocol):
    """局部代价地图接口

    代价取值 [0, 254]，255 为致命值（碰撞）
    """

    @property
    def size_in_cells_x(self) -> int: ...

    @property
    def size_in_cells_y(self) -> int: ...

    @property
    def resolution(self) -> float: ...

    @property
    def global_frame_id(self) -> str: ...

    @property
    def base_frame_id(self) -> str: ...

    @property
    def robot_footprint(self) -> List[Tuple[float, float]]: ...

    def footprint_cost_at_pose(self, x: float, y: float, yaw: float,
                               footprint: Sequence[Tuple[float, float]]) -> int:
        """机器人足迹放在 (x, y, yaw) 时的最大代价"""
        ...


@runtime_checkable
class TransformService(Protocol):
    """坐标变换服务接口"""

    def transform_pose(self, pose: PoseStamped, target_frame: str) -> PoseStamped:
        """把位姿变换到目标坐标系，失败时抛出 FrameTransformError"""
        ...


@runtime_checkable
class TelemetrySink(Protocol):
    """遥测输出接口（尽力而为，不影响控制正确性）"""

    def publish_local_plan(self, path: Path) -> None: ...

    def publish_carrot(self, marker: CarrotMarker) -> None: ...


@runtime_checkable
class Optimizer(Protocol):
    """外部轨迹优化器接口"""

    def solve(self, pose: PoseStamped, velocity: Velocity, carrot: PoseStamped,
              goal: Pose2D, closer_to_goal: bool,
              control_interval: float) -> VelocityCommand:
        ...

"""
导航模块
包含路径裁剪、前视点选择、减速判定和控制周期
"""

from .control_cycle import ControlCycle, ControllerState, Parameter, SetParametersResult
from .exceptions import (
    ControllerException, EmptyPlanError, FrameTransformError, EmptyWindowError,
    CollisionDetectedError, OptimizerUnavailableError, OptimizerRequestError
)
from .geometry import Pose2D, PoseStamped, Velocity, VelocityCommand, Path, CarrotMarker
from .lookahead import LookaheadConfig, LookaheadSelector
from .plan_transformer import PlanTransformer
from .speed_gate import SpeedGate


def create_controller(costmap, transforms, optimizer=None, **kwargs) -> ControlCycle:
    """
    工厂函数：创建控制器，未提供优化器时创建并连接 OptimizerBridge

    Args:
        costmap: 局部代价地图
        transforms: 坐标变换服务
        optimizer: 优化器（None则按config连接OptimizerBridge，阻塞直到连接或重试用尽）
        **kwargs: 透传给 ControlCycle

    Returns:
        ControlCycle对象

    Raises:
        OptimizerUnavailableError: 优化器服务不可用

    Example:
        >>> controller = create_controller(costmap, tf_buffer)
    """
    if optimizer is None:
        from ..communication import create_optimizer_bridge
        optimizer = create_optimizer_bridge()
    return ControlCycle(costmap, transforms, optimizer, **kwargs)


__all__ = [
    'ControlCycle',
    'ControllerState',
    'Parameter',
    'SetParametersResult',
    'create_controller',
    'ControllerException',
    'EmptyPlanError',
    'FrameTransformError',
    'EmptyWindowError',
    'CollisionDetectedError',
    'OptimizerUnavailableError',
    'OptimizerRequestError',
    'Pose2D',
    'PoseStamped',
    'Velocity',
    'VelocityCommand',
    'Path',
    'CarrotMarker',
    'LookaheadConfig',
    'LookaheadSelector',
    'PlanTransformer',
    'SpeedGate',
]

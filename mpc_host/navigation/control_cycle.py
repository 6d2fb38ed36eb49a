"""
控制周期模块
每个控制周期串联：路径裁剪 → 前视距离 → 前视点 → 减速判定 → 优化器，
并负责状态维护和动态参数更新
"""

import dataclasses
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from .. import config
from .exceptions import ControllerException
from .geometry import CarrotMarker, Path, Pose2D, PoseStamped, Velocity, VelocityCommand
from .interfaces import Costmap, Optimizer, TelemetrySink, TransformService
from .lookahead import LookaheadConfig, LookaheadSelector
from .plan_transformer import PlanTransformer
from .speed_gate import SpeedGate
from ..utils.telemetry import publish_best_effort


logger = logging.getLogger(__name__)


@dataclass
class ControllerState:
    """控制器状态（只在互斥锁内修改）"""
    closer_to_goal: bool = False
    slow_down: bool = False
    global_plan: Path = field(default_factory=lambda: Path(config.GLOBAL_FRAME))
    goal_pose: Optional[Pose2D] = None


@dataclass
class Parameter:
    """动态参数"""
    name: str
    value: Any


@dataclass
class SetParametersResult:
    """动态参数更新结果"""
    successful: bool
    reason: str = ''


# 动态参数名后缀 -> LookaheadConfig 字段
LOOKAHEAD_PARAMETERS = {
    'lookahead_dist_min': 'min_dist',
    'lookahead_dist_max': 'max_dist',
    'lookahead_dist_close_to_goal': 'close_to_goal_dist',
}


class ControlCycle:
    """控制周期（主控制器）

    控制周期与动态参数更新共用一把互斥锁：
    - compute_command / set_plan：阻塞获取
    - on_parameters_update：非阻塞尝试，拿不到锁立即拒绝，原配置保持不变

    Attributes:
        costmap: 局部代价地图
        optimizer: 外部优化器
        transformer: PlanTransformer
        lookahead: LookaheadSelector
        speed_gate: SpeedGate
        state: ControllerState
        control_frequency: 控制频率（Hz）

    Example:
        >>> controller = ControlCycle(costmap, tf_buffer, bridge)
        >>> controller.set_plan(global_plan)
        >>> cmd = controller.compute_command(robot_pose, robot_velocity)
    """

    def __init__(self,
                 costmap: Costmap,
                 transforms: TransformService,
                 optimizer: Optimizer,
                 lookahead_config: LookaheadConfig = None,
                 speed_gate: SpeedGate = None,
                 telemetry: Sequence[TelemetrySink] = (),
                 plugin_name: str = None,
                 control_frequency: float = None):
        """初始化控制周期

        Args:
            costmap: 局部代价地图
            transforms: 坐标变换服务
            optimizer: 外部优化器（通常是已连接的 OptimizerBridge）
            lookahead_config: 前视距离配置，None则使用config默认值
            speed_gate: 减速判定，None则按config阈值创建
            telemetry: 遥测输出列表
            plugin_name: 动态参数前缀，None则使用config.PLUGIN_NAME
            control_frequency: 控制频率（Hz），None则使用config.CONTROLLER_FREQUENCY
        """
        self.costmap = costmap
        self.optimizer = optimizer
        self.telemetry = list(telemetry)
        self.plugin_name = plugin_name if plugin_name else config.PLUGIN_NAME
        self.control_frequency = control_frequency if control_frequency is not None else config.CONTROLLER_FREQUENCY
        if not self.control_frequency > 0:
            raise ValueError(f"控制频率必须大于0，实际为{self.control_frequency}")

        self.transformer = PlanTransformer(costmap, transforms, self.telemetry)
        self.lookahead = LookaheadSelector(lookahead_config)
        self.speed_gate = speed_gate if speed_gate else SpeedGate(self.lookahead)

        self.state = ControllerState()
        self._lock = threading.Lock()

        logger.info(f"[{self.plugin_name}] 控制器初始化完成 "
                    f"(频率={self.control_frequency}Hz, 前视={self.lookahead.config})")

    @property
    def lookahead_config(self) -> LookaheadConfig:
        return self.lookahead.config

    @property
    def control_interval(self) -> float:
        """控制周期（秒）"""
        return 1.0 / self.control_frequency

    def set_plan(self, plan: Path):
        """设置新的全局路径

        终点与上一条路径不同视为新的导航目标，强制进入减速模式；
        终点相同则保持原减速状态

        Args:
            plan: 全局路径（控制器接管所有权，之后会被原地裁剪）
        """
        with self._lock:
            self.state.global_plan = plan

            if not plan.poses:
                logger.warning(f"[{self.plugin_name}] 收到空路径，下一周期将报错")
                return

            goal_pose = plan.poses[-1].pose
            if self.state.goal_pose != goal_pose:
                self.state.slow_down = True
                logger.info(f"[{self.plugin_name}] 新目标: "
                            f"({goal_pose.x:.2f}, {goal_pose.y:.2f}, {goal_pose.yaw:.2f})")
            self.state.goal_pose = goal_pose

    def compute_command(self, pose: PoseStamped, velocity: Velocity) -> VelocityCommand:
        """单个控制周期

        Args:
            pose: 机器人当前位姿（代价地图全局坐标系）
            velocity: 机器人当前速度

        Returns:
            优化器输出的速度指令

        Raises:
            ControllerException: 路径/变换/碰撞/优化器错误，本周期不产生指令
        """
        with self._lock:
            try:
                return self._compute_command_locked(pose, velocity)
            except ControllerException as e:
                logger.warning(f"[{self.plugin_name}] 控制周期失败: {type(e).__name__}: {e}")
                raise

    def _compute_command_locked(self, pose: PoseStamped, velocity: Velocity) -> VelocityCommand:
        state = self.state

        # 1. 裁剪全局路径并变换到本体坐标系
        local_plan = self.transformer.transform(state.global_plan, pose)
        state.closer_to_goal = self.lookahead.is_closer_to_goal(
            self.transformer.robot_pose, state.global_plan)

        # 2. 前视距离和前视点
        lookahead_dist = self.lookahead.select_lookahead_distance(
            velocity, state.closer_to_goal, state.slow_down)
        carrot = self.lookahead.select_carrot_point(lookahead_dist, local_plan)

        # 3. 当前位姿（不是前视点）的足迹代价
        footprint_cost = self.costmap.footprint_cost_at_pose(
            pose.x, pose.y, pose.yaw, self.costmap.robot_footprint)

        # 4. 减速判定，致命代价直接中止
        state.slow_down = self.speed_gate.evaluate(carrot, lookahead_dist, local_plan, footprint_cost)
        self.speed_gate.check_collision(footprint_cost)

        publish_best_effort(self.telemetry, 'publish_carrot',
                            CarrotMarker.from_pose(carrot, config.CARROT_MARKER_HEIGHT))

        # 5. 优化器
        return self.optimizer.solve(pose, velocity, carrot, state.goal_pose,
                                    state.closer_to_goal, self.control_interval)

    def on_parameters_update(self, parameters: List[Parameter]) -> SetParametersResult:
        """动态参数回调

        只处理 <plugin_name>.lookahead_dist_* 三个参数，其余忽略。
        整批参数先校验再一次性生效；控制周期运行中则直接拒绝。

        Args:
            parameters: 参数列表

        Returns:
            SetParametersResult（拒绝时带原因）
        """
        if not self._lock.acquire(blocking=False):
            reason = "控制器运行中，无法动态修改参数"
            logger.warning(f"[{self.plugin_name}] {reason}")
            return SetParametersResult(successful=False, reason=reason)

        try:
            prefix = self.plugin_name + '.'
            changes = {}

            for parameter in parameters:
                if not parameter.name.startswith(prefix):
                    continue
                key = LOOKAHEAD_PARAMETERS.get(parameter.name[len(prefix):])
                if key is None:
                    logger.debug(f"忽略未知参数: {parameter.name}")
                    continue
                if not isinstance(parameter.value, float):
                    return SetParametersResult(
                        successful=False,
                        reason=f"参数 {parameter.name} 类型错误，应为double，实际为{type(parameter.value).__name__}")
                changes[key] = parameter.value

            if not changes:
                return SetParametersResult(successful=True)

            try:
                new_config = dataclasses.replace(self.lookahead.config, **changes)
            except ValueError as e:
                return SetParametersResult(successful=False, reason=str(e))

            self.lookahead.config = new_config
            logger.info(f"[{self.plugin_name}] 前视距离已更新: {new_config}")
            return SetParametersResult(successful=True)
        finally:
            self._lock.release()

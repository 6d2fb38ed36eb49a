"""
控制周期测试
覆盖：正常周期、致命代价中止、路径设置语义、动态参数更新与互斥
"""

import threading

import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from mpc_host.environment import TransformBuffer
from mpc_host.navigation import (
    CollisionDetectedError, ControlCycle, EmptyPlanError, LookaheadConfig,
    OptimizerRequestError, Parameter, Path, Pose2D, PoseStamped, Velocity,
    VelocityCommand, create_controller
)


class FakeCostmap:
    size_in_cells_x = 100
    size_in_cells_y = 100
    resolution = 0.05
    global_frame_id = 'map'
    base_frame_id = 'base_link'
    robot_footprint = [(0.3, 0.2), (0.3, -0.2), (-0.3, -0.2), (-0.3, 0.2)]

    def __init__(self, cost=0):
        self.cost = cost
        self.queries = []

    def footprint_cost_at_pose(self, x, y, yaw, footprint):
        self.queries.append((x, y, yaw, list(footprint)))
        return self.cost


class FakeOptimizer:
    """记录请求，返回固定速度；during_solve 在求解过程中被调用"""

    def __init__(self, during_solve=None, error=None):
        self.calls = []
        self.during_solve = during_solve
        self.error = error

    def solve(self, pose, velocity, carrot, goal, closer_to_goal, control_interval):
        self.calls.append({
            'pose': pose,
            'velocity': velocity,
            'carrot': carrot,
            'goal': goal,
            'closer_to_goal': closer_to_goal,
            'control_interval': control_interval,
        })
        if self.during_solve:
            self.during_solve()
        if self.error:
            raise self.error
        return VelocityCommand(Velocity(0.3, 0.0, 0.1), 'base_link', pose.stamp)


class RecordingSink:
    def __init__(self):
        self.plans = []
        self.carrots = []

    def publish_local_plan(self, path):
        self.plans.append(path)

    def publish_carrot(self, marker):
        self.carrots.append(marker)


def straight_plan(length=3.0, step=0.25, frame='map'):
    n = int(round(length / step))
    return Path.from_points([(i * step, 0.0) for i in range(n + 1)], frame)


@pytest.fixture
def tf_buffer():
    buffer = TransformBuffer()
    buffer.set_transform('map', 'base_link', Pose2D())
    return buffer


@pytest.fixture
def robot(tf_buffer):
    """移动机器人：同时更新变换，返回 map 坐标系下的位姿"""
    def move(x, y=0.0, yaw=0.0):
        pose = Pose2D(x, y, yaw)
        tf_buffer.set_transform('map', 'base_link', pose)
        return PoseStamped(pose, 'map', 0.5)
    return move


@pytest.fixture
def costmap():
    return FakeCostmap()


@pytest.fixture
def optimizer():
    return FakeOptimizer()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def controller(costmap, tf_buffer, optimizer, sink):
    return ControlCycle(
        costmap, tf_buffer, optimizer,
        lookahead_config=LookaheadConfig(min_dist=0.3, max_dist=1.0, close_to_goal_dist=0.5),
        telemetry=[sink]
    )


# ============================================================================
# 控制周期
# ============================================================================

def test_controller_init(controller):
    """测试控制器初始化"""
    assert controller.plugin_name == 'FollowPath'
    assert controller.control_interval == pytest.approx(0.05)
    assert controller.state.slow_down is False
    assert controller.state.closer_to_goal is False
    assert controller.state.goal_pose is None


def test_compute_without_plan_raises(controller, robot):
    """测试未设置路径"""
    with pytest.raises(EmptyPlanError):
        controller.compute_command(robot(0.0), Velocity())


def test_first_cycle_after_new_goal_uses_min_distance(controller, robot, optimizer):
    """测试新目标后首个周期使用减速前视距离"""
    controller.set_plan(straight_plan())

    cmd = controller.compute_command(robot(0.0), Velocity(0.2, 0.0, 0.0))

    assert cmd.velocity.linear_x == 0.3
    assert len(optimizer.calls) == 1
    request = optimizer.calls[0]
    assert request['carrot'].frame_id == 'base_link'
    assert request['carrot'].x == pytest.approx(0.5)
    assert request['goal'] == Pose2D(3.0, 0.0, 0.0)
    assert request['closer_to_goal'] is False
    assert request['control_interval'] == pytest.approx(0.05)
    assert request['velocity'] == Velocity(0.2, 0.0, 0.0)
    # 前视点朝向正前方且代价为0 → 解除减速
    assert controller.state.slow_down is False


def test_second_cycle_uses_max_distance(controller, robot, optimizer):
    """测试解除减速后使用正常前视距离"""
    controller.set_plan(straight_plan())
    controller.compute_command(robot(0.0), Velocity())

    controller.compute_command(robot(0.1), Velocity())

    assert optimizer.calls[1]['carrot'].x == pytest.approx(1.15)


def test_close_to_goal(controller, robot, optimizer):
    """测试接近目标时切换策略并把终点作为前视点"""
    controller.set_plan(straight_plan())

    controller.compute_command(robot(2.8), Velocity())

    assert controller.state.closer_to_goal is True
    request = optimizer.calls[0]
    assert request['closer_to_goal'] is True
    assert request['carrot'].x == pytest.approx(0.2)


def test_footprint_cost_queried_at_current_pose(controller, robot, costmap):
    """测试足迹代价按当前位姿（不是前视点）计算"""
    controller.set_plan(straight_plan())

    controller.compute_command(robot(0.4, 0.1, 0.2), Velocity())

    x, y, yaw, footprint = costmap.queries[0]
    assert (x, y, yaw) == (0.4, 0.1, 0.2)
    assert footprint == costmap.robot_footprint


def test_telemetry_published(controller, robot, sink):
    """测试发布局部路径和前视点标记"""
    controller.set_plan(straight_plan())

    controller.compute_command(robot(0.0), Velocity())

    assert len(sink.plans) == 1
    assert len(sink.carrots) == 1
    marker = sink.carrots[0]
    assert marker.z == pytest.approx(0.01)
    assert marker.frame_id == 'base_link'
    assert marker.x == pytest.approx(0.5)


def test_high_cost_keeps_slow_down_when_turning(costmap, tf_buffer, optimizer, robot):
    """测试前视点偏差大且代价高时保持减速"""
    controller = ControlCycle(costmap, tf_buffer, optimizer)
    costmap.cost = 230
    plan = Path.from_points([(0.0, 0.0, 0.0), (0.0, 0.6, 1.57), (0.0, 1.2, 1.57)], 'map')
    controller.set_plan(plan)

    controller.compute_command(robot(0.0), Velocity())

    assert controller.state.slow_down is True


# ============================================================================
# 致命代价
# ============================================================================

def test_lethal_cost_never_reaches_optimizer(controller, robot, costmap, optimizer, sink):
    """测试足迹代价255 → 中止，不调用优化器"""
    costmap.cost = 255
    controller.set_plan(straight_plan())

    with pytest.raises(CollisionDetectedError):
        controller.compute_command(robot(0.0), Velocity())

    assert optimizer.calls == []
    assert sink.carrots == []


def test_optimizer_error_propagates(costmap, tf_buffer, robot):
    """测试优化器错误上抛"""
    optimizer = FakeOptimizer(error=OptimizerRequestError("超时"))
    controller = ControlCycle(costmap, tf_buffer, optimizer)
    controller.set_plan(straight_plan())

    with pytest.raises(OptimizerRequestError):
        controller.compute_command(robot(0.0), Velocity())


def test_lock_released_after_failure(controller, robot, costmap):
    """测试周期失败后锁被释放"""
    costmap.cost = 255
    controller.set_plan(straight_plan())

    with pytest.raises(CollisionDetectedError):
        controller.compute_command(robot(0.0), Velocity())

    result = controller.on_parameters_update([Parameter('FollowPath.lookahead_dist_max', 2.0)])
    assert result.successful is True


# ============================================================================
# set_plan 语义
# ============================================================================

def test_new_goal_forces_slow_down(controller):
    """测试新目标强制减速"""
    controller.set_plan(straight_plan())

    assert controller.state.slow_down is True
    assert controller.state.goal_pose == Pose2D(3.0, 0.0, 0.0)


def test_same_goal_keeps_slow_down_false(controller):
    """测试相同目标不改变减速状态（False保持False）"""
    controller.set_plan(straight_plan())
    controller.state.slow_down = False

    controller.set_plan(straight_plan())

    assert controller.state.slow_down is False


def test_same_goal_keeps_slow_down_true(controller):
    """测试相同目标不会清除减速状态"""
    controller.set_plan(straight_plan())

    controller.set_plan(straight_plan())

    assert controller.state.slow_down is True


def test_different_goal_sets_slow_down(controller):
    """测试终点不同视为新目标"""
    controller.set_plan(straight_plan())
    controller.state.slow_down = False

    controller.set_plan(straight_plan(length=2.0))

    assert controller.state.slow_down is True
    assert controller.state.goal_pose == Pose2D(2.0, 0.0, 0.0)


def test_set_plan_replaces_plan(controller):
    """测试路径被整体替换"""
    plan = straight_plan()
    controller.set_plan(plan)
    assert controller.state.global_plan is plan


def test_empty_plan_keeps_goal(controller, robot):
    """测试空路径：保留原目标，下一周期报错"""
    controller.set_plan(straight_plan())
    controller.set_plan(Path('map'))

    assert controller.state.goal_pose == Pose2D(3.0, 0.0, 0.0)
    with pytest.raises(EmptyPlanError):
        controller.compute_command(robot(0.0), Velocity())


# ============================================================================
# 动态参数
# ============================================================================

def test_parameters_update_all(controller):
    """测试三个前视距离参数同时更新"""
    result = controller.on_parameters_update([
        Parameter('FollowPath.lookahead_dist_min', 0.2),
        Parameter('FollowPath.lookahead_dist_max', 1.5),
        Parameter('FollowPath.lookahead_dist_close_to_goal', 0.4),
    ])

    assert result.successful is True
    assert controller.lookahead_config == LookaheadConfig(0.2, 1.5, 0.4)


def test_parameters_unknown_names_ignored(controller):
    """测试未知参数和其他前缀被忽略"""
    before = controller.lookahead_config

    result = controller.on_parameters_update([
        Parameter('FollowPath.max_speed', 3.0),
        Parameter('OtherController.lookahead_dist_max', 5.0),
        Parameter('lookahead_dist_max', 5.0),
    ])

    assert result.successful is True
    assert controller.lookahead_config == before


def test_parameters_wrong_type_rejects_batch(controller):
    """测试类型错误拒绝整批参数"""
    before = controller.lookahead_config

    result = controller.on_parameters_update([
        Parameter('FollowPath.lookahead_dist_min', 0.2),
        Parameter('FollowPath.lookahead_dist_max', 2),
    ])

    assert result.successful is False
    assert 'lookahead_dist_max' in result.reason
    assert controller.lookahead_config == before


def test_parameters_non_positive_rejects_batch(controller):
    """测试非正数值拒绝整批参数"""
    before = controller.lookahead_config

    result = controller.on_parameters_update([
        Parameter('FollowPath.lookahead_dist_max', 2.0),
        Parameter('FollowPath.lookahead_dist_min', -0.1),
    ])

    assert result.successful is False
    assert controller.lookahead_config == before


@pytest.mark.parametrize('value', [float('nan'), float('inf')])
def test_parameters_non_finite_rejected(controller, value):
    """测试非有限值参数被拒绝且配置不变"""
    before = controller.lookahead_config

    result = controller.on_parameters_update([Parameter('FollowPath.lookahead_dist_max', value)])

    assert result.successful is False
    assert controller.lookahead_config == before


@pytest.mark.parametrize('frequency', [0, 0.0, -20.0])
def test_explicit_non_positive_frequency_rejected(costmap, tf_buffer, optimizer, frequency):
    """测试显式传入的非正控制频率被拒绝，不会回退到默认值"""
    with pytest.raises(ValueError, match='控制频率'):
        ControlCycle(costmap, tf_buffer, optimizer, control_frequency=frequency)


def test_parameters_custom_plugin_name(costmap, tf_buffer, optimizer):
    """测试自定义参数前缀"""
    controller = ControlCycle(costmap, tf_buffer, optimizer, plugin_name='MPC')

    controller.on_parameters_update([
        Parameter('FollowPath.lookahead_dist_max', 2.0),
        Parameter('MPC.lookahead_dist_max', 3.0),
    ])

    assert controller.lookahead_config.max_dist == 3.0


def test_updated_distance_used_next_cycle(controller, robot, optimizer):
    """测试更新后的前视距离在下一周期生效"""
    controller.set_plan(straight_plan())
    controller.on_parameters_update([Parameter('FollowPath.lookahead_dist_min', 0.7)])

    controller.compute_command(robot(0.0), Velocity())

    assert optimizer.calls[0]['carrot'].x == pytest.approx(0.75)


def test_parameters_rejected_during_cycle(costmap, tf_buffer, robot):
    """测试控制周期持锁期间的参数更新被拒绝（同一线程内重入）"""
    results = []
    optimizer = FakeOptimizer()
    controller = ControlCycle(costmap, tf_buffer, optimizer)
    optimizer.during_solve = lambda: results.append(controller.on_parameters_update(
        [Parameter('FollowPath.lookahead_dist_max', 2.0)]))
    controller.set_plan(straight_plan())
    before = controller.lookahead_config

    controller.compute_command(robot(0.0), Velocity())

    assert len(results) == 1
    assert results[0].successful is False
    assert results[0].reason
    assert controller.lookahead_config == before


def test_parameters_rejected_from_other_thread(costmap, tf_buffer, robot):
    """测试另一线程在控制周期运行时更新参数被拒绝"""
    entered = threading.Event()
    release = threading.Event()

    def block():
        entered.set()
        release.wait(timeout=5.0)

    controller = ControlCycle(costmap, tf_buffer, FakeOptimizer(during_solve=block))
    controller.set_plan(straight_plan())
    before = controller.lookahead_config

    worker = threading.Thread(target=controller.compute_command, args=(robot(0.0), Velocity()))
    worker.start()
    try:
        assert entered.wait(timeout=5.0)
        result = controller.on_parameters_update([Parameter('FollowPath.lookahead_dist_min', 0.1)])
    finally:
        release.set()
        worker.join(timeout=5.0)

    assert result.successful is False
    assert controller.lookahead_config == before

    # 周期结束后可以正常更新
    assert controller.on_parameters_update(
        [Parameter('FollowPath.lookahead_dist_min', 0.1)]).successful is True


# ============================================================================
# 工厂函数
# ============================================================================

def test_create_controller_with_optimizer(costmap, tf_buffer, optimizer):
    """测试工厂函数（注入优化器，不连接网络）"""
    controller = create_controller(costmap, tf_buffer, optimizer, control_frequency=10.0)

    assert isinstance(controller, ControlCycle)
    assert controller.optimizer is optimizer
    assert controller.control_interval == pytest.approx(0.1)


if __name__ == '__main__':
    pytest.main([__file__, '-v'])

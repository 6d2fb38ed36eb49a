"""
mpc_host 主程序入口
闭环仿真演示：控制器 + 外部优化器 + 简单运动学积分

使用方法：
    python scripts/mock_optimizer.py --port 5555          # 另开终端启动模拟优化器
    python -m mpc_host.main --url socket://127.0.0.1:5555
    python -m mpc_host.main --obstacle --visualize --record
"""

import argparse
import math
import signal
import sys
import time

from . import config
from .communication import create_optimizer_bridge
from .environment import GridCostmap, TransformBuffer
from .navigation import (
    ControlCycle, ControllerException, OptimizerUnavailableError,
    Path, Pose2D, PoseStamped, Velocity
)
from .utils import PerformanceLogger, TelemetryRecorder, setup_all_loggers


# 运行标志（用于信号处理）
running = True


def signal_handler(sig, frame):
    """处理Ctrl+C信号"""
    global running
    print("\n\n[系统] 接收到中断信号，正在安全退出...")
    running = False


def build_demo_plan(step: float = 0.05) -> Path:
    """L形演示路径：(0,0) → (2,0) → (2,2)，全局坐标系"""
    points = []
    n = int(round(2.0 / step))
    for i in range(n + 1):
        points.append((i * step, 0.0))
    for i in range(1, n + 1):
        points.append((2.0, i * step))
    return Path.from_points(points, config.GLOBAL_FRAME)


def integrate(pose: Pose2D, cmd: Velocity, dt: float) -> Pose2D:
    """按本体速度积分一步（全向底盘运动学）"""
    v = max(-config.SIM_MAX_LINEAR_SPEED, min(config.SIM_MAX_LINEAR_SPEED, cmd.linear_x))
    vy = max(-config.SIM_MAX_LINEAR_SPEED, min(config.SIM_MAX_LINEAR_SPEED, cmd.linear_y))
    w = max(-config.SIM_MAX_ANGULAR_SPEED, min(config.SIM_MAX_ANGULAR_SPEED, cmd.angular_z))

    c, s = math.cos(pose.yaw), math.sin(pose.yaw)
    yaw = math.atan2(math.sin(pose.yaw + w * dt), math.cos(pose.yaw + w * dt))
    return Pose2D(pose.x + (v * c - vy * s) * dt, pose.y + (v * s + vy * c) * dt, yaw)


def main():
    """主函数"""
    parser = argparse.ArgumentParser(description='mpc_host 闭环仿真演示')
    parser.add_argument('--url', default=config.OPTIMIZER_URL, help='优化器pyserial URL')
    parser.add_argument('--steps', type=int, default=config.SIM_MAX_STEPS, help='最大仿真步数')
    parser.add_argument('--obstacle', action='store_true', help='在拐角附近放置高代价区域')
    parser.add_argument('--visualize', action='store_true', help='启用matplotlib可视化')
    parser.add_argument('--record', action='store_true', help='记录遥测数据')
    parser.add_argument('--realtime', action='store_true', help='按控制频率实时运行')
    args = parser.parse_args()

    loggers = setup_all_loggers()
    logger = loggers['main']
    perf = PerformanceLogger(logger)

    print("=" * 70)
    print(" mpc_host - MPC局部控制器闭环演示")
    print("=" * 70)
    print(config.get_config_summary())
    if not config.validate_config():
        sys.exit(1)

    signal.signal(signal.SIGINT, signal_handler)

    # 代价地图（odom坐标系）
    costmap = GridCostmap()
    if args.obstacle:
        costmap.fill_rect(2.3, -0.6, 2.8, 0.6, 220)

    # 坐标变换：map -> odom 固定，odom -> base_link 随机器人运动更新
    tf_buffer = TransformBuffer()
    tf_buffer.set_transform(config.GLOBAL_FRAME, config.ODOM_FRAME, Pose2D())
    robot = Pose2D()
    tf_buffer.set_transform(config.ODOM_FRAME, config.BASE_FRAME, robot)

    # 连接优化器
    print(f"[系统] 正在连接优化器: {args.url}")
    try:
        bridge = create_optimizer_bridge(args.url)
    except OptimizerUnavailableError as e:
        print(f"[错误] {e}")
        print("  请先启动优化器，例如: python scripts/mock_optimizer.py --port 5555")
        sys.exit(1)

    # 遥测
    telemetry = []
    recorder = None
    if args.record or config.ENABLE_TELEMETRY_RECORDING:
        recorder = TelemetryRecorder(config.TELEMETRY_DIR)
        recorder.start_recording('demo_run')
        telemetry.append(recorder)
    if args.visualize or config.VISUALIZE_ENABLE:
        from .visualization import TrackingVisualizer
        telemetry.append(TrackingVisualizer(footprint=costmap.robot_footprint, interactive=True))

    controller = ControlCycle(costmap, tf_buffer, bridge, telemetry=telemetry)
    plan = build_demo_plan()
    goal = plan.poses[-1].pose
    controller.set_plan(plan)

    velocity = Velocity()
    dt = controller.control_interval
    reached = False

    try:
        for step in range(args.steps):
            if not running:
                break

            pose = PoseStamped(robot, config.ODOM_FRAME, step * dt)

            start = time.time()
            try:
                cmd = controller.compute_command(pose, velocity)
            except ControllerException as e:
                print(f"[控制器] ⚠️ 第{step}步失败，停车: {type(e).__name__}: {e}")
                break
            perf.log_execution_time('compute_command', time.time() - start)

            if recorder:
                recorder.record_command(cmd)

            velocity = cmd.velocity
            robot = integrate(robot, velocity, dt)
            tf_buffer.set_transform(config.ODOM_FRAME, config.BASE_FRAME, robot, stamp=step * dt)

            if step % 20 == 0:
                print(f"[仿真] 步数:{step:4d} 位姿:({robot.x:5.2f}, {robot.y:5.2f}, {robot.yaw:5.2f}) "
                      f"v={velocity.linear_x:4.2f} w={velocity.angular_z:5.2f} "
                      f"减速={controller.state.slow_down} 接近目标={controller.state.closer_to_goal}")

            if robot.distance_to(goal) < config.SIM_GOAL_TOLERANCE:
                reached = True
                print(f"\n✅ 到达目标！总步数: {step + 1}")
                break

            if args.realtime:
                time.sleep(max(0.0, dt - (time.time() - start)))
        else:
            print(f"\n⚠️  达到最大步数 {args.steps}，未到达目标")

    finally:
        print("\n[系统] 正在关闭...")
        if recorder:
            recorder.stop_recording()
        bridge.close()
        stats = perf.get_statistics('compute_command')
        if stats:
            print(f"[性能] 控制周期: {stats['count']}次, 平均{stats['avg']*1000:.2f}ms, "
                  f"最大{stats['max']*1000:.2f}ms")
        print("[系统] 已安全退出")

    sys.exit(0 if reached else 2)


if __name__ == "__main__":
    main()

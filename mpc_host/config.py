# config.py - mpc_host 统一配置文件
# 修改此文件后，重启程序即可生效

import math

# ============================================================================
# 优化器通信配置
# ============================================================================
# pyserial URL：'socket://host:port' (TCP)，'/dev/ttyUSB0' (串口)，'loop://' (回环测试)
OPTIMIZER_URL = 'socket://127.0.0.1:5555'
OPTIMIZER_BAUDRATE = 115200        # 仅对真实串口有效
OPTIMIZER_TIMEOUT = 1.0            # 单次请求超时（秒），超时即本周期失败，不重试

# 启动时等待优化器服务（有界重试 + 指数退避）
OPTIMIZER_CONNECT_RETRIES = 10     # 最大尝试次数
OPTIMIZER_RETRY_INTERVAL = 1.0     # 首次重试间隔（秒）
OPTIMIZER_RETRY_BACKOFF = 1.5      # 退避倍率
OPTIMIZER_RETRY_MAX_INTERVAL = 5.0 # 单次重试间隔上限（秒）

# ============================================================================
# 控制器配置
# ============================================================================
PLUGIN_NAME = 'FollowPath'         # 动态参数前缀：<PLUGIN_NAME>.lookahead_dist_min
CONTROLLER_FREQUENCY = 20.0        # 控制循环频率（Hz），control_interval = 1/频率

GLOBAL_FRAME = 'map'               # 全局路径坐标系
ODOM_FRAME = 'odom'                # 代价地图全局坐标系
BASE_FRAME = 'base_link'           # 机器人本体坐标系（局部路径坐标系）

# ============================================================================
# 前视距离配置（运行时可动态修改）
# ============================================================================
LOOKAHEAD_DIST_MIN = 0.5           # 减速模式前视距离（米）
LOOKAHEAD_DIST_MAX = 0.5           # 正常模式前视距离（米）
LOOKAHEAD_DIST_CLOSE_TO_GOAL = 0.5 # 接近目标时的前视距离，同时也是"接近目标"的判定阈值（米）

# ============================================================================
# 减速判定配置
# ============================================================================
SLOW_DOWN_HEADING_THRESHOLD = 1.0  # 前视点朝向偏差阈值（弧度）
SLOW_DOWN_COST_THRESHOLD = 200     # 足迹代价阈值（>200 才允许减速）
LETHAL_COST = 255                  # 致命代价（碰撞），本周期直接中止

# ============================================================================
# 遥测配置
# ============================================================================
CARROT_MARKER_HEIGHT = 0.01        # 前视点标记高度（米），略高于地图平面便于显示

ENABLE_TELEMETRY_RECORDING = False
TELEMETRY_DIR = 'data/telemetry'

# ============================================================================
# 演示用代价地图 / 机器人参数
# ============================================================================
COSTMAP_WIDTH = 120                # 栅格数量（X方向）
COSTMAP_HEIGHT = 120               # 栅格数量（Y方向）
COSTMAP_RESOLUTION = 0.05          # 米/栅格
COSTMAP_ORIGIN_X = -3.0            # 栅格(0,0)左下角的世界坐标（米）
COSTMAP_ORIGIN_Y = -3.0

# 机器人足迹多边形（本体坐标系，米）
ROBOT_FOOTPRINT = [
    (0.30, 0.22),
    (0.30, -0.22),
    (-0.30, -0.22),
    (-0.30, 0.22),
]

# 仿真机器人
SIM_MAX_LINEAR_SPEED = 0.6         # m/s
SIM_MAX_ANGULAR_SPEED = 1.2        # rad/s
SIM_GOAL_TOLERANCE = 0.1           # 到达判定（米）
SIM_MAX_STEPS = 600

# ============================================================================
# 可视化配置
# ============================================================================
VISUALIZE_ENABLE = False
VISUALIZE_WINDOW_SIZE = (8, 8)     # 窗口大小（英寸，matplotlib figsize）
VISUALIZE_VIEW_RANGE = 3.0         # 本体坐标系显示范围（米）

# ============================================================================
# 日志配置
# ============================================================================
LOG_DIR = 'data/logs'
LOG_LEVEL = 'INFO'                 # DEBUG | INFO | WARNING | ERROR
ENABLE_FILE_LOG = True
ENABLE_CONSOLE_LOG = True
LOG_FORMAT = '[%(asctime)s] %(name)s - %(levelname)s - %(message)s'
LOG_DATE_FORMAT = '%H:%M:%S'

# ============================================================================
# 辅助函数
# ============================================================================

def get_config_summary():
    """获取配置摘要（用于调试）"""
    return f"""
╔════════════════════════════════════════════════════════════════╗
║                    mpc_host 配置摘要                           ║
╠════════════════════════════════════════════════════════════════╣
║ 优化器: {OPTIMIZER_URL} (超时{OPTIMIZER_TIMEOUT}s, 重试{OPTIMIZER_CONNECT_RETRIES}次)
║ 控制器: {PLUGIN_NAME} @ {CONTROLLER_FREQUENCY}Hz
║ 坐标系: {GLOBAL_FRAME} -> {ODOM_FRAME} -> {BASE_FRAME}
║ 前视: min={LOOKAHEAD_DIST_MIN}m, max={LOOKAHEAD_DIST_MAX}m, goal={LOOKAHEAD_DIST_CLOSE_TO_GOAL}m
║ 减速: 偏差>={SLOW_DOWN_HEADING_THRESHOLD}rad 且 代价>{SLOW_DOWN_COST_THRESHOLD}
║ 日志: {LOG_LEVEL} -> {LOG_DIR}
╚════════════════════════════════════════════════════════════════╝
    """


def validate_config():
    """验证配置参数的合理性"""
    errors = []
    warnings = []

    # 检查关键参数
    if CONTROLLER_FREQUENCY <= 0:
        errors.append("CONTROLLER_FREQUENCY 必须大于0")
    if OPTIMIZER_TIMEOUT <= 0:
        errors.append("OPTIMIZER_TIMEOUT 必须大于0")
    if OPTIMIZER_CONNECT_RETRIES < 1:
        errors.append("OPTIMIZER_CONNECT_RETRIES 至少为1")
    if COSTMAP_RESOLUTION <= 0:
        errors.append("COSTMAP_RESOLUTION 必须大于0")
    for name, value in (('LOOKAHEAD_DIST_MIN', LOOKAHEAD_DIST_MIN),
                        ('LOOKAHEAD_DIST_MAX', LOOKAHEAD_DIST_MAX),
                        ('LOOKAHEAD_DIST_CLOSE_TO_GOAL', LOOKAHEAD_DIST_CLOSE_TO_GOAL)):
        if value <= 0:
            errors.append(f"{name} 必须大于0")
    if not 0 <= SLOW_DOWN_COST_THRESHOLD < LETHAL_COST:
        errors.append("SLOW_DOWN_COST_THRESHOLD 必须位于 [0, LETHAL_COST) 区间")

    # 检查合理性
    if LOOKAHEAD_DIST_MIN > LOOKAHEAD_DIST_MAX:
        warnings.append("LOOKAHEAD_DIST_MIN 大于 LOOKAHEAD_DIST_MAX，减速模式反而看得更远")
    if SLOW_DOWN_HEADING_THRESHOLD >= math.pi:
        warnings.append(f"SLOW_DOWN_HEADING_THRESHOLD={SLOW_DOWN_HEADING_THRESHOLD}rad 不小于π，朝向判定永远不会触发")
    if OPTIMIZER_RETRY_INTERVAL > OPTIMIZER_RETRY_MAX_INTERVAL:
        warnings.append("OPTIMIZER_RETRY_INTERVAL 大于 OPTIMIZER_RETRY_MAX_INTERVAL，将被截断")

    # 打印结果
    if errors:
        print("❌ 配置错误:")
        for err in errors:
            print(f"   - {err}")

    if warnings:
        print("⚠️  配置警告:")
        for warn in warnings:
            print(f"   - {warn}")

    if not errors and not warnings:
        print("✅ 配置验证通过")

    return len(errors) == 0

# ============================================================================
# 自动执行（导入时）
# ============================================================================

if __name__ == '__main__':
    # 如果直接运行此文件，显示配置摘要
    print(get_config_summary())
    validate_config()

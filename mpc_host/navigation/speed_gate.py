"""
减速判定模块
根据前视点朝向偏差和足迹代价决定是否进入减速模式
"""

import logging

from .. import config
from .exceptions import CollisionDetectedError
from .geometry import Path, PoseStamped, normalize_angle
from .lookahead import LookaheadSelector


logger = logging.getLogger(__name__)


class SpeedGate:
    """减速判定（带滞回）

    判定规则（偏差 = 前视点在本体坐标系下的航向绝对值）：
    - 偏差 < 阈值：清除减速；再独立采样一次前视点，若其偏差 >= 阈值
      且足迹代价 > 代价阈值，则减速
    - 偏差 >= 阈值：仅当足迹代价 > 代价阈值时减速

    减速后前视距离变短，LookaheadSelector 的距离策略与本判定共同构成滞回。

    Attributes:
        selector: 用于二次采样的前视点选择器
        heading_threshold: 朝向偏差阈值（弧度）
        cost_threshold: 足迹代价阈值
        lethal_cost: 致命代价
    """

    def __init__(self, selector: LookaheadSelector,
                 heading_threshold: float = config.SLOW_DOWN_HEADING_THRESHOLD,
                 cost_threshold: int = config.SLOW_DOWN_COST_THRESHOLD,
                 lethal_cost: int = config.LETHAL_COST):
        self.selector = selector
        self.heading_threshold = heading_threshold
        self.cost_threshold = cost_threshold
        self.lethal_cost = lethal_cost

    @staticmethod
    def heading_deviation(pose: PoseStamped) -> float:
        """本体坐标系下位姿的朝向偏差（弧度，[0, π]）"""
        return abs(normalize_angle(pose.pose.yaw))

    def evaluate(self, carrot: PoseStamped, lookahead_dist: float,
                 local_plan: Path, footprint_cost: float) -> bool:
        """判定是否应当减速

        Args:
            carrot: 前视点（本体坐标系）
            lookahead_dist: 选择前视点时使用的前视距离
            local_plan: 本体坐标系下的局部路径
            footprint_cost: 机器人当前位姿的足迹代价

        Returns:
            是否减速
        """
        costly = footprint_cost > self.cost_threshold

        if self.heading_deviation(carrot) < self.heading_threshold:
            slow_down = False
            # 二次采样前视点
            check_pose = self.selector.select_carrot_point(lookahead_dist, local_plan)
            if self.heading_deviation(check_pose) >= self.heading_threshold and costly:
                slow_down = True
        else:
            slow_down = costly

        logger.debug(f"减速判定: 偏差={self.heading_deviation(carrot):.2f}rad, "
                     f"代价={footprint_cost}, 减速={slow_down}")
        return slow_down

    def check_collision(self, footprint_cost: float):
        """足迹代价为致命值时中止本周期

        Raises:
            CollisionDetectedError
        """
        if footprint_cost == self.lethal_cost:
            raise CollisionDetectedError(f"MPC检测到碰撞！足迹代价={footprint_cost}")

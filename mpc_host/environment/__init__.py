"""
环境模块
栅格代价地图与坐标变换（控制核心的外部协作者）
"""

from .costmap import GridCostmap, CostmapConfig, FootprintCollisionChecker, LETHAL_COST
from .transforms import TransformBuffer

__all__ = [
    'GridCostmap',
    'CostmapConfig',
    'FootprintCollisionChecker',
    'LETHAL_COST',
    'TransformBuffer',
]

"""
控制器异常定义
所有周期内错误都会中止当前控制周期并上抛给调用方（由调用方负责停车等安全兜底）
"""


class ControllerException(Exception):
    """控制器异常基类"""


class EmptyPlanError(ControllerException):
    """尚未设置全局路径，或路径没有任何位姿"""


class FrameTransformError(ControllerException):
    """位姿无法变换到目标坐标系"""


class EmptyWindowError(ControllerException):
    """裁剪后的局部路径为空（机器人偏离路径超过有效半径）"""


class CollisionDetectedError(ControllerException):
    """当前位姿足迹代价为致命值，本周期中止，不调用优化器"""


class OptimizerUnavailableError(ControllerException):
    """启动时无法连接优化器服务"""


class OptimizerRequestError(ControllerException):
    """优化器请求失败（通道错误、超时、响应异常）"""

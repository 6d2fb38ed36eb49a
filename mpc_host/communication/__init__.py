"""
通信模块
与外部轨迹优化器的请求/响应通道
"""

from .optimizer_bridge import OptimizerBridge
from .protocol import MessageType, OptimizerRequest, OptimizerResponse


def create_optimizer_bridge(url: str = None, connect: bool = True, **kwargs) -> OptimizerBridge:
    """
    工厂函数：创建（并连接）优化器桥接对象

    Args:
        url: pyserial URL，如 'socket://127.0.0.1:5555'、'/dev/ttyUSB0'
        connect: 是否立即连接（阻塞，有界重试）
        **kwargs: 透传给 OptimizerBridge

    Returns:
        OptimizerBridge对象

    Raises:
        OptimizerUnavailableError: connect=True 且连接失败

    Example:
        >>> bridge = create_optimizer_bridge('socket://127.0.0.1:5555', timeout=0.5)
    """
    bridge = OptimizerBridge(url=url, **kwargs)
    if connect:
        bridge.connect()
    return bridge


__all__ = [
    'OptimizerBridge',
    'create_optimizer_bridge',
    'MessageType',
    'OptimizerRequest',
    'OptimizerResponse',
]

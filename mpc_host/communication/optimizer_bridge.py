"""
优化器通信模块
负责与外部轨迹优化器的请求/响应交换（JSON行协议，pyserial通道）
"""

import json
import logging
import time
from typing import Callable, Optional

import serial

from .. import config
from ..navigation.exceptions import OptimizerRequestError, OptimizerUnavailableError
from ..navigation.geometry import Pose2D, PoseStamped, Velocity, VelocityCommand
from .protocol import MessageType, OptimizerRequest, OptimizerResponse


logger = logging.getLogger(__name__)


class OptimizerBridge:
    """优化器桥接类

    通过 pyserial 的 URL 通道（socket://、串口、loop://）与优化器进程通信：
    - 启动：有界重试 + 指数退避连接，每次尝试都记录日志
    - 运行：每个控制周期一次阻塞的请求/响应，超时或出错即本周期失败

    Example:
        >>> bridge = OptimizerBridge('socket://127.0.0.1:5555')
        >>> bridge.connect()
        >>> cmd = bridge.solve(pose, speed, carrot, goal, False, 0.05)
        >>> print(cmd.velocity.linear_x)
        >>> bridge.close()
    """

    def __init__(self,
                 url: str = None,
                 timeout: float = None,
                 baudrate: int = None,
                 connect_retries: int = None,
                 retry_interval: float = None,
                 retry_backoff: float = None,
                 max_retry_interval: float = None,
                 serial_factory: Callable = None,
                 sleep: Callable[[float], None] = time.sleep):
        """初始化优化器桥接

        Args:
            url: pyserial URL，None则使用config.OPTIMIZER_URL
            timeout: 单次请求超时（秒）
            baudrate: 波特率（仅真实串口有效）
            connect_retries: 启动时最大连接尝试次数
            retry_interval: 首次重试间隔（秒）
            retry_backoff: 退避倍率
            max_retry_interval: 重试间隔上限（秒）
            serial_factory: 通道工厂，默认 serial.serial_for_url
            sleep: 重试等待函数（测试时可替换）
        """
        self.url = url if url else config.OPTIMIZER_URL
        self.timeout = timeout if timeout is not None else config.OPTIMIZER_TIMEOUT
        self.baudrate = baudrate if baudrate is not None else config.OPTIMIZER_BAUDRATE
        self.connect_retries = connect_retries if connect_retries is not None else config.OPTIMIZER_CONNECT_RETRIES
        self.retry_interval = retry_interval if retry_interval is not None else config.OPTIMIZER_RETRY_INTERVAL
        self.retry_backoff = retry_backoff if retry_backoff is not None else config.OPTIMIZER_RETRY_BACKOFF
        self.max_retry_interval = (max_retry_interval if max_retry_interval is not None
                                   else config.OPTIMIZER_RETRY_MAX_INTERVAL)
        self.serial_factory = serial_factory if serial_factory else serial.serial_for_url
        self._sleep = sleep

        if not self.timeout > 0:
            raise ValueError(f"请求超时必须大于0，实际为{self.timeout}")
        if self.connect_retries < 1:
            raise ValueError(f"连接尝试次数至少为1，实际为{self.connect_retries}")

        self.serial: Optional[serial.SerialBase] = None
        self._request_id = 0
        self._buffer = ""

    def connect(self):
        """连接优化器服务（阻塞，有界重试）

        Raises:
            OptimizerUnavailableError: 重试次数用尽仍无法连接
        """
        delay = min(self.retry_interval, self.max_retry_interval)
        last_error = None

        for attempt in range(1, self.connect_retries + 1):
            try:
                self.serial = self.serial_factory(
                    self.url,
                    baudrate=self.baudrate,
                    timeout=min(self.timeout, 0.1),
                    write_timeout=self.timeout
                )
                self._buffer = ""
                logger.info(f"优化器已连接: {self.url}")
                return
            except (serial.SerialException, OSError) as e:
                last_error = e
                logger.info(f"优化器服务不可用 ({attempt}/{self.connect_retries}): {e}")

            if attempt < self.connect_retries:
                logger.info(f"{delay:.1f}秒后重试...")
                self._sleep(delay)
                delay = min(delay * self.retry_backoff, self.max_retry_interval)

        logger.error(f"无法连接优化器服务: {self.url}")
        raise OptimizerUnavailableError(
            f"优化器服务不可用: {self.url}，已尝试{self.connect_retries}次 ({last_error})")

    def close(self):
        """关闭通道"""
        if self.serial and self.serial.is_open:
            self.serial.close()
            logger.info("优化器通道已关闭")

    def is_connected(self) -> bool:
        """检查通道是否已打开"""
        return self.serial is not None and self.serial.is_open

    def solve(self, pose: PoseStamped, velocity: Velocity, carrot: PoseStamped,
              goal: Pose2D, closer_to_goal: bool,
              control_interval: float) -> VelocityCommand:
        """发送一次优化请求并阻塞等待速度指令

        Args:
            pose: 机器人当前位姿
            velocity: 机器人当前速度
            carrot: 前视点（本体坐标系）
            goal: 全局路径终点
            closer_to_goal: 是否接近目标（优化器据此切换策略）
            control_interval: 控制周期（秒）

        Returns:
            优化器输出的速度指令

        Raises:
            OptimizerRequestError: 通道错误、超时、响应格式错误或优化器报错
        """
        if not self.is_connected():
            raise OptimizerRequestError("优化器未连接")

        self._request_id += 1
        request = OptimizerRequest(
            request_id=self._request_id,
            current_vel=velocity,
            carrot_pose=carrot,
            goal_pose=goal,
            current_pose=pose,
            switch_opt=closer_to_goal,
            control_interval=control_interval,
            timestamp=time.time()
        )

        try:
            self.serial.write((request.to_json() + '\n').encode('utf-8'))
            logger.debug(f"发送优化请求 #{request.request_id}")
            response = self._wait_response(request.request_id)
        except serial.SerialException as e:
            raise OptimizerRequestError(f"优化器通道错误: {e}") from e

        if response.error is not None:
            raise OptimizerRequestError(f"优化器返回错误: {response.error}")

        return response.output_vel

    def _wait_response(self, request_id: int) -> OptimizerResponse:
        """读取直到收到匹配序号的响应或超时"""
        deadline = time.monotonic() + self.timeout

        while time.monotonic() < deadline:
            chunk = self.serial.readline()
            if not chunk:
                continue

            self._buffer += chunk.decode('utf-8', errors='ignore')

            # 按行处理（readline 超时可能只返回半行）
            while '\n' in self._buffer:
                line, self._buffer = self._buffer.split('\n', 1)
                response = self._parse_line(line.strip(), request_id)
                if response is not None:
                    return response

        raise OptimizerRequestError(f"优化器响应超时 ({self.timeout}s)，请求 #{request_id}")

    def _parse_line(self, line: str, request_id: int) -> Optional[OptimizerResponse]:
        """解析一行数据，不是本次请求的响应时返回None"""
        if not line:
            return None

        try:
            message = json.loads(line)
        except json.JSONDecodeError as e:
            logger.warning(f"JSON解析错误: {line[:50]}... 错误: {e}")
            return None

        if not isinstance(message, dict):
            return None

        if message.get('type') not in (MessageType.CMD_VEL, MessageType.ERROR):
            logger.debug(f"跳过非响应消息: {message.get('type')}")
            return None

        if message.get('id') != request_id:
            logger.debug(f"跳过过期响应 #{message.get('id')}（等待 #{request_id}）")
            return None

        try:
            return OptimizerResponse.from_message(message)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise OptimizerRequestError(f"优化器响应格式错误: {e}") from e

"""
优化器通信协议定义
定义 Python 主机端与外部轨迹优化器之间传输的数据结构

帧格式：每行一个 JSON 对象
    请求  {"type": "OPTIMIZE", "id": 7, "timestamp": 12.3, "data": {...}}
    响应  {"type": "CMD_VEL", "id": 7, "data": {"output_vel": {...}}}
    错误  {"type": "ERROR", "id": 7, "message": "..."}
"""

import json
from dataclasses import dataclass
from typing import Optional

from ..navigation.geometry import Pose2D, PoseStamped, Velocity, VelocityCommand


class MessageType:
    """消息类型定义"""
    OPTIMIZE = "OPTIMIZE"   # 优化请求
    CMD_VEL = "CMD_VEL"     # 速度指令响应
    ERROR = "ERROR"         # 优化器错误


def pose_to_dict(pose: Pose2D) -> dict:
    qx, qy, qz, qw = pose.quaternion
    return {
        'position': {'x': pose.x, 'y': pose.y, 'z': 0.0},
        'orientation': {'x': qx, 'y': qy, 'z': qz, 'w': qw}
    }


def pose_from_dict(data: dict) -> Pose2D:
    position = data['position']
    orientation = data['orientation']
    return Pose2D.from_quaternion(
        float(position['x']), float(position['y']),
        float(orientation['x']), float(orientation['y']),
        float(orientation['z']), float(orientation['w'])
    )


def stamped_to_dict(stamped: PoseStamped) -> dict:
    return {
        'header': {'frame_id': stamped.frame_id, 'stamp': stamped.stamp},
        'pose': pose_to_dict(stamped.pose)
    }


def stamped_from_dict(data: dict) -> PoseStamped:
    header = data.get('header', {})
    return PoseStamped(pose_from_dict(data['pose']),
                       header.get('frame_id', ''), float(header.get('stamp', 0.0)))


def twist_to_dict(velocity: Velocity) -> dict:
    return {
        'linear': {'x': velocity.linear_x, 'y': velocity.linear_y, 'z': 0.0},
        'angular': {'x': 0.0, 'y': 0.0, 'z': velocity.angular_z}
    }


def twist_from_dict(data: dict) -> Velocity:
    return Velocity(
        linear_x=float(data['linear']['x']),
        linear_y=float(data['linear'].get('y', 0.0)),
        angular_z=float(data['angular']['z'])
    )


@dataclass
class OptimizerRequest:
    """优化请求

    Attributes:
        request_id: 请求序号（用于匹配响应）
        current_vel: 机器人当前速度
        carrot_pose: 前视点（本体坐标系）
        goal_pose: 全局路径终点
        current_pose: 机器人当前位姿
        switch_opt: 是否切换到接近目标时的优化策略
        control_interval: 控制周期（秒）
        timestamp: 发送时间
    """
    request_id: int
    current_vel: Velocity
    carrot_pose: PoseStamped
    goal_pose: Pose2D
    current_pose: PoseStamped
    switch_opt: bool
    control_interval: float
    timestamp: float = 0.0

    def to_json(self) -> str:
        return json.dumps({
            'type': MessageType.OPTIMIZE,
            'id': self.request_id,
            'timestamp': self.timestamp,
            'data': {
                'current_vel': twist_to_dict(self.current_vel),
                'carrot_pose': stamped_to_dict(self.carrot_pose),
                'goal_pose': pose_to_dict(self.goal_pose),
                'current_pose': stamped_to_dict(self.current_pose),
                'switch_opt': self.switch_opt,
                'control_interval': self.control_interval
            }
        })

    @classmethod
    def from_message(cls, message: dict) -> 'OptimizerRequest':
        """从已解析的JSON对象还原（优化器端使用）"""
        data = message['data']
        return cls(
            request_id=int(message['id']),
            current_vel=twist_from_dict(data['current_vel']),
            carrot_pose=stamped_from_dict(data['carrot_pose']),
            goal_pose=pose_from_dict(data['goal_pose']),
            current_pose=stamped_from_dict(data['current_pose']),
            switch_opt=bool(data['switch_opt']),
            control_interval=float(data['control_interval']),
            timestamp=float(message.get('timestamp', 0.0))
        )


@dataclass
class OptimizerResponse:
    """优化响应

    Attributes:
        request_id: 对应的请求序号
        output_vel: 输出速度指令
        error: 优化器返回的错误信息（成功时为None）
    """
    request_id: int
    output_vel: Optional[VelocityCommand] = None
    error: Optional[str] = None

    def to_json(self) -> str:
        if self.error is not None:
            return json.dumps({
                'type': MessageType.ERROR,
                'id': self.request_id,
                'message': self.error
            })

        cmd = self.output_vel
        return json.dumps({
            'type': MessageType.CMD_VEL,
            'id': self.request_id,
            'data': {
                'output_vel': {
                    'header': {'frame_id': cmd.frame_id, 'stamp': cmd.stamp},
                    'twist': twist_to_dict(cmd.velocity)
                }
            }
        })

    @classmethod
    def from_message(cls, message: dict) -> 'OptimizerResponse':
        """从已解析的JSON对象还原

        Raises:
            AttributeError, KeyError, TypeError, ValueError: 字段缺失或类型错误
        """
        request_id = int(message['id'])

        if message['type'] == MessageType.ERROR:
            return cls(request_id, error=str(message.get('message', '')))

        output = message['data']['output_vel']
        header = output.get('header', {})
        command = VelocityCommand(
            velocity=twist_from_dict(output['twist']),
            frame_id=header.get('frame_id', ''),
            stamp=float(header.get('stamp', 0.0))
        )
        return cls(request_id, output_vel=command)

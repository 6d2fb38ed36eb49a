"""
遥测记录与回放模块
记录局部路径、前视点和速度指令，支持离线分析和回放
"""

import json
import logging
import pickle
import time
from datetime import datetime
from pathlib import Path
from typing import Iterable


logger = logging.getLogger(__name__)


def publish_best_effort(sinks: Iterable, method: str, message) -> int:
    """向所有遥测输出发布消息，失败只记录警告，不向上抛出

    Args:
        sinks: 遥测输出列表
        method: 方法名，如 'publish_local_plan'
        message: 消息对象

    Returns:
        发布成功的输出数量
    """
    delivered = 0
    for sink in sinks:
        try:
            getattr(sink, method)(message)
            delivered += 1
        except Exception as e:
            logger.warning(f"遥测发布失败 ({type(sink).__name__}.{method}): {e}")
    return delivered


def _pose_to_dict(stamped) -> dict:
    return {'x': stamped.pose.x, 'y': stamped.pose.y, 'yaw': stamped.pose.yaw}


class TelemetryRecorder:
    """遥测记录器

    实现 TelemetrySink 接口，可直接挂到 ControlCycle 上：
    - 记录局部路径、前视点标记、速度指令
    - 保存为pickle或JSON格式
    - 支持数据回放

    Example:
        >>> recorder = TelemetryRecorder()
        >>> recorder.start_recording('run.pkl')
        >>> controller = ControlCycle(costmap, tf_buffer, bridge, telemetry=[recorder])
        >>> ...
        >>> recorder.stop_recording()
        >>>
        >>> # 回放
        >>> recorder.load_recording(recorder.current_file)
        >>> for frame in recorder.replay(speed=0):
        >>>     print(frame['type'])
    """

    def __init__(self, data_dir: str = 'data/telemetry'):
        """初始化遥测记录器

        Args:
            data_dir: 数据保存目录
        """
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)

        self.recording = False
        self.current_file = None
        self.format = 'pickle'
        self.start_time = 0

        # 数据缓冲区
        self.frames = []

        # 统计信息
        self.stats = {
            'local_plan_count': 0,
            'carrot_count': 0,
            'command_count': 0,
            'duration': 0
        }

    def start_recording(self, filename: str, format: str = 'pickle') -> bool:
        """开始记录

        Args:
            filename: 文件名
            format: 'pickle' 或 'json'
        """
        if self.recording:
            logger.warning("已在记录中，请先停止")
            return False

        # 添加时间戳到文件名
        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        base_name = Path(filename).stem
        ext = '.pkl' if format == 'pickle' else '.json'

        self.current_file = self.data_dir / f"{base_name}_{timestamp}{ext}"
        self.format = format
        self.recording = True
        self.start_time = time.time()
        self.frames = []

        # 重置统计
        for key in self.stats:
            self.stats[key] = 0

        logger.info(f"开始记录遥测: {self.current_file}")
        return True

    def _append(self, frame_type: str, data: dict, stat_key: str):
        self.frames.append({
            'type': frame_type,
            'timestamp': time.time() - self.start_time,
            'data': data
        })
        self.stats[stat_key] += 1

    # ========== TelemetrySink 接口 ==========

    def publish_local_plan(self, path):
        """记录局部路径"""
        if not self.recording:
            return

        self._append('local_plan', {
            'frame_id': path.frame_id,
            'stamp': path.stamp,
            'poses': [_pose_to_dict(p) for p in path.poses]
        }, 'local_plan_count')

    def publish_carrot(self, marker):
        """记录前视点标记"""
        if not self.recording:
            return

        self._append('carrot', {
            'frame_id': marker.frame_id,
            'stamp': marker.stamp,
            'x': marker.x,
            'y': marker.y,
            'z': marker.z
        }, 'carrot_count')

    def record_command(self, command):
        """记录速度指令"""
        if not self.recording:
            return

        self._append('command', {
            'frame_id': command.frame_id,
            'stamp': command.stamp,
            'linear_x': command.velocity.linear_x,
            'linear_y': command.velocity.linear_y,
            'angular_z': command.velocity.angular_z
        }, 'command_count')

    # ========== 保存 / 加载 ==========

    def stop_recording(self) -> bool:
        """停止记录并保存"""
        if not self.recording:
            logger.warning("未在记录中")
            return False

        self.recording = False
        self.stats['duration'] = time.time() - self.start_time

        data_to_save = {
            'version': '1.0',
            'start_time': self.start_time,
            'duration': self.stats['duration'],
            'stats': self.stats,
            'frames': self.frames
        }

        if self.format == 'pickle':
            with open(self.current_file, 'wb') as f:
                pickle.dump(data_to_save, f)
        else:  # json
            with open(self.current_file, 'w') as f:
                json.dump(data_to_save, f, indent=2)

        logger.info(f"记录完成: {self.current_file} "
                    f"(时长{self.stats['duration']:.1f}秒, "
                    f"局部路径{self.stats['local_plan_count']}帧, "
                    f"前视点{self.stats['carrot_count']}帧, "
                    f"指令{self.stats['command_count']}帧)")
        return True

    def load_recording(self, filename) -> bool:
        """加载录制文件

        Args:
            filename: 文件路径
        """
        filepath = Path(filename)
        if not filepath.exists():
            # 尝试在data_dir中查找
            filepath = self.data_dir / filename

        if not filepath.exists():
            logger.error(f"文件不存在: {filename}")
            return False

        try:
            if filepath.suffix == '.pkl':
                with open(filepath, 'rb') as f:
                    data = pickle.load(f)
            else:  # json
                with open(filepath, 'r') as f:
                    data = json.load(f)
        except (OSError, pickle.UnpicklingError, json.JSONDecodeError) as e:
            logger.error(f"加载失败: {e}")
            return False

        self.frames = data['frames']
        self.stats = data['stats']
        logger.info(f"加载成功: {filepath} (总帧数{len(self.frames)})")
        return True

    def replay(self, speed: float = 1.0, frame_type: str = None):
        """回放数据

        Args:
            speed: 回放速度倍率（1.0=正常，2.0=2倍速，0=不等待）
            frame_type: 只回放指定类型（None=全部）

        Yields:
            数据帧
        """
        last_time = 0.0

        for frame in self.frames:
            if frame_type and frame['type'] != frame_type:
                continue

            # 模拟时间流逝
            if speed > 0:
                delay = (frame['timestamp'] - last_time) / speed
                if delay > 0:
                    time.sleep(delay)
            last_time = frame['timestamp']

            yield frame

    def get_statistics(self) -> dict:
        """获取统计信息"""
        return self.stats.copy()

"""
模拟优化器服务
用于在没有真实 MPC 优化器时联调 mpc_host：TCP + JSON行协议，
按前视点做纯跟踪（Pure Pursuit）输出速度指令

使用方法：
    python scripts/mock_optimizer.py --port 5555
    python scripts/mock_optimizer.py --port 5555 --max-speed 0.4 --delay 0.02
"""

import argparse
import json
import math
import os
import socketserver
import sys
import time

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from mpc_host.communication.protocol import MessageType, OptimizerRequest, OptimizerResponse
from mpc_host.navigation.geometry import Velocity, VelocityCommand


def pure_pursuit(request: OptimizerRequest, max_speed: float, max_yaw_rate: float) -> Velocity:
    """按前视点（本体坐标系）计算速度

    接近目标（switch_opt）时线速度减半
    """
    cx, cy = request.carrot_pose.x, request.carrot_pose.y
    dist_sq = cx * cx + cy * cy
    if dist_sq < 1e-6:
        return Velocity()

    # 前视点在身后：原地转向
    if cx < 0:
        return Velocity(0.0, 0.0, math.copysign(max_yaw_rate, cy if cy != 0 else 1.0))

    speed = max_speed * (0.5 if request.switch_opt else 1.0)
    speed = min(speed, math.sqrt(dist_sq) / max(request.control_interval, 1e-3))
    curvature = 2.0 * cy / dist_sq
    yaw_rate = max(-max_yaw_rate, min(max_yaw_rate, speed * curvature))
    return Velocity(speed, 0.0, yaw_rate)


class OptimizerHandler(socketserver.StreamRequestHandler):
    """处理一个客户端连接（逐行请求/响应）"""

    def handle(self):
        print(f"[优化器] 客户端已连接: {self.client_address}")
        for raw in self.rfile:
            line = raw.decode('utf-8', errors='ignore').strip()
            if not line:
                continue

            try:
                message = json.loads(line)
            except json.JSONDecodeError:
                print(f"[优化器] 无法解析: {line[:50]}")
                continue

            if not isinstance(message, dict) or message.get('type') != MessageType.OPTIMIZE:
                continue

            try:
                request = OptimizerRequest.from_message(message)
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                response = OptimizerResponse(int(message.get('id', -1)), error=f"请求格式错误: {e}")
            else:
                if self.server.delay > 0:
                    time.sleep(self.server.delay)
                velocity = pure_pursuit(request, self.server.max_speed, self.server.max_yaw_rate)
                response = OptimizerResponse(
                    request.request_id,
                    output_vel=VelocityCommand(velocity, request.carrot_pose.frame_id, time.time())
                )

            self.wfile.write((response.to_json() + '\n').encode('utf-8'))
            self.wfile.flush()

        print(f"[优化器] 客户端已断开: {self.client_address}")


class OptimizerServer(socketserver.ThreadingTCPServer):
    allow_reuse_address = True
    daemon_threads = True

    def __init__(self, address, max_speed: float, max_yaw_rate: float, delay: float):
        super().__init__(address, OptimizerHandler)
        self.max_speed = max_speed
        self.max_yaw_rate = max_yaw_rate
        self.delay = delay


def main():
    parser = argparse.ArgumentParser(description='模拟MPC优化器服务')
    parser.add_argument('--host', default='127.0.0.1')
    parser.add_argument('--port', type=int, default=5555)
    parser.add_argument('--max-speed', type=float, default=0.5, help='最大线速度 (m/s)')
    parser.add_argument('--max-yaw-rate', type=float, default=1.0, help='最大角速度 (rad/s)')
    parser.add_argument('--delay', type=float, default=0.0, help='模拟求解耗时 (s)')
    args = parser.parse_args()

    server = OptimizerServer((args.host, args.port), args.max_speed, args.max_yaw_rate, args.delay)
    print(f"[优化器] 监听 {args.host}:{args.port}，按 Ctrl+C 退出")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        print("\n[优化器] 已退出")
    finally:
        server.server_close()


if __name__ == '__main__':
    main()

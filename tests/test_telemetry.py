"""
遥测记录、可视化与日志工具测试
"""

import logging

import matplotlib
matplotlib.use('Agg')

import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from mpc_host.navigation import CarrotMarker, Path, Velocity, VelocityCommand
from mpc_host.utils import PerformanceLogger, TelemetryRecorder, publish_best_effort, setup_logger
from mpc_host.visualization import TrackingVisualizer


class BrokenSink:
    def publish_carrot(self, marker):
        raise ConnectionError("订阅端已断开")


class ListSink:
    def __init__(self):
        self.markers = []

    def publish_carrot(self, marker):
        self.markers.append(marker)


@pytest.fixture
def local_plan():
    return Path.from_points([(0.0, 0.0), (0.5, 0.1), (1.0, 0.3)], 'base_link', stamp=1.0)


@pytest.fixture
def marker():
    return CarrotMarker(1.0, 0.3, 0.01, 'base_link', 1.0)


# ============================================================================
# publish_best_effort
# ============================================================================

def test_publish_best_effort_isolates_failures(marker, caplog):
    """测试某个输出失败不影响其他输出"""
    good = ListSink()

    with caplog.at_level(logging.WARNING):
        delivered = publish_best_effort([BrokenSink(), good], 'publish_carrot', marker)

    assert delivered == 1
    assert good.markers == [marker]
    assert '遥测发布失败' in caplog.text


def test_publish_best_effort_no_sinks(marker):
    assert publish_best_effort([], 'publish_carrot', marker) == 0


# ============================================================================
# TelemetryRecorder Tests
# ============================================================================

def test_recorder_ignores_when_idle(tmp_path, local_plan, marker):
    """测试未开始记录时忽略数据"""
    recorder = TelemetryRecorder(str(tmp_path))

    recorder.publish_local_plan(local_plan)
    recorder.publish_carrot(marker)

    assert recorder.frames == []
    assert recorder.stop_recording() is False


@pytest.mark.parametrize('fmt, suffix', [('json', '.json'), ('pickle', '.pkl')])
def test_recorder_save_and_load(tmp_path, local_plan, marker, fmt, suffix):
    """测试记录、保存和加载"""
    recorder = TelemetryRecorder(str(tmp_path))
    assert recorder.start_recording('cycle', format=fmt)
    assert recorder.start_recording('again') is False

    recorder.publish_local_plan(local_plan)
    recorder.publish_carrot(marker)
    recorder.record_command(VelocityCommand(Velocity(0.3, 0.0, 0.1), 'base_link', 1.0))
    assert recorder.stop_recording()

    assert recorder.current_file.suffix == suffix
    assert recorder.current_file.exists()

    loaded = TelemetryRecorder(str(tmp_path))
    assert loaded.load_recording(recorder.current_file)
    stats = loaded.get_statistics()
    assert stats['local_plan_count'] == 1
    assert stats['carrot_count'] == 1
    assert stats['command_count'] == 1
    assert [f['type'] for f in loaded.frames] == ['local_plan', 'carrot', 'command']
    assert loaded.frames[0]['data']['poses'][2]['y'] == pytest.approx(0.3)


def test_recorder_replay_filter(tmp_path, local_plan, marker):
    """测试按类型回放"""
    recorder = TelemetryRecorder(str(tmp_path))
    recorder.start_recording('replay')
    recorder.publish_local_plan(local_plan)
    recorder.publish_carrot(marker)
    recorder.publish_carrot(marker)

    frames = list(recorder.replay(speed=0, frame_type='carrot'))

    assert len(frames) == 2
    assert frames[0]['data']['x'] == 1.0


def test_recorder_load_missing(tmp_path):
    """测试加载不存在的文件"""
    assert TelemetryRecorder(str(tmp_path)).load_recording('missing.pkl') is False


# ============================================================================
# TrackingVisualizer Tests
# ============================================================================

def test_visualizer_updates(tmp_path, local_plan, marker):
    """测试可视化器更新路径和前视点"""
    visualizer = TrackingVisualizer(view_range=2.0)
    try:
        visualizer.publish_local_plan(local_plan)
        visualizer.publish_carrot(marker)

        xs, ys = visualizer.path_line.get_data()
        assert list(xs) == [0.0, 0.5, 1.0]
        assert visualizer.carrot == (1.0, 0.3)
        assert visualizer.frame_count == 2
        assert 'Plan poses: 3' in visualizer.status_text.get_text()

        output = tmp_path / 'debug' / 'tracking.png'
        visualizer.save_figure(str(output))
        assert output.exists()
    finally:
        visualizer.close()


def test_visualizer_empty_plan(local_plan):
    """测试空局部路径"""
    visualizer = TrackingVisualizer()
    try:
        visualizer.publish_local_plan(local_plan)
        visualizer.publish_local_plan(Path('base_link'))

        xs, _ = visualizer.path_line.get_data()
        assert len(xs) == 0
    finally:
        visualizer.close()


# ============================================================================
# 日志工具
# ============================================================================

def test_setup_logger_file(tmp_path):
    """测试文件日志"""
    log_file = tmp_path / 'logs' / 'nav.log'
    logger = setup_logger('mpc_host.test_file_logger', str(log_file), console=False)

    logger.info('控制周期完成')
    for handler in logger.handlers:
        handler.flush()

    assert '控制周期完成' in log_file.read_text(encoding='utf-8')


def test_performance_logger():
    """测试性能统计"""
    perf = PerformanceLogger(logging.getLogger('mpc_host.test_perf'), report_every=2)

    perf.log_execution_time('compute_command', 0.002)
    perf.log_execution_time('compute_command', 0.004)

    stats = perf.get_statistics('compute_command')
    assert stats['count'] == 2
    assert stats['avg'] == pytest.approx(0.003)
    assert stats['max'] == 0.004
    assert perf.get_statistics('unknown') is None


def test_performance_logger_keeps_running_stats():
    """测试长时间运行时只保留累计统计，不保存每次耗时"""
    perf = PerformanceLogger(logging.getLogger('mpc_host.test_perf'), report_every=100)

    for i in range(1, 1001):
        perf.log_execution_time('compute_command', i * 0.001)

    stats = perf.get_statistics('compute_command')
    assert stats['count'] == 1000
    assert stats['min'] == pytest.approx(0.001)
    assert stats['max'] == pytest.approx(1.0)
    assert stats['avg'] == pytest.approx(0.5005)
    assert set(perf.stats['compute_command']) == {'count', 'total', 'min', 'max'}
    assert not any(isinstance(v, list) for v in perf.stats['compute_command'].values())


if __name__ == '__main__':
    pytest.main([__file__, '-v'])

"""
mpc_host - MPC局部控制器主机端
路径跟踪决策核心：局部路径裁剪、前视点选择、减速判定、优化器通信
"""

__version__ = '0.1.0'

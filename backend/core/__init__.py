"""
core - 领域无关的运行时组件

- engine: 事件总线（发布/订阅）与状态机
- notification: 出站通知渠道接口与注册表
"""

__version__ = "0.1.0"

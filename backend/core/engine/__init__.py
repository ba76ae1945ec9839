"""
core.engine - 事件总线与状态机
"""
from core.engine.event_bus import Event, EventBus, PublishResult, event_bus
from core.engine.state_machine import (
    StateMachine,
    StateMachineConfig,
    StateTransition,
)

__all__ = [
    "Event",
    "EventBus",
    "PublishResult",
    "event_bus",
    "StateMachine",
    "StateMachineConfig",
    "StateTransition",
]

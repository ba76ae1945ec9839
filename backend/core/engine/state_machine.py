"""
core/engine/state_machine.py

有限状态机：通过命名触发器在状态之间迁移
"""
from typing import Dict, List, Optional
from dataclasses import dataclass
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StateTransition:
    """
    Attributes:
        from_state: 源状态
        to_state: 目标状态
        trigger: 触发迁移的动作名
    """

    from_state: str
    to_state: str
    trigger: str


@dataclass
class StateMachineConfig:
    name: str
    states: List[str]
    transitions: List[StateTransition]
    initial_state: str


class StateMachine:
    """
    状态机实例，绑定单个实体的当前状态

    使用示例:
        >>> machine = StateMachine(config, current_state="PENDING")
        >>> machine.transition_to("CONFIRMED", "confirm")
        True
    """

    def __init__(self, config: StateMachineConfig, current_state: Optional[str] = None):
        self._config = config
        self._current_state = current_state if current_state is not None else config.initial_state
        self._transition_map: Dict[str, Dict[str, StateTransition]] = {}

        # (源状态, 触发器) -> 迁移
        for t in config.transitions:
            self._transition_map.setdefault(t.from_state, {})[t.trigger] = t

    @property
    def current_state(self) -> str:
        return self._current_state

    def can_transition_to(self, target_state: str, trigger: str) -> bool:
        """
        检查是否可以迁移到目标状态

        Args:
            target_state: 目标状态
            trigger: 动作名

        Returns:
            (当前状态, 触发器) 对应的迁移指向 target_state 时返回 True
        """
        if target_state not in self._config.states:
            return False
        transition = self._transition_map.get(self._current_state, {}).get(trigger)
        return transition is not None and transition.to_state == target_state

    def transition_to(self, target_state: str, trigger: str) -> bool:
        """
        执行状态迁移

        Returns:
            成功返回 True；不允许的迁移返回 False，状态不变
        """
        if not self.can_transition_to(target_state, trigger):
            logger.warning(
                f"{self._config.name}: invalid transition {self._current_state} -> {target_state} "
                f"(trigger: {trigger})"
            )
            return False

        previous_state = self._current_state
        self._current_state = target_state
        logger.debug(f"{self._config.name}: {previous_state} -> {target_state} (trigger: {trigger})")
        return True


__all__ = [
    "StateTransition",
    "StateMachineConfig",
    "StateMachine",
]

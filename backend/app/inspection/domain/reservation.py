"""
app/inspection/domain/reservation.py

预约生命周期 - 包装 ORM 行的状态机

PENDING -> CONFIRMED -> IN_PROGRESS -> COMPLETED
PENDING/CONFIRMED -> CANCELLED
PENDING/CONFIRMED -> NO_SHOW
COMPLETED、CANCELLED、NO_SHOW 为终态
"""
from typing import TYPE_CHECKING
import logging

from core.engine.state_machine import StateMachine, StateMachineConfig, StateTransition
from app.models.ontology import ReservationStatus
from app.services.errors import InvalidTransitionError

if TYPE_CHECKING:
    from app.models.ontology import Reservation

logger = logging.getLogger(__name__)


S = ReservationStatus

# 目标状态 -> 触发器名
TRIGGERS = {
    S.CONFIRMED: "confirm",
    S.IN_PROGRESS: "start",
    S.COMPLETED: "complete",
    S.CANCELLED: "cancel",
    S.NO_SHOW: "mark_no_show",
}

RESERVATION_STATE_MACHINE = StateMachineConfig(
    name="Reservation",
    states=[s.value for s in ReservationStatus],
    transitions=[
        StateTransition(S.PENDING.value, S.CONFIRMED.value, "confirm"),
        StateTransition(S.CONFIRMED.value, S.IN_PROGRESS.value, "start"),
        StateTransition(S.IN_PROGRESS.value, S.COMPLETED.value, "complete"),
        StateTransition(S.PENDING.value, S.CANCELLED.value, "cancel"),
        StateTransition(S.CONFIRMED.value, S.CANCELLED.value, "cancel"),
        StateTransition(S.PENDING.value, S.NO_SHOW.value, "mark_no_show"),
        StateTransition(S.CONFIRMED.value, S.NO_SHOW.value, "mark_no_show"),
    ],
    initial_state=S.PENDING.value,
)

# 节假日级联取消的状态
CANCELLABLE_STATUSES = (S.PENDING, S.CONFIRMED)


def occupies_slot(status: ReservationStatus) -> bool:
    """除 CANCELLED 外的所有状态都占用时段"""
    return status != S.CANCELLED


class ReservationEntity:
    """
    预约领域实体

    以行的当前状态初始化状态机，每次合法迁移后把新状态写回行
    """

    def __init__(self, orm_model: "Reservation"):
        self._orm_model = orm_model
        status = orm_model.status or S.PENDING
        self._state_machine = StateMachine(RESERVATION_STATE_MACHINE, current_state=S(status).value)

    @property
    def status(self) -> ReservationStatus:
        return S(self._state_machine.current_state)

    def move_to(self, target: ReservationStatus) -> ReservationStatus:
        """
        执行状态迁移并写回行

        Returns:
            迁移前的状态

        Raises:
            InvalidTransitionError: 迁移不在迁移表中
        """
        previous = self.status
        trigger = TRIGGERS.get(target)
        if trigger is None or not self._state_machine.transition_to(target.value, trigger):
            raise InvalidTransitionError(previous.value, S(target).value)
        self._orm_model.status = target
        logger.info(
            f"Reservation {self._orm_model.booking_code}: {previous.value} -> {target.value}"
        )
        return previous

    def cancel(self, reason: str = None) -> ReservationStatus:
        """取消预约，并在备注末尾追加 '[Cancelled] 原因'"""
        previous = self.move_to(S.CANCELLED)
        if reason:
            note = f"[Cancelled] {reason}"
            existing = self._orm_model.notes
            self._orm_model.notes = f"{existing}\n{note}" if existing else note
        return previous

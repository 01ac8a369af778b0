"""Appointment status state machine.

    agendada -> confirmada
    agendada | confirmada -> realizada | faltou | cancelada

``realizada``, ``faltou`` and ``cancelada`` are terminal. Every status change
made by the scheduling agent goes through :func:`ensure_transition`.
"""

from app.core.exceptions import InvalidTransitionException
from app.schemas.appointments import AppointmentStatus

TERMINAL_STATUSES = frozenset(
    {
        AppointmentStatus.REALIZADA,
        AppointmentStatus.FALTOU,
        AppointmentStatus.CANCELADA,
    }
)

ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.AGENDADA: frozenset(
        {
            AppointmentStatus.CONFIRMADA,
            AppointmentStatus.REALIZADA,
            AppointmentStatus.FALTOU,
            AppointmentStatus.CANCELADA,
        }
    ),
    AppointmentStatus.CONFIRMADA: frozenset(
        {
            AppointmentStatus.REALIZADA,
            AppointmentStatus.FALTOU,
            AppointmentStatus.CANCELADA,
        }
    ),
    AppointmentStatus.REALIZADA: frozenset(),
    AppointmentStatus.FALTOU: frozenset(),
    AppointmentStatus.CANCELADA: frozenset(),
}


def is_terminal(status: AppointmentStatus | str) -> bool:
    """Check whether no further transition is allowed from ``status``."""
    return AppointmentStatus(status) in TERMINAL_STATUSES


def can_transition(current: AppointmentStatus | str, requested: AppointmentStatus | str) -> bool:
    """Check whether ``current -> requested`` is an edge of the state machine."""
    return AppointmentStatus(requested) in ALLOWED_TRANSITIONS[AppointmentStatus(current)]


def ensure_transition(
    current: AppointmentStatus | str,
    requested: AppointmentStatus | str,
) -> AppointmentStatus:
    """
    Validate a status change.

    Args:
        current: Stored status
        requested: Desired status

    Returns:
        The requested status

    Raises:
        InvalidTransitionException: If the edge does not exist
    """
    current = AppointmentStatus(current)
    requested = AppointmentStatus(requested)
    if requested not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransitionException(current.value, requested.value)
    return requested


def ensure_reschedulable(current: AppointmentStatus | str) -> None:
    """Rescheduling keeps the status and is only allowed before a terminal state."""
    if is_terminal(current):
        status = AppointmentStatus(current).value
        raise InvalidTransitionException(
            status, status, f"Appointment in status '{status}' cannot be rescheduled"
        )

"""Application layer package - use cases and orchestration."""

from yardgate.application.container_service import ContainerQueryService, DeadlineReport
from yardgate.application.gate_intake import (
    ContainerTextRecognizer,
    GateIntakeSession,
    GateReconciler,
    GateSessionRegistry,
    IntakeState,
    InvalidTransitionError,
    RecognitionOutcome,
    check_submission,
    get_gate_session_registry,
)
from yardgate.application.idempotency import (
    IdempotencyService,
    SubmissionGuard,
    get_submission_guard,
)

__all__ = [
    "ContainerQueryService",
    "DeadlineReport",
    "ContainerTextRecognizer",
    "GateIntakeSession",
    "GateReconciler",
    "GateSessionRegistry",
    "IntakeState",
    "InvalidTransitionError",
    "RecognitionOutcome",
    "check_submission",
    "get_gate_session_registry",
    "IdempotencyService",
    "SubmissionGuard",
    "get_submission_guard",
]

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .attendance.factory import AttendanceStrategyFactory
from .attendance.ledger import AttendanceLedger
from .attendance.memory_attendance_repository import InMemoryAttendanceRepository
from .attendance.mysql_attendance_repository import MySQLAttendanceRepository
from .attendance.repository import AttendanceRepository
from .core.constants import (
    DEFAULT_LATE_GRACE_MINUTES,
    DEFAULT_ROTATION_INTERVAL_SECONDS,
    DEFAULT_TOKEN_DURATION_SECONDS,
)
from .core.exceptions import ValidationError
from .database.connection import DBConfig, DatabaseConnection
from .sessions.memory_session_repository import InMemorySessionRepository
from .sessions.mysql_session_repository import MySQLSessionRepository
from .sessions.repository import SessionRepository
from .sessions.service import SessionService
from .tokens.issuer import TokenIssuer
from .tokens.memory_token_repository import InMemoryTokenRepository
from .tokens.mysql_token_repository import MySQLTokenRepository
from .tokens.repository import TokenRepository
from .tokens.rotation import RotationWorker
from .verification.service import VerificationService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Container:
    conn: Optional[DatabaseConnection]

    sessions_repo: SessionRepository
    tokens_repo: TokenRepository
    attendance_repo: AttendanceRepository

    session_service: SessionService
    token_issuer: TokenIssuer
    ledger: AttendanceLedger
    verification_service: VerificationService
    rotation_worker: RotationWorker


def build_container(
    *,
    db_config: Optional[dict] = None,
    backend: str = "mysql",
    token_duration_seconds: int = DEFAULT_TOKEN_DURATION_SECONDS,
    late_grace_minutes: int = DEFAULT_LATE_GRACE_MINUTES,
    rotation_interval_seconds: float = DEFAULT_ROTATION_INTERVAL_SECONDS,
) -> Container:
    """Wire repositories and services for the chosen store backend ("mysql" or "memory")."""
    backend = (backend or "mysql").strip().lower()

    if backend == "memory":
        conn = None
        sessions_repo = InMemorySessionRepository()
        tokens_repo = InMemoryTokenRepository()
        attendance_repo = InMemoryAttendanceRepository()
    elif backend == "mysql":
        if not db_config:
            raise ValidationError("DB_CONFIG is required for the mysql backend")
        conn = DatabaseConnection.get_instance(DBConfig.from_dict(db_config))
        sessions_repo = MySQLSessionRepository(conn)
        tokens_repo = MySQLTokenRepository(conn)
        attendance_repo = MySQLAttendanceRepository(conn)
    else:
        raise ValidationError(f"Unknown store backend: {backend}")

    session_service = SessionService(sessions_repo)
    token_issuer = TokenIssuer(tokens_repo, sessions_repo, default_duration_seconds=token_duration_seconds)
    ledger = AttendanceLedger(attendance_repo)
    verification_service = VerificationService(
        tokens_repo,
        sessions_repo,
        ledger,
        strategy_factory=AttendanceStrategyFactory(),
        grace_minutes=late_grace_minutes,
    )
    rotation_worker = RotationWorker(token_issuer, interval_seconds=rotation_interval_seconds)

    logger.info("Container built with %s backend", backend)
    return Container(
        conn=conn,
        sessions_repo=sessions_repo,
        tokens_repo=tokens_repo,
        attendance_repo=attendance_repo,
        session_service=session_service,
        token_issuer=token_issuer,
        ledger=ledger,
        verification_service=verification_service,
        rotation_worker=rotation_worker,
    )

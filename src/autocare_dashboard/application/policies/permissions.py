from __future__ import annotations

from autocare_dashboard.application.dto.session import Session
from autocare_dashboard.application.exceptions import ForbiddenError


def assert_admin(session: Session) -> None:
    if not session.is_admin:
        raise ForbiddenError("Admin access required")

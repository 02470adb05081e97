"""FastAPI dependencies for the gate and the submission coordinator."""

from fastapi import Depends, Request

from rulesgate.services.progress_gate import ProgressGate
from rulesgate.services.submission import SubmissionCoordinator
from rulesgate.session import get_current_session_id


def get_session_id() -> str:
    return get_current_session_id()


async def get_gate(
    request: Request,
    session_id: str = Depends(get_session_id),
) -> ProgressGate:
    """A gate for this request's session, already restored."""
    gate = ProgressGate(
        request.app.state.sections,
        session_id,
        request.app.state.session_store,
    )
    await gate.restore()
    return gate


def get_coordinator(request: Request) -> SubmissionCoordinator:
    return request.app.state.coordinator

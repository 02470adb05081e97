"""Reading progress for the rules page.

Endpoints:
  GET  /api/progress/         → restored progress for this session
  POST /api/progress/observe  → one frame tick of section observations

The page throttles scroll events to one tick per animation frame and
posts each tick here.  Each observation carries either the section's
bounds (evaluated server-side against the viewport height) or an
already-evaluated is_read flag.
"""

from fastapi import APIRouter, Depends, Request

from rulesgate.deps import get_gate
from rulesgate.schemas.progress import ObserveOut, ObserveRequest, ProgressOut
from rulesgate.services.progress_gate import ProgressGate, ProgressState, is_read_predicate

router = APIRouter()


def _make_progress(state: ProgressState) -> dict:
    return {
        "completed": sorted(state.completed),
        "unlocked": state.unlocked,
        "signed": state.signed,
        "active_step": state.active_step,
        "total_sections": state.total,
    }


@router.get("/", response_model=ProgressOut)
async def get_progress(gate: ProgressGate = Depends(get_gate)):
    return ProgressOut(**_make_progress(gate.state))


@router.post("/observe", response_model=ObserveOut)
async def observe(
    body: ObserveRequest,
    request: Request,
    gate: ProgressGate = Depends(get_gate),
):
    """Apply a frame of observations; unlocks the form once all are read."""
    threshold = request.app.state.read_threshold
    readings = []
    for obs in body.observations:
        if obs.is_read is not None:
            is_read = obs.is_read
        else:
            is_read = is_read_predicate(obs.bounds, body.viewport_height, threshold)
        readings.append((obs.section_id, is_read))

    newly_completed = await gate.observe_frame(readings)
    return ObserveOut(**_make_progress(gate.state), newly_completed=newly_completed)

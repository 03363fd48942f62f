"""Bench button endpoint.

Lets the simulator (or a person with curl) press the physical buttons
without GPIO hardware. Names are validated here, at the boundary; the
formatter treats an unknown name as a programming error.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from boatvoice.core.formatter import BUTTON_NAMES

router = APIRouter(prefix="/api/v1")


@router.post("/buttons/{name}")
async def press_button(name: str) -> JSONResponse:
    """Press one button and return the message queued for speech."""
    from boatvoice.main import get_pipeline

    if name not in BUTTON_NAMES:
        return JSONResponse(
            content={"accepted": False, "error": f"unknown button {name!r}",
                     "buttons": sorted(BUTTON_NAMES)},
            status_code=404,
        )

    message = get_pipeline().formatter.handle_button_press(name)
    return JSONResponse(content={
        "accepted": True,
        "button": name,
        "text": message.text,
        "priority": message.priority.name,
    })

"""
FastAPI transport for the picker server (in-memory).
"""

from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .config import settings
from .picker import PickerError
from .picker_server import PickerServer

app = FastAPI(title=settings.app_name)
server = PickerServer(
    history_length=settings.history_length,
    favorites_query_param=settings.favorites_query_param,
    storage_prefix=settings.storage_key,
    max_sessions=settings.max_sessions,
)


class CreateSessionRequest(BaseModel):
    items: List[Dict[str, Any]]
    default_settings: Optional[Dict[str, Any]] = None
    shortcode_length: Optional[int] = Field(default=None, gt=0)
    session_id: Optional[str] = None


class PickRequest(BaseModel):
    picked: List[str]


class SettingsRequest(BaseModel):
    settings: Dict[str, Any]


class FavoritesRequest(BaseModel):
    favorites: List[str]


class ResetToFavoritesRequest(BaseModel):
    favorites: List[str]
    settings: Optional[Dict[str, Any]] = None


ERROR_STATUS = {
    "SESSION_NOT_FOUND": 404,
    "SHORTCODES_DISABLED": 409,
    "INVARIANT_VIOLATION": 500,
}


@app.exception_handler(PickerError)
async def _picker_error_handler(_, exc: PickerError):
    status = ERROR_STATUS.get(exc.code, 400)
    return JSONResponse(
        status_code=status,
        content={
            "error": {
                "code": exc.code,
                "message": exc.message,
                "details": exc.details,
            }
        },
    )


@app.post("/v1/sessions")
def create_session(req: CreateSessionRequest):
    session_id, view = server.create_session(
        items=req.items,
        default_settings=req.default_settings,
        shortcode_length=req.shortcode_length,
        session_id=req.session_id,
    )
    return {"session_id": session_id, "view": view.to_dict()}


@app.get("/v1/sessions/{session_id}")
def get_view(session_id: str):
    return server.view(session_id).to_dict()


@app.delete("/v1/sessions/{session_id}")
def close_session(session_id: str):
    server.close_session(session_id)
    return {"closed": session_id}


@app.post("/v1/sessions/{session_id}/pick")
def pick(session_id: str, req: PickRequest):
    return server.pick(session_id, req.picked).to_dict()


@app.post("/v1/sessions/{session_id}/pass")
def pass_batch(session_id: str):
    return server.pass_batch(session_id).to_dict()


@app.post("/v1/sessions/{session_id}/undo")
def undo(session_id: str):
    return server.undo(session_id).to_dict()


@app.post("/v1/sessions/{session_id}/redo")
def redo(session_id: str):
    return server.redo(session_id).to_dict()


@app.post("/v1/sessions/{session_id}/reset")
def reset(session_id: str):
    return server.reset(session_id).to_dict()


@app.put("/v1/sessions/{session_id}/settings")
def set_settings(session_id: str, req: SettingsRequest):
    return server.set_settings(session_id, req.settings).to_dict()


@app.put("/v1/sessions/{session_id}/favorites")
def set_favorites(session_id: str, req: FavoritesRequest):
    return server.set_favorites(session_id, req.favorites).to_dict()


@app.post("/v1/sessions/{session_id}/reset-to-favorites")
def reset_to_favorites(session_id: str, req: ResetToFavoritesRequest):
    view = server.reset_to_favorites(session_id, req.favorites, req.settings)
    return view.to_dict()


@app.get("/v1/sessions/{session_id}/shared")
def shared_favorites(session_id: str, request: Request):
    token = request.query_params.get(settings.favorites_query_param, "")
    items = server.shared_favorites(session_id, token)
    return {"favorites": [dict(item) for item in items]}

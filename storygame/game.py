# storygame/game.py
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from storygame import schemas
from storygame.engine import SessionNotFound
from storygame.scenes import Scene
from storygame.sessions import SessionRegistry

router = APIRouter(tags=["Game"])        # prefix is provided in main.py
logger = logging.getLogger(__name__)

_ERRORS = {
    status.HTTP_404_NOT_FOUND: {"model": schemas.ErrorResponse},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": schemas.ErrorResponse},
}


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.registry


def _scene_response(session_id: str, scene: Scene) -> schemas.SceneResponse:
    return schemas.SceneResponse(
        session_id=session_id,
        text=scene.text,
        image_url=scene.image_url,
        audio_url=scene.audio_url,
        choices=scene.choices,
    )


@router.post("/start", response_model=schemas.SceneResponse, responses=_ERRORS)
async def start_game(registry: SessionRegistry = Depends(get_registry)):
    try:
        session_id, scene = await registry.create()
        return _scene_response(session_id, scene)
    except Exception:
        logger.exception("Error starting game")
        raise HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to start game")


@router.post("/choice", response_model=schemas.SceneResponse, responses=_ERRORS)
async def make_choice(
    choice: schemas.ChoiceRequest,
    registry: SessionRegistry = Depends(get_registry),
):
    try:
        engine = registry.get(choice.session_id)
        scene = await engine.choose(choice.choice_index)
        return _scene_response(choice.session_id, scene)
    except SessionNotFound:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Game session not found")
    except Exception:
        logger.exception("Error processing choice for session %s", choice.session_id)
        raise HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to process choice")

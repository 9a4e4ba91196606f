from typing import List, Optional

from pydantic import BaseModel, Field

# ─────────── Game ────────────
class ChoiceRequest(BaseModel):
    # a missing id is answered with 404, like an unknown one
    session_id: Optional[str] = Field(default=None, alias="sessionId")
    choice_index: int = Field(default=0, alias="choiceIndex")

    class Config:
        populate_by_name = True


class SceneResponse(BaseModel):
    session_id: str = Field(alias="sessionId")
    text: str
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    audio_url: Optional[str] = Field(default=None, alias="audioUrl")
    choices: List[str] = Field(min_length=3, max_length=3)

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "sessionId": "kq3X0m1bG6pD4vQb7o2R9w",
                "text": "The path narrows as the light grows brighter...",
                "imageUrl": "https://example.com/scene.jpg",
                "audioUrl": None,
                "choices": [
                    "Follow the glowing light",
                    "Climb a tree to look around",
                    "Call out into the darkness",
                ],
            }
        }


class ErrorResponse(BaseModel):
    error: str

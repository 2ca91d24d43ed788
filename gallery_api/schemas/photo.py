from typing import Literal

from pydantic import BaseModel, ConfigDict


class PhotoOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    url: str
    created_at: int  # epoch ms
    type: Literal["image", "video"]


class DeleteOut(BaseModel):
    success: bool
    id: str


class AdminSessionOut(BaseModel):
    ok: bool

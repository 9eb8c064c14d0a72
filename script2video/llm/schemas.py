"""
Pydantic schemas for LLM replies.

Each generation task expects one JSON object; these models validate it and
accept both the camelCase keys the prompts ask for and snake_case.
"""

from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from script2video.core.constants import LocationType


class ReplyModel(BaseModel):
    """Base for reply schemas: ignore unknown keys, accept field names or aliases."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ProjectSummaryReply(ReplyModel):
    project_summary: str = Field(..., alias="projectSummary", description="Whole-project synopsis")


class EpisodeSummaryReply(ReplyModel):
    summary: str = Field(..., description="Episode synopsis")


class CharacterItem(ReplyModel):
    name: str = Field(..., min_length=1)
    role: str = ""
    bio: str = ""
    is_main: bool = Field(False, alias="isMain")


class CharacterListReply(ReplyModel):
    characters: List[CharacterItem]


class CharacterFormItem(ReplyModel):
    form_name: str = Field("", alias="formName")
    episode_range: str = Field("", alias="episodeRange")
    description: str = ""
    visual_tags: str = Field("", alias="visualTags")


class CharacterDeepDiveReply(ReplyModel):
    forms: List[CharacterFormItem]


class LocationItem(ReplyModel):
    name: str = Field(..., min_length=1)
    type: LocationType = LocationType.SECONDARY
    description: str = ""

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, value):
        # Models answer "Core", "核心" and the like; anything unknown is secondary
        text = str(value or "").strip().lower()
        if text in ("core", "核心", "主要"):
            return LocationType.CORE
        return LocationType.SECONDARY


class LocationListReply(ReplyModel):
    locations: List[LocationItem]


class LocationDeepDiveReply(ReplyModel):
    visuals: str


class ShotItem(ReplyModel):
    id: str = Field(..., min_length=1)
    duration: str = ""
    shot_type: str = Field("", alias="shotType")
    movement: str = ""
    description: str = ""
    dialogue: str = ""

    @field_validator("id", "duration", mode="before")
    @classmethod
    def coerce_text(cls, value):
        return str(value).strip() if value is not None else ""


class EpisodeShotsReply(ReplyModel):
    shots: List[ShotItem]


class ScenePromptItem(ReplyModel):
    id: str
    sora_prompt: str = Field("", alias="soraPrompt")

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, value):
        return str(value).strip()


class ScenePromptsReply(ReplyModel):
    prompts: List[ScenePromptItem]

"""
script2video Shot Import

Loads externally prepared shot lists (spreadsheet rows or CSV text) into a
project. Rows are validated up front; any malformed row rejects the whole
import so a project never ends up with half a shot list.
"""

import csv
import io
from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from script2video.core.constants import EpisodeStatus
from script2video.core.exceptions import ShotImportError
from script2video.core.logging_config import get_logger
from script2video.core.models import Shot
from script2video.store.patches import Patch, ReplaceShots, update_episode
from script2video.store.project_store import ProjectStore

logger = get_logger("project.import")

# Accepted spreadsheet headers per field, first match wins
HEADER_ALIASES: Dict[str, List[str]] = {
    "episode": ["Episode", "集数", "剧集"],
    "id": ["Shot ID", "镜号"],
    "duration": ["Duration", "时长"],
    "shotType": ["Shot Size", "Type", "景别"],
    "movement": ["Movement", "运镜"],
    "description": ["Description", "画面描述"],
    "dialogue": ["Dialogue", "台词/OS", "台词"],
    "soraPrompt": ["Sora Prompt", "Sora提示词", "Video Prompt"],
}


class ShotRecord(BaseModel):
    """One imported shot row."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    episode: str = Field(..., min_length=1, description="Title of the episode the shot belongs to")
    id: str = Field(..., min_length=1, description="Hierarchical shot id, e.g. 1-1-01")
    duration: str = ""
    shot_type: str = Field("", alias="shotType")
    movement: str = ""
    description: str = ""
    dialogue: str = ""
    sora_prompt: str = Field("", alias="soraPrompt")

    @field_validator("*", mode="before")
    @classmethod
    def coerce_text(cls, value):
        if value is None:
            return ""
        return str(value).strip()

    def to_shot(self) -> Shot:
        shot = Shot(
            id=self.id,
            description=self.description,
            duration=self.duration,
            shot_type=self.shot_type,
            movement=self.movement,
            dialogue=self.dialogue,
        )
        return shot.with_prompt(self.sora_prompt) if self.sora_prompt else shot


def parse_shot_records(records: Iterable[Mapping[str, Any]]) -> "OrderedDict[str, List[Shot]]":
    """
    Validate shot rows and group them by episode title.

    Args:
        records: Dicts with ``episode``, ``id`` and optional shot fields

    Raises:
        ShotImportError: On the first row that fails validation
    """
    grouped: "OrderedDict[str, List[Shot]]" = OrderedDict()
    for row_number, record in enumerate(records, start=1):
        try:
            row = ShotRecord.model_validate(dict(record))
        except ValidationError as e:
            fields = ", ".join(str(err["loc"][0]) for err in e.errors() if err.get("loc"))
            raise ShotImportError(f"invalid field(s): {fields}", row=row_number)
        grouped.setdefault(row.episode, []).append(row.to_shot())

    if not grouped:
        raise ShotImportError("no shot rows found")
    return grouped


def _find_column(headers: List[str], candidates: List[str]) -> Optional[str]:
    normalized = {h.strip().lower(): h for h in headers if h}
    for candidate in candidates:
        match = normalized.get(candidate.strip().lower())
        if match is not None:
            return match
    return None


def parse_shot_csv(text: str) -> "OrderedDict[str, List[Shot]]":
    """
    Parse a shot list exported as CSV.

    Raises:
        ShotImportError: If the episode or shot id column is missing, or a row is invalid
    """
    reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")))
    headers = reader.fieldnames or []

    columns = {name: _find_column(headers, aliases) for name, aliases in HEADER_ALIASES.items()}
    if columns["episode"] is None or columns["id"] is None:
        raise ShotImportError("missing 'Episode' or 'Shot ID' header")

    records = []
    for raw in reader:
        if not any((value or "").strip() for value in raw.values() if isinstance(value, str)):
            continue
        records.append({
            name: raw.get(column, "") if column else ""
            for name, column in columns.items()
        })
    return parse_shot_records(records)


def apply_imported_shots(store: ProjectStore, shots_by_title: Mapping[str, List[Shot]]) -> List[int]:
    """
    Install imported shot lists on the episodes with matching titles.

    An episode whose first imported shot already carries a prompt is marked
    completed, otherwise confirmed_shots. Titles with no matching episode are
    ignored.

    Returns:
        Ids of the updated episodes
    """
    data = store.snapshot()
    patches: List[Patch] = []
    updated: List[int] = []

    for index, episode in enumerate(data.episodes):
        shots = shots_by_title.get(episode.title)
        if not shots:
            continue
        status = (
            EpisodeStatus.COMPLETED if shots[0].prompt_generated
            else EpisodeStatus.CONFIRMED_SHOTS
        )
        if episode.status == EpisodeStatus.COMPLETED and status != EpisodeStatus.COMPLETED:
            raise ShotImportError(f"episode '{episode.title}' is already completed")
        patches.append(ReplaceShots(index, shots))
        patches.append(update_episode(index, status=status, error_msg=None))
        updated.append(episode.id)

    unmatched = set(shots_by_title) - {ep.title for ep in data.episodes}
    if unmatched:
        logger.warning(f"No episode for imported titles: {sorted(unmatched)}")

    if patches:
        store.apply(*patches)
    logger.info(f"Imported shots for {len(updated)} episode(s)")
    return updated

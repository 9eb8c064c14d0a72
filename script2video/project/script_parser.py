"""
script2video Script Parser

Splits a raw multi-episode script into Episode records. Recognizes episode
headers ("第3集", "Episode 3"), scene headers ("3-1 客厅 日 内") and cast
lines ("人物：张三、李四", "Cast: Ann, Bob").
"""

import re
from typing import List, Optional, Tuple

from script2video.core.exceptions import ScriptParseError
from script2video.core.logging_config import get_logger
from script2video.core.models import Episode, Scene

logger = get_logger("project.parser")

# Episode header lines longer than this are prose that happens to start with "第N集"
MAX_HEADER_LENGTH = 50
FALLBACK_TITLE = "第1集"

_CN_NUMERALS = "0-9０-９零一二三四五六七八九十百千两"
_EPISODE_TOKEN = rf"第\s*[{_CN_NUMERALS}]+\s*集"
EPISODE_HEADER = re.compile(rf"^\s*(?:{_EPISODE_TOKEN}|episode\s*[0-9０-９]+\b)", re.IGNORECASE)
SCENE_HEADER = re.compile(r"^\s*([0-9０-９]{1,4})\s*[-－–—]\s*([0-9０-９]{1,4})\s*(.+)$")
CAST_LINE = re.compile(r"^\s*(?:人物|cast)\s*[:：]\s*(.+)$", re.IGNORECASE)
CAST_SEPARATORS = re.compile(r"[、，,／/|\s]+")

TIME_TOKENS = {
    "日": "日",
    "夜": "夜",
    "白天": "白天",
    "夜晚": "夜晚",
    "晨": "晨",
    "黄昏": "黄昏",
    "day": "day",
    "night": "night",
    "daytime": "day",
    "nighttime": "night",
    "dawn": "dawn",
    "dusk": "dusk",
    "morning": "morning",
    "evening": "evening",
}

LOCATION_TOKENS = {
    "内": "内",
    "外": "外",
    "内景": "内景",
    "外景": "外景",
    "室内": "内",
    "室外": "外",
    "int": "interior",
    "ext": "exterior",
    "interior": "interior",
    "exterior": "exterior",
}

_TOKEN_EDGES = re.compile(r"^[^A-Za-z0-9\u4e00-\u9fff]+|[^A-Za-z0-9\u4e00-\u9fff]+$")


def normalize_digits(text: str) -> str:
    """Convert full-width digits to ASCII."""
    return text.translate({code: code - 0xFF10 + 0x30 for code in range(0xFF10, 0xFF1A)})


def normalize_newlines(text: str) -> str:
    """Turn lone CR and Unicode line/paragraph separators into LF."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    return re.sub("[\u2028\u2029]", "\n", text)


def detach_episode_headers(text: str) -> str:
    """Put "第N集" tokens that run into surrounding text on their own line."""
    text = re.sub(rf"([^\n])({_EPISODE_TOKEN})", r"\1\n\n\2", text)
    return re.sub(rf"({_EPISODE_TOKEN})([^\n])", r"\1\n\n\2", text)


def _lookup(token: str, table: dict) -> Optional[str]:
    raw = _TOKEN_EDGES.sub("", token.strip())
    if not raw:
        return None
    return table.get(raw) or table.get(raw.lower())


def parse_scene_title(raw_title: str) -> Tuple[str, Optional[str], Optional[str]]:
    """
    Split a scene header title into (name, time_of_day, location).

    Trailing interior/exterior and time-of-day tokens are recognized in that
    order: "客厅 夜 内" -> ("客厅", "夜", "内").
    """
    normalized = re.sub(r"[　·•・\s]+", " ", raw_title).strip()
    tokens = normalized.split(" ") if normalized else []

    location = None
    if tokens:
        location = _lookup(tokens[-1], LOCATION_TOKENS)
        if location:
            tokens.pop()

    time_of_day = None
    if tokens:
        time_of_day = _lookup(tokens[-1], TIME_TOKENS)
        if time_of_day:
            tokens.pop()

    name = " ".join(tokens).strip() or normalized
    return name, time_of_day, location


def parse_scenes(content: str) -> List[Scene]:
    """Collect the scenes of one episode's text; text before the first header is ignored."""
    scenes: List[Scene] = []
    current: Optional[Scene] = None
    buffer: List[str] = []

    for line in content.split("\n"):
        match = SCENE_HEADER.match(line)
        if match:
            if current is not None:
                current.content = "\n".join(buffer).strip()
                scenes.append(current)
            buffer = []
            name, time_of_day, location = parse_scene_title(match.group(3))
            current = Scene(
                id=f"{normalize_digits(match.group(1))}-{normalize_digits(match.group(2))}",
                title=name,
                time_of_day=time_of_day,
                location=location,
            )
        elif current is not None:
            buffer.append(line)

    if current is not None:
        current.content = "\n".join(buffer).strip()
        scenes.append(current)

    return scenes


def parse_cast_line(line: str) -> List[str]:
    match = CAST_LINE.match(line)
    if not match:
        return []
    return [name for name in CAST_SEPARATORS.split(match.group(1)) if name.strip()]


def _build_episode(episode_id: int, title: str, lines: List[str]) -> Episode:
    content = "\n".join(lines).strip()
    cast: List[str] = []
    for line in lines:
        for name in parse_cast_line(line):
            if name not in cast:
                cast.append(name)
    return Episode(
        id=episode_id,
        title=title,
        content=content,
        scenes=parse_scenes(content),
        characters=cast,
    )


def parse_script_to_episodes(raw_text: str) -> List[Episode]:
    """
    Parse a script into episodes numbered 1..N in order of appearance.

    Text before the first episode header is dropped. A script without any
    header becomes a single episode.

    Raises:
        ScriptParseError: If the script is empty
    """
    if not raw_text or not raw_text.strip():
        raise ScriptParseError("Script is empty")

    text = detach_episode_headers(normalize_newlines(raw_text))

    episodes: List[Episode] = []
    title: Optional[str] = None
    buffer: List[str] = []

    for line in text.split("\n"):
        if EPISODE_HEADER.match(line) and len(line) < MAX_HEADER_LENGTH:
            if title is not None:
                episodes.append(_build_episode(len(episodes) + 1, title, buffer))
            title = line.strip()
            buffer = [line]
        elif title is not None:
            buffer.append(line)

    if title is not None:
        episodes.append(_build_episode(len(episodes) + 1, title, buffer))

    if not episodes:
        logger.info("No episode headers found, treating the script as one episode")
        episodes.append(_build_episode(1, FALLBACK_TITLE, text.strip().split("\n")))

    logger.info(f"Parsed {len(episodes)} episode(s), {sum(len(e.scenes) for e in episodes)} scene(s)")
    return episodes

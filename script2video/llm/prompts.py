"""
script2video Generation Prompts

Prompt templates for every generation task. Templates are rendered with
``str.format``; literal JSON braces are doubled.
"""

import json
from typing import Dict, List

from script2video.core.constants import GenerationTask
from script2video.core.models import ProjectContext, Shot


class GenerationPromptLibrary:
    """
    Library of generation prompts.

    Provides prompt templates for:
    - Analysis sub-steps (project, episodes, characters, locations)
    - Episode shot lists
    - Scene video prompts
    """

    SYSTEM_PROMPT = (
        "你是一位专业的影视剧本统筹和资深分镜指导。"
        "除专有名词外全程使用中文工作，并且只输出符合要求的 JSON，不要输出任何解释。"
    )

    STYLE_SECTION = """
【项目特定美术风格定义】（Project Visual Bible）：
这是本项目的最高视觉纲领，请确保输出与其色彩、光影和美术风格一致。
{style_guide}
"""

    # ==========================================================================
    # ANALYSIS
    # ==========================================================================

    PROJECT_SUMMARY = """任务：阅读下方剧本，概括整个项目的故事梗概。
{style_section}
【剧本】：
{script}

要求：
1. 简明扼要，概括故事核心冲突、主线和基调。
2. 输出 JSON：{{"projectSummary": "..."}}"""

    EPISODE_SUMMARY = """任务：依据项目梗概，概括《{title}》这一集的剧情。

【项目梗概】：
{project_summary}

【本集剧本】：
{content}

要求：
1. 交代本集关键事件、人物关系变化和结尾悬念。
2. 输出 JSON：{{"summary": "..."}}"""

    CHARACTER_LIST = """任务：依据项目梗概和剧本，整理完整的角色名单。

【项目梗概】：
{project_summary}

【剧本】：
{script}

要求：
1. 每个角色包含 name（姓名）、role（角色定位，如 男主角、反派）、bio（人物小传）、isMain（是否主要角色）。
2. 主要角色控制在 3-8 位。
3. 输出 JSON：{{"characters": [{{"name": "...", "role": "...", "bio": "...", "isMain": true}}]}}"""

    CHARACTER_DEEP_DIVE = """任务：深入分析角色「{name}」在全剧中的外形变化。
{style_section}
【项目梗概】：
{project_summary}

【剧本】：
{script}

要求：
1. 按剧情阶段拆分角色的造型形态（如 少年时期、受伤后、登基后）。
2. 每个形态包含 formName（形态名）、episodeRange（适用集数，如 1-5）、description（外形描述）、visualTags（用于画面生成的视觉关键词）。
3. 输出 JSON：{{"forms": [{{"formName": "...", "episodeRange": "...", "description": "...", "visualTags": "..."}}]}}"""

    LOCATION_LIST = """任务：依据项目梗概和剧本，整理剧中出现的场景地点。

【项目梗概】：
{project_summary}

【剧本】：
{script}

要求：
1. 每个地点包含 name（地点名）、type（core 表示反复出现的核心场景，secondary 表示次要场景）、description（简短描述）。
2. 输出 JSON：{{"locations": [{{"name": "...", "type": "core", "description": "..."}}]}}"""

    LOCATION_DEEP_DIVE = """任务：为核心场景「{name}」撰写统一的视觉设定。
{style_section}
【剧本】：
{script}

要求：
1. 描述空间结构、陈设、材质、光线和氛围，便于后续所有镜头保持一致。
2. 输出 JSON：{{"visuals": "..."}}"""

    # ==========================================================================
    # SHOTS & PROMPTS
    # ==========================================================================

    EPISODE_SHOTS = """角色设定：你是一位拥有10年经验的资深专业分镜师。

任务：依据项目背景和本集梗概，严格遵循【分镜制作指导文档】，将《{title}》（第 {number} 集）的剧本正文转换为专业的分镜脚本。

【项目上下文】：
- 项目简介：{project_summary}
- 本集梗概：{summary}
- 角色设定：
{characters}
- 场景设定：
{locations}

【分镜制作指导文档】：
{shot_guide}
{style_section}
【当前待处理剧本 - {title}】：
{content}

【输出要求】：
1. 镜号格式必须为：集号-场景号-本场镜号，例如第12集第2场的第1个镜头为 "12-2-01"。镜号前缀用于后续按场景拆分，务必准确。
2. 画面描述必须具有极强的画面感：时间、环境光影、人物站位、具体动作、美术细节。
3. 输出 JSON：{{"shots": [{{"id": "...", "duration": "3s", "shotType": "...", "movement": "...", "description": "...", "dialogue": "..."}}]}}"""

    SCENE_PROMPTS = """角色设定：你是一位精通视频生成模型的提示词专家。

任务：依据【视频提示词撰写规范】，为以下 {count} 个分镜撰写高质量的视频生成提示词。

【项目上下文】：
- 项目简介：{project_summary}
- 角色设定：
{characters}

【视频提示词撰写规范】：
{prompt_guide}
{style_section}
【当前批次分镜数据】：
{shots}

【输出要求】：
1. 直接使用中文撰写提示词，严禁翻译成英文。
2. 提示词包含主体、动作、环境、光影、摄影风格。
3. 输出 JSON：{{"prompts": [{{"id": "保持原镜号", "soraPrompt": "..."}}]}}"""

    @classmethod
    def get_task_prompts(cls) -> Dict[GenerationTask, str]:
        """Get the template of every generation task."""
        return {
            GenerationTask.PROJECT_SUMMARY: cls.PROJECT_SUMMARY,
            GenerationTask.EPISODE_SUMMARY: cls.EPISODE_SUMMARY,
            GenerationTask.CHARACTER_LIST: cls.CHARACTER_LIST,
            GenerationTask.CHARACTER_DEEP_DIVE: cls.CHARACTER_DEEP_DIVE,
            GenerationTask.LOCATION_LIST: cls.LOCATION_LIST,
            GenerationTask.LOCATION_DEEP_DIVE: cls.LOCATION_DEEP_DIVE,
            GenerationTask.EPISODE_SHOTS: cls.EPISODE_SHOTS,
            GenerationTask.SCENE_PROMPTS: cls.SCENE_PROMPTS,
        }

    @classmethod
    def render(cls, task: GenerationTask, style_guide: str = "", **kwargs) -> str:
        """Render a task template; the style section is omitted when there is no style guide."""
        style_section = cls.STYLE_SECTION.format(style_guide=style_guide) if style_guide.strip() else ""
        return cls.get_task_prompts()[task].format(style_section=style_section, **kwargs)


def format_characters(context: ProjectContext) -> str:
    """One line per character, with the visual tags of every known form."""
    lines = []
    for character in context.characters:
        line = f"- {character.name}（{character.role}）：{character.bio}"
        tags = [form.visual_tags for form in character.forms if form.visual_tags]
        if tags:
            line += f" [Visuals: {'; '.join(tags)}]"
        lines.append(line)
    return "\n".join(lines) or "（暂无）"


def format_locations(context: ProjectContext) -> str:
    lines = [
        f"- {location.name}：{location.visuals or location.description}"
        for location in context.locations
    ]
    return "\n".join(lines) or "（暂无）"


def format_shot_batch(shots: List[Shot]) -> str:
    """Compact shot rows sent with a scene prompt request."""
    return json.dumps(
        [
            {
                "id": shot.id,
                "type": shot.shot_type,
                "move": shot.movement,
                "desc": shot.description,
                "dialogue": shot.dialogue,
            }
            for shot in shots
        ],
        ensure_ascii=False,
        indent=1,
    )

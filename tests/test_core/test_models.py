"""
Tests for Data Model

Tests for script2video/core/models.py
"""

from script2video.core.constants import AnalysisSubStep, EpisodeStatus, LocationType, Phase
from script2video.core.models import Episode, ProjectData, Shot


class TestShot:
    """Tests for Shot."""

    def test_blank_prompt_still_counts_as_generated(self):
        shot = Shot(id="1-1-01").with_prompt("")

        assert shot.prompt_generated
        assert shot.sora_prompt == ""

    def test_cleared(self):
        shot = Shot(id="1-1-01").with_prompt("A wide shot").cleared()

        assert not shot.prompt_generated
        assert shot.sora_prompt == ""

    def test_legacy_record_without_flag(self):
        """Records without the flag count a non-blank prompt as generated."""
        assert Shot.from_dict({"id": "1-1-01", "soraPrompt": "prompt"}).prompt_generated
        assert not Shot.from_dict({"id": "1-1-02", "soraPrompt": "  "}).prompt_generated

    def test_numeric_fields_become_text(self):
        shot = Shot.from_dict({"id": 7, "duration": 3})

        assert shot.id == "7"
        assert shot.duration == "3"


class TestEpisode:
    """Tests for Episode."""

    def test_prompts_complete(self):
        episode = Episode(id=1, title="Episode 1")
        assert not episode.prompts_complete

        episode.shots = [Shot(id="1-1-01").with_prompt("a"), Shot(id="1-1-02")]
        assert not episode.prompts_complete

        episode.shots[1] = episode.shots[1].with_prompt("b")
        assert episode.prompts_complete


class TestProjectData:
    """Tests for ProjectData serialization."""

    def test_round_trip(self, project_data):
        project_data.episodes[0].status = EpisodeStatus.REVIEW_SHOTS
        project_data.workflow.phase = Phase.ANALYSIS
        project_data.workflow.analysis_step = AnalysisSubStep.EPISODE_SUMMARIES
        project_data.workflow.analysis_queue = [2, 3]

        restored = ProjectData.from_dict(project_data.to_dict())

        assert restored.to_dict() == project_data.to_dict()
        assert restored.workflow.analysis_queue == [2, 3]

    def test_camel_case_project_file(self):
        data = ProjectData.from_dict({
            "fileName": "drama.txt",
            "rawScript": "text",
            "soraGuide": "prompt guide",
            "episodes": [{
                "id": 1,
                "title": "第1集",
                "status": "review_sora",
                "shotGenUsage": {"promptTokens": 1, "responseTokens": 1, "totalTokens": 2},
            }],
            "context": {
                "projectSummary": "summary",
                "characters": [{"name": "张三", "isMain": True}],
                "locations": [{"name": "客厅", "type": "core"}],
            },
        })

        assert data.file_name == "drama.txt"
        assert data.prompt_guide == "prompt guide"
        assert data.episodes[0].status == EpisodeStatus.REVIEW_SORA
        assert data.episodes[0].shot_gen_usage.total_tokens == 2
        assert data.context.character("张三").is_main
        assert data.context.location("客厅").type == LocationType.CORE

    def test_episode_by_id(self, project_data):
        assert project_data.episode_by_id(2).title == "Episode 2"
        assert project_data.episode_by_id(9) is None

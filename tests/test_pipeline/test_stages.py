"""Tests for the individual pipeline stages."""

import json

import pytest

from ats_tailor.clients.conversation import ConversationSession
from ats_tailor.clients.llm_client import LLMResponse
from ats_tailor.errors import ConnectionFailedError, MalformedResponseError, ParseError, UpstreamError
from ats_tailor.models.analysis import CompatibilityAnalysis, MissingSkillsAnalysis
from ats_tailor.pipeline.compatibility import CompatibilityAnalyst
from ats_tailor.pipeline.extractor import BlockExtractor
from ats_tailor.pipeline.fit_scorer import FitScorer
from ats_tailor.pipeline.gap_detector import GapDetector
from ats_tailor.pipeline.layout_planner import LayoutPlanner
from ats_tailor.pipeline.recommender import Recommender
from ats_tailor.pipeline.tailor import BlockTailor
from ats_tailor.templates.loader import load_template


@pytest.fixture
def session(fake_gateway):
    return ConversationSession(fake_gateway, "system prompt")


def _last_prompt(gateway) -> str:
    return gateway.complete.call_args.args[0][-1]["content"]


class TestCompatibilityAnalyst:
    async def test_analyze(self, session, sample_resume_text, sample_job_description):
        result = await CompatibilityAnalyst().analyze(
            session, sample_resume_text, sample_job_description, "Backend Engineer"
        )

        assert result.value.gap_areas == ["Azure", "Kubernetes"]
        assert result.ok
        assert session.turn_number == 1

    async def test_missing_field_is_malformed(self, session, stage_responses):
        stage_responses[1] = {"overlapAreas": [], "gapAreas": []}

        with pytest.raises(MalformedResponseError) as exc_info:
            await CompatibilityAnalyst().analyze(session, "resume", "jd", "title")

        assert exc_info.value.stage == "compatibility"
        assert any("strategicFocus" in v for v in exc_info.value.violations)

    async def test_non_json_is_parse_error(self, session, stage_responses):
        stage_responses[1] = "I cannot help with that."

        with pytest.raises(ParseError):
            await CompatibilityAnalyst().analyze(session, "resume", "jd", "title")

    async def test_fenced_json_accepted(self, session, stage_responses, compatibility_json):
        stage_responses[1] = f"```json\n{json.dumps(compatibility_json)}\n```"

        result = await CompatibilityAnalyst().analyze(session, "resume", "jd", "title")

        assert result.value.overlap_areas[0] == "Python APIs"


class TestRetry:
    async def test_transient_error_retried(self, session, fake_gateway, stage_responses, compatibility_json):
        answers = iter([UpstreamError(503, "busy"), compatibility_json])

        async def _flaky(messages, temperature=0.1, expect_json=True):
            value = next(answers)
            if isinstance(value, Exception):
                raise value
            return LLMResponse(text=json.dumps(value), input_tokens=1, output_tokens=1)

        fake_gateway.complete.side_effect = _flaky
        stage = CompatibilityAnalyst(max_attempts=3, retry_wait_min=0, retry_wait_max=0)

        result = await stage.analyze(session, "resume", "jd", "title")

        assert result.value.gap_areas == ["Azure", "Kubernetes"]
        assert fake_gateway.complete.await_count == 2
        assert session.turn_number == 1

    async def test_dropped_connection_retried(self, session, fake_gateway, stage_responses, compatibility_json):
        answers = iter([ConnectionFailedError("connection failed: reset by peer"), compatibility_json])

        async def _flaky(messages, temperature=0.1, expect_json=True):
            value = next(answers)
            if isinstance(value, Exception):
                raise value
            return LLMResponse(text=json.dumps(value), input_tokens=1, output_tokens=1)

        fake_gateway.complete.side_effect = _flaky
        stage = CompatibilityAnalyst(max_attempts=3, retry_wait_min=0, retry_wait_max=0)

        result = await stage.analyze(session, "resume", "jd", "title")

        assert result.value.overlap_areas[0] == "Python APIs"
        assert fake_gateway.complete.await_count == 2

    async def test_client_error_not_retried(self, session, fake_gateway, stage_responses):
        stage_responses[1] = UpstreamError(400, "bad request")
        stage = CompatibilityAnalyst(max_attempts=3, retry_wait_min=0, retry_wait_max=0)

        with pytest.raises(UpstreamError):
            await stage.analyze(session, "resume", "jd", "title")

        assert fake_gateway.complete.await_count == 1

    async def test_gives_up_after_max_attempts(self, session, fake_gateway, stage_responses):
        stage_responses[1] = UpstreamError(429, "slow down")
        stage = CompatibilityAnalyst(max_attempts=2, retry_wait_min=0, retry_wait_max=0)

        with pytest.raises(UpstreamError) as exc_info:
            await stage.analyze(session, "resume", "jd", "title")

        assert exc_info.value.status_code == 429
        assert fake_gateway.complete.await_count == 2


class TestBlockExtractor:
    async def test_extract_is_isolated(self, session, fake_gateway, sample_resume_text, sample_job_description):
        await CompatibilityAnalyst().analyze(session, sample_resume_text, sample_job_description, "Backend")

        result = await BlockExtractor().extract(session, sample_resume_text)

        sent = fake_gateway.complete.call_args.args[0]
        assert [m["role"] for m in sent] == ["system", "user"]
        assert "Azure" not in sent[-1]["content"]
        assert len(result.value.blocks) == 5
        assert result.ok

    async def test_priorities_discarded(self, session, stage_responses, tailored_blocks_json, sample_resume_text):
        stage_responses[2] = tailored_blocks_json

        result = await BlockExtractor().extract(session, sample_resume_text)

        assert all(b.priority is None for b in result.value.blocks)
        assert [w.code for w in result.warnings] == ["unexpected_priority"]

    async def test_duplicate_ids_malformed(self, session, stage_responses, raw_blocks_json):
        raw_blocks_json["blocks"][2]["id"] = "experience-1"

        with pytest.raises(MalformedResponseError):
            await BlockExtractor().extract(session, "resume")


class TestBlockTailor:
    async def test_tailor(self, session, fake_gateway, raw_blocks, compatibility_json):
        compat = CompatibilityAnalysis.model_validate(compatibility_json)

        result = await BlockTailor().tailor(session, raw_blocks, "jd", "Backend Engineer", compat)

        assert [b.priority for b in result.value.blocks] == [10, 10, 8, 9, 6]
        assert result.ok
        prompt = _last_prompt(fake_gateway)
        assert "Now complete step 3" in prompt
        assert "experience-2" in prompt

    async def test_dropped_block_warns(self, session, stage_responses, tailored_blocks_json, raw_blocks, compatibility_json):
        tailored_blocks_json["blocks"].pop()

        result = await BlockTailor().tailor(
            session, raw_blocks, "jd", "title", CompatibilityAnalysis.model_validate(compatibility_json)
        )

        assert any(w.critical for w in result.warnings)


class TestFitScorer:
    async def test_score(self, session, tailored_blocks):
        result = await FitScorer().score(session, "resume", tailored_blocks, "jd")

        assert result.value.score == 78
        assert result.ok

    async def test_breakdown_wins_on_mismatch(self, session, stage_responses, fit_score_json, tailored_blocks):
        fit_score_json["score"] = 90

        result = await FitScorer().score(session, "resume", tailored_blocks, "jd")

        assert result.value.score == 78
        assert result.warnings[0].code == "score_breakdown_mismatch"
        assert result.warnings[0].details == {"reported": 90, "breakdown_sum": 78}

    async def test_out_of_range_breakdown_malformed(self, session, fit_score_json, tailored_blocks):
        fit_score_json["breakdown"]["qualifications"] = 25

        with pytest.raises(MalformedResponseError):
            await FitScorer().score(session, "resume", tailored_blocks, "jd")


class TestGapDetector:
    async def test_detect_sends_raw_skills(self, session, fake_gateway, raw_blocks):
        result = await GapDetector().detect(session, raw_blocks.by_category("skills"), "jd", "title")

        assert [s.skill for s in result.value.missing_skills] == ["Azure", "Kubernetes"]
        assert result.value.missing_skills[0].importance == "critical"
        assert result.value.missing_skills[0].suggestions[0].estimated_time == "2 weeks"
        prompt = _last_prompt(fake_gateway)
        assert '"FastAPI"' in prompt
        assert "priority" not in prompt.split("CANDIDATE'S CURRENT SKILLS")[1]

    async def test_empty_gap_list(self, session, stage_responses, raw_blocks):
        stage_responses[5] = {"missingSkills": []}

        result = await GapDetector().detect(session, raw_blocks.by_category("skills"), "jd", "title")

        assert result.value.missing_skills == []

    async def test_unknown_importance_defaults_to_medium(self, session, missing_skills_json, raw_blocks):
        missing_skills_json["missingSkills"][1]["importance"] = "nice-to-have"

        result = await GapDetector().detect(session, raw_blocks.by_category("skills"), "jd", "title")

        assert result.value.missing_skills[1].importance == "medium"
        [warning] = result.warnings
        assert warning.stage == "gap_detection"
        assert warning.details["value"] == "nice-to-have"


class TestRecommender:
    async def test_recommend(self, session, fake_gateway, missing_skills_json, tailored_blocks):
        gaps = MissingSkillsAnalysis.model_validate(missing_skills_json)

        result = await Recommender().recommend(session, 78, gaps, tailored_blocks)

        assert len(result.value.recommendations) == 2
        assert "78" in _last_prompt(fake_gateway)

    async def test_unknown_labels_default_with_warning(
        self, session, recommendations_json, missing_skills_json, tailored_blocks
    ):
        recommendations_json["recommendations"][0]["category"] = "skills"
        recommendations_json["recommendations"][1]["priority"] = "Urgent"

        result = await Recommender().recommend(
            session, 78, MissingSkillsAnalysis.model_validate(missing_skills_json), tailored_blocks
        )

        first, second = result.value.recommendations
        assert first.category == "strategy"
        assert second.priority == "medium"
        assert [w.code for w in result.warnings] == ["unknown_label", "unknown_label"]
        assert {w.details["field"] for w in result.warnings} == {"category", "priority"}
        assert not any(w.critical for w in result.warnings)

    async def test_missing_title_malformed(self, session, recommendations_json, missing_skills_json, tailored_blocks):
        del recommendations_json["recommendations"][0]["title"]

        with pytest.raises(MalformedResponseError):
            await Recommender().recommend(
                session, 78, MissingSkillsAnalysis.model_validate(missing_skills_json), tailored_blocks
            )


class TestLayoutPlanner:
    async def test_plan_lists_every_id(self, session, fake_gateway, tailored_blocks):
        result = await LayoutPlanner().plan(session, tailored_blocks, "B", load_template("B"))

        assert result.value.layout.sidebar == ["skills-1", "education-1"]
        assert result.ok
        prompt = _last_prompt(fake_gateway)
        assert "You MUST place ALL 5 blocks" in prompt
        for block_id in tailored_blocks.ids:
            assert f"- {block_id} (" in prompt

    async def test_missing_block_is_critical_warning(self, session, layout_json, tailored_blocks):
        layout_json["layout"]["sidebar"] = ["skills-1"]

        result = await LayoutPlanner().plan(session, tailored_blocks, "A", load_template("A"))

        assert result.warnings[0].code == "layout_missing_blocks"
        assert result.warnings[0].critical

"""Tests for Pydantic models."""

import pytest
from pydantic import ValidationError

from ats_tailor.models.analysis import FitScore, MissingSkill, Recommendation, ScoreBreakdown
from ats_tailor.models.blocks import ContentBlock, RawExtractedBlocks, TailoredBlocks
from ats_tailor.models.cache import ContentBundle
from ats_tailor.models.integrity import IntegrityWarning, Severity, StageResult
from ats_tailor.models.layout import LayoutDecision, PlacementEntry


class TestContentBlock:
    def test_list_content(self):
        block = ContentBlock(id="skills-1", category="skills", content=["Python", "SQL"])
        assert block.item_counts() == {"items": 2}
        assert block.priority is None

    def test_object_content_counts_list_fields(self):
        block = ContentBlock(
            id="projects-1",
            category="projects",
            content={"title": "CLI", "bullets": ["a", "b"], "technologies": ["Python"]},
        )
        assert block.item_counts() == {"bullets": 2, "technologies": 1}
        assert block.bullet_count == 2

    def test_unknown_category_rejected(self):
        with pytest.raises(ValidationError):
            ContentBlock(id="x-1", category="hobbies", content=["a"])

    def test_mixed_list_rejected(self):
        with pytest.raises(ValidationError):
            ContentBlock(id="skills-1", category="skills", content=["Python", {"name": "SQL"}])

    @pytest.mark.parametrize("priority", [0, 11])
    def test_priority_bounds(self, priority):
        with pytest.raises(ValidationError):
            ContentBlock(id="skills-1", category="skills", content=[], priority=priority)

    def test_empty_id_rejected(self):
        with pytest.raises(ValidationError):
            ContentBlock(id="", category="skills", content=[])


class TestBlockCollections:
    def test_aliases_and_lookup(self, raw_blocks_json):
        raw = RawExtractedBlocks.model_validate(raw_blocks_json)
        assert raw.detected_categories == ["contact", "experience", "skills", "education"]
        assert len(raw.by_category("experience")) == 2
        assert raw.get("skills-1").category == "skills"
        assert raw.get("missing") is None

    def test_duplicate_ids_rejected(self):
        block = {"id": "skills-1", "category": "skills", "content": ["a"]}
        with pytest.raises(ValidationError, match="duplicate block ids"):
            RawExtractedBlocks.model_validate({"blocks": [block, block]})

    def test_payload_uses_wire_names(self, tailored_blocks):
        payload = tailored_blocks.to_payload()
        assert "detectedCategories" in payload
        assert payload["blocks"][0]["priority"] == 10

    def test_raw_payload_omits_priority(self, raw_blocks):
        assert all("priority" not in b for b in raw_blocks.to_payload()["blocks"])


class TestAnalysisModels:
    def test_breakdown_total(self):
        assert ScoreBreakdown(keywords=32, experience=30, qualifications=16).total == 78

    @pytest.mark.parametrize(
        "breakdown",
        [
            {"keywords": 41, "experience": 0, "qualifications": 0},
            {"keywords": 0, "experience": 41, "qualifications": 0},
            {"keywords": 0, "experience": 0, "qualifications": 21},
        ],
    )
    def test_component_caps(self, breakdown):
        with pytest.raises(ValidationError):
            FitScore(score=50, breakdown=breakdown)

    def test_importance_normalized(self):
        assert MissingSkill(skill="Azure", importance=" Critical ").importance == "critical"

    def test_bad_importance_rejected(self):
        with pytest.raises(ValidationError):
            MissingSkill(skill="Azure", importance="urgent")

    def test_recommendation_labels_normalized(self):
        rec = Recommendation(priority="HIGH", category="Skill_Gap", title="t", description="d")
        assert (rec.priority, rec.category) == ("high", "skill_gap")


class TestLayoutModels:
    def test_optional_sections(self):
        decision = LayoutDecision.model_validate({"layout": {"header": ["a"], "main": ["b"]}})
        assert decision.layout.all_ids() == ["a", "b"]
        assert [name for name, _ in decision.layout.ordered()] == ["header", "main", "sidebar", "footer"]

    def test_main_required(self):
        with pytest.raises(ValidationError):
            LayoutDecision.model_validate({"layout": {"header": []}})

    def test_placement_rejects_footer(self):
        with pytest.raises(ValidationError):
            PlacementEntry(section="footer", order=0)

    def test_placement_alias(self):
        assert PlacementEntry(section="main", order=3).model_dump(by_alias=True)["fontSize"] == 11


class TestIntegrity:
    def test_stage_result_ok(self):
        assert StageResult(value=1).ok
        warning = IntegrityWarning(stage="s", code="c", message="m", severity=Severity.CRITICAL)
        result = StageResult(value=1, warnings=[warning])
        assert not result.ok
        assert warning.critical


class TestContentBundle:
    def test_json_round_trip_keeps_aliases(self, tailored_blocks, layout_decision, fit_score_json):
        bundle = ContentBundle(
            tailored_blocks=tailored_blocks,
            layout_decision=layout_decision,
            fit_score=FitScore.model_validate(fit_score_json),
        )
        restored = ContentBundle.model_validate_json(bundle.model_dump_json(by_alias=True))
        assert restored == bundle

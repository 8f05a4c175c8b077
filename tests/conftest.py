"""Shared test fixtures."""

from __future__ import annotations

import copy
import json
import re
import sqlite3
from unittest.mock import AsyncMock, MagicMock

import pytest

from ats_tailor.clients.llm_client import LLMResponse, ModelGateway
from ats_tailor.models.blocks import RawExtractedBlocks, TailoredBlocks
from ats_tailor.models.layout import LayoutDecision

_STEP = re.compile(r"Now complete step (\d)")


@pytest.fixture
def sample_resume_text() -> str:
    return """JANE DOE
jane@example.com | +1 555 0100 | Austin, TX

EXPERIENCE
Senior Backend Engineer, Acme Corp (2021 - Present)
- Built REST APIs in Python serving 2M requests per day
- Cut p95 latency by 40% with Redis caching
- Mentored four junior engineers

Backend Engineer, Globex (2018 - 2021)
- Migrated a monolith to Docker-based services
- Designed PostgreSQL schemas for billing
- Automated deployments with GitHub Actions

SKILLS
Python, Django, FastAPI, PostgreSQL, Redis, Docker, AWS, Git, Linux, REST

EDUCATION
BSc Computer Science, State University (2018)
"""


@pytest.fixture
def sample_job_description() -> str:
    return """Backend Engineer (Azure)

We are looking for a backend engineer to build scalable services.

Requirements:
- 3+ years of Python
- Experience with Kubernetes and Azure
- PostgreSQL and Redis
"""


@pytest.fixture
def compatibility_json() -> dict:
    return {
        "overlapAreas": ["Python APIs", "PostgreSQL", "Redis"],
        "gapAreas": ["Azure", "Kubernetes"],
        "strategicFocus": ["Lead with API scale", "Highlight container work"],
    }


@pytest.fixture
def raw_blocks_json() -> dict:
    return {
        "blocks": [
            {
                "id": "contact-1",
                "category": "contact",
                "content": {"name": "Jane Doe", "email": "jane@example.com", "phone": "+1 555 0100"},
            },
            {
                "id": "experience-1",
                "category": "experience",
                "content": {
                    "title": "Senior Backend Engineer",
                    "company": "Acme Corp",
                    "startDate": "2021",
                    "endDate": "Present",
                    "bullets": [
                        "Built REST APIs in Python serving 2M requests per day",
                        "Cut p95 latency by 40% with Redis caching",
                        "Mentored four junior engineers",
                    ],
                },
            },
            {
                "id": "experience-2",
                "category": "experience",
                "content": {
                    "title": "Backend Engineer",
                    "company": "Globex",
                    "startDate": "2018",
                    "endDate": "2021",
                    "bullets": [
                        "Migrated a monolith to Docker-based services",
                        "Designed PostgreSQL schemas for billing",
                        "Automated deployments with GitHub Actions",
                    ],
                },
            },
            {
                "id": "skills-1",
                "category": "skills",
                "content": [
                    "Python", "Django", "FastAPI", "PostgreSQL", "Redis",
                    "Docker", "AWS", "Git", "Linux", "REST",
                ],
            },
            {
                "id": "education-1",
                "category": "education",
                "content": {"degree": "BSc Computer Science", "school": "State University", "graduationDate": "2018"},
            },
        ],
        "detectedCategories": ["contact", "experience", "skills", "education"],
    }


@pytest.fixture
def tailored_blocks_json(raw_blocks_json) -> dict:
    data = copy.deepcopy(raw_blocks_json)
    priorities = {"contact-1": 10, "experience-1": 10, "experience-2": 8, "skills-1": 9, "education-1": 6}
    for block in data["blocks"]:
        block["priority"] = priorities[block["id"]]
    data["blocks"][1]["content"]["bullets"][0] = (
        "Designed and shipped Python REST APIs handling 2M requests per day"
    )
    return data


@pytest.fixture
def fit_score_json() -> dict:
    return {
        "score": 78,
        "breakdown": {"keywords": 32, "experience": 30, "qualifications": 16},
        "reasoning": "Strong Python and PostgreSQL match; no Azure or Kubernetes.",
    }


@pytest.fixture
def missing_skills_json() -> dict:
    return {
        "missingSkills": [
            {
                "skill": "Azure",
                "importance": "Critical",
                "reason": "Required cloud platform",
                "suggestions": [
                    {"type": "certification", "name": "AZ-900", "provider": "Microsoft", "estimatedTime": "2 weeks"}
                ],
            },
            {"skill": "Kubernetes", "importance": "high", "reason": "Listed in requirements", "suggestions": []},
        ]
    }


@pytest.fixture
def recommendations_json() -> dict:
    return {
        "recommendations": [
            {
                "priority": "high",
                "category": "skill_gap",
                "title": "Earn AZ-900",
                "description": "Close the Azure gap before applying.",
                "impact": "+10 points",
                "timeframe": "2 weeks",
            },
            {
                "priority": "medium",
                "category": "content",
                "title": "Quantify mentoring",
                "description": "Say what the mentees shipped.",
            },
        ]
    }


@pytest.fixture
def layout_json() -> dict:
    return {
        "layout": {
            "header": ["contact-1"],
            "main": ["experience-1", "experience-2"],
            "sidebar": ["skills-1", "education-1"],
            "footer": [],
        },
        "reasoning": "Experience first; skills and education in the sidebar.",
    }


@pytest.fixture
def raw_blocks(raw_blocks_json) -> RawExtractedBlocks:
    return RawExtractedBlocks.model_validate(raw_blocks_json)


@pytest.fixture
def tailored_blocks(tailored_blocks_json) -> TailoredBlocks:
    return TailoredBlocks.model_validate(tailored_blocks_json)


@pytest.fixture
def layout_decision(layout_json) -> LayoutDecision:
    return LayoutDecision.model_validate(layout_json)


@pytest.fixture
def stage_responses(
    compatibility_json,
    raw_blocks_json,
    tailored_blocks_json,
    fit_score_json,
    missing_skills_json,
    recommendations_json,
    layout_json,
) -> dict[int, object]:
    """Model output per step number. Values may be dicts, raw strings or exceptions."""
    return {
        1: compatibility_json,
        2: raw_blocks_json,
        3: tailored_blocks_json,
        4: fit_score_json,
        5: missing_skills_json,
        6: recommendations_json,
        7: layout_json,
    }


def step_of(messages: list[dict]) -> int:
    match = _STEP.search(messages[-1]["content"])
    assert match, "prompt does not name a step"
    return int(match.group(1))


@pytest.fixture
def make_gateway():
    """Build a mocked ModelGateway answering each step from ``responses``.

    ``responses`` is read at call time, so tests may edit it after building.
    """

    def _make(responses: dict[int, object]) -> MagicMock:
        gateway = MagicMock(spec=ModelGateway)
        gateway.model = "gpt-4o-mini"

        def _answer(messages: list[dict]):
            value = responses[step_of(messages)]
            if isinstance(value, BaseException):
                raise value
            return value if isinstance(value, str) else json.dumps(value)

        async def _complete(messages, temperature=0.1, expect_json=True):
            return LLMResponse(text=_answer(messages), input_tokens=100, output_tokens=50)

        async def _respond(conversation_id, messages, temperature=0.1, expect_json=True):
            return {"output_text": _answer(messages), "usage": {"input_tokens": 100, "output_tokens": 50}}

        gateway.complete = AsyncMock(side_effect=_complete)
        gateway.respond = AsyncMock(side_effect=_respond)
        gateway.create_conversation = AsyncMock(return_value="conv_123")
        return gateway

    return _make


@pytest.fixture
def fake_gateway(make_gateway, stage_responses) -> MagicMock:
    return make_gateway(stage_responses)


@pytest.fixture
def opened_connections(monkeypatch) -> list[sqlite3.Connection]:
    """Record every sqlite connection opened while the test runs."""
    opened: list[sqlite3.Connection] = []
    connect = sqlite3.connect

    def _tracking(*args, **kwargs):
        conn = connect(*args, **kwargs)
        opened.append(conn)
        return conn

    monkeypatch.setattr(sqlite3, "connect", _tracking)
    return opened

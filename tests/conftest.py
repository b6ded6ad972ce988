"""Shared fixtures for smile-advisor tests."""

from __future__ import annotations

import logging

import pytest

from smile_advisor.catalog.loader import load_catalog
from smile_advisor.catalog.models import Catalog
from smile_advisor.content.memory_backend import MemoryContentRepository
from smile_advisor.models import IntakeData, QuestionAnswer


def _intake(session_id: str, answers: dict[str, object], **kwargs: object) -> IntakeData:
    return IntakeData(
        session_id=session_id,
        answers=[QuestionAnswer(question_id=qid, answer=value) for qid, value in answers.items()],
        **kwargs,
    )


@pytest.fixture(autouse=True)
def _restore_root_logging():
    """CLI and API startup reconfigure the root logger; undo that after each test."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def catalog() -> Catalog:
    """The catalog bundled with the package."""
    return load_catalog()


@pytest.fixture
def posterior_intake() -> IntakeData:
    """Elective, single posterior tooth missing, functional profile. Scores S03 with HIGH confidence."""
    return _intake(
        "sess-posterior",
        {
            "Q1": "functional_issues",
            "Q2": 6,
            "Q3": ["missing_damaged"],
            "Q4": ["no_never"],
            "Q5": "no_aesthetic_only",
            "Q6a": "one_missing",
            "Q6b": "side_chewing",
            "Q6c": "intact",
            "Q7": "functional_durable",
            "Q8": "best_price_quality_flexible",
            "Q9": "45_60",
            "Q10": "price_quality_flexible",
            "Q11": "maybe_need_info",
            "Q12": "6_months",
            "Q13": "no",
            "Q14": "no",
            "Q15": "good",
            "Q16a": "no_complete",
            "Q17": "no",
            "Q18": "no",
        },
        metadata={"patient_name": "Sam"},
    )


@pytest.fixture
def acute_intake() -> IntakeData:
    """Acute pain with severe anxiety: safety scenario and stability tone."""
    return _intake(
        "sess-acute",
        {
            "Q1": "functional_issues",
            "Q5": "yes_pain",
            "Q6a": "one_missing",
            "Q18": "yes_severe",
        },
    )


@pytest.fixture
def unmatched_intake() -> IntakeData:
    """Mixed missing pattern with a functional profile: no scenario survives its required drivers."""
    return _intake(
        "sess-unmatched",
        {
            "Q1": "functional_issues",
            "Q5": "no_aesthetic_only",
            "Q6a": "mix_adjacent_spread",
            "Q9": "30_45",
            "Q10": "price_quality_flexible",
        },
    )


@pytest.fixture
def minimal_intake() -> IntakeData:
    """Only the required questions answered."""
    return _intake("sess-minimal", {"Q5": "no_aesthetic_only", "Q6a": "no_missing"})


@pytest.fixture
def content_repository() -> MemoryContentRepository:
    """A small authored content set covering the posterior single-tooth and acute paths."""
    filler = (
        "Many people in a similar situation weigh comfort, appearance and how long a result lasts. "
        "Your dental professional can explain how these factors apply to you after an examination."
    )
    repo = MemoryContentRepository(
        blocks={
            "B_CTX_SINGLE_TOOTH": f"A single missing tooth at the back of the mouth affects chewing. {filler}",
            "B_INTERP_STANDARD": f"Your answers point towards a practical, durable approach. {filler}",
            "B_OPT_IMPLANT": "An implant replaces the root and crown of the missing tooth.",
            "B_OPT_BRIDGE": "A bridge spans the gap using the neighbouring teeth for support.",
            "B_COMPARE_IMPLANT_VS_BRIDGE": "Implants leave neighbouring teeth untouched; bridges are usually quicker.",
            "B_TRADEOFF_DURABILITY": "Durable options can take longer to complete.",
            "B_PROCESS_IMPLANT": "Treatment usually takes {ESTIMATED_VISITS}.",
            "B_COST_OVERVIEW": "Costs depend on the option and the number of visits.",
            "B_RISKLANG_STANDARD": f"Your answers suggest a low to moderate risk profile. {filler} {filler}",
            "TM_CTX_FIRST_TIME": "This would be your first treatment of this kind.",
            "TM_BUDGET_FLEXIBLE": "You indicated some flexibility on budget.",
            "A_BLOCK_TREATMENT_OPTIONS": "Treatment options are discussed once the acute issue has been examined.",
            "A_WARN_ACTIVE_SYMPTOMS": "You reported active symptoms. Please contact a dental practice soon.",
        },
        scenarios={
            "S03": {
                "personal_summary": (
                    f"{{PATIENT_NAME}}, you are missing a single tooth in the chewing area. {filler} {filler} "
                    f"{filler} {filler}"
                ),
                "context": f"Back teeth carry most of the chewing load. {filler}",
            },
            "S12": {
                "personal_summary": (
                    f"You mentioned discomfort that needs attention soon. {filler} {filler} {filler} {filler}"
                ),
                "context": f"Acute symptoms are best looked at promptly. {filler}",
                "interpretation": "Your answers point to something that should be examined before any planning.",
                "options": "Several treatment routes could be discussed later.",
            },
        },
    )
    repo.add_block("B_NUANCE_S03", "Posterior gaps can let neighbouring teeth drift over time.")
    return repo

"""
Section Assembler
Materializes the attempt sections of a test template.
"""
import logging
import random
from typing import List, Optional

from attempt_engine.schemas import (
    AttemptQuestion,
    AttemptSection,
    SectionConfig,
    SelectionMode,
    TestTemplate,
    TestType,
)
from attempt_engine.services.catalog import Catalog
from attempt_engine.services.sampler import QuestionFilter, sample_question_ids

logger = logging.getLogger(__name__)

QUIZ_SECTION_NAME = "Quiz"


def build_attempt_questions(question_ids: List[str]) -> List[AttemptQuestion]:
    """Empty answer placeholders, ordered 1..N."""
    return [
        AttemptQuestion(question=qid, order=index)
        for index, qid in enumerate(question_ids, start=1)
    ]


def _build_quiz_section(
    template: TestTemplate, catalog: Catalog, rng: Optional[random.Random]
) -> AttemptSection:
    cfg = template.quiz_config
    question_filter = QuestionFilter(
        exam_id=template.exam,
        question_types=cfg.allowed_question_types if cfg else [],
        difficulties=cfg.difficulties if cfg else [],
        tags=cfg.tags if cfg else [],
    )
    size = cfg.total_questions if cfg else 0
    question_ids = sample_question_ids(catalog, question_filter, size, rng)

    return AttemptSection(
        name=QUIZ_SECTION_NAME,
        duration_minutes=(cfg.duration_minutes if cfg else None) or template.total_duration_minutes,
        questions=build_attempt_questions(question_ids),
    )


def _section_question_ids(
    template: TestTemplate, sec_cfg: SectionConfig, catalog: Catalog, rng: Optional[random.Random]
) -> List[str]:
    if sec_cfg.selection_mode == SelectionMode.FIXED:
        return list(sec_cfg.questions)

    random_cfg = sec_cfg.random_config
    question_filter = QuestionFilter(
        exam_id=template.exam,
        section_id=sec_cfg.section,
        question_types=random_cfg.question_types if random_cfg else [],
        difficulties=random_cfg.difficulties if random_cfg else [],
        tags=random_cfg.tags if random_cfg else [],
    )
    size = (random_cfg.question_count if random_cfg else None) or sec_cfg.question_count or 0
    question_ids = sample_question_ids(catalog, question_filter, size, rng)
    if len(question_ids) < size:
        logger.warning(
            "Section %s of template %s: sampled %d of %d questions",
            sec_cfg.section, template.id, len(question_ids), size,
        )
    return question_ids


def build_sections(
    template: TestTemplate, catalog: Catalog, rng: Optional[random.Random] = None
) -> List[AttemptSection]:
    """
    Builds the ordered attempt sections for a template.

    Quiz templates become a single virtual "Quiz" section; full-length and
    sectional templates follow template.sections in order.

    Args:
        template: Template to assemble.
        catalog: Catalog used for sampling and section names.
        rng: Optional random source (seeded in tests).

    Returns:
        List of AttemptSection with empty answer state.
    """
    if template.test_type == TestType.QUIZ:
        return [_build_quiz_section(template, catalog, rng)]

    sections: List[AttemptSection] = []
    for sec_cfg in template.sections:
        question_ids = _section_question_ids(template, sec_cfg, catalog, rng)
        catalog_section = catalog.get_section(sec_cfg.section) if not sec_cfg.custom_name else None
        name = sec_cfg.custom_name or (catalog_section.name if catalog_section else None) or "Section"

        sections.append(
            AttemptSection(
                section_config_id=sec_cfg.id,
                section_ref=sec_cfg.section,
                name=name,
                duration_minutes=sec_cfg.duration_minutes or template.total_duration_minutes,
                questions=build_attempt_questions(question_ids),
            )
        )
    return sections


def count_questions(sections: List[AttemptSection]) -> int:
    return sum(len(section.questions) for section in sections)

"""
Attempt Lifecycle Manager
Start / resume, module ordering, read and submission of test attempts.
"""
import logging
import random
from datetime import datetime
from typing import Any, List, Optional, Tuple

from attempt_engine.errors import Conflict, InvalidArgument, NotFound
from attempt_engine.schemas import (
    AttemptStatus,
    AttemptView,
    GmatMeta,
    GmatPhase,
    OverallStats,
    TestAttempt,
    utcnow,
)
from attempt_engine.services.assembler import build_sections, count_questions
from attempt_engine.services.catalog import Catalog
from attempt_engine.services.sanitizer import sanitize_questions
from attempt_engine.services.scoring import score_attempt
from attempt_engine.services.store import AttemptStore

logger = logging.getLogger(__name__)


def attempt_question_ids(attempt: TestAttempt) -> List[str]:
    """Question ids in section then question order, without duplicates."""
    ids = [aq.question for section in attempt.sections for aq in section.questions]
    return list(dict.fromkeys(ids))


def _require_in_progress(attempt: TestAttempt) -> None:
    if attempt.status != AttemptStatus.IN_PROGRESS:
        raise Conflict(f"Attempt is {attempt.status.value}")


def start_attempt(
    store: AttemptStore,
    catalog: Catalog,
    user_id: str,
    template_id: str,
    rng: Optional[random.Random] = None,
) -> Tuple[TestAttempt, bool]:
    """
    Starts a new attempt, or resumes the user's in-progress one.

    Args:
        store: Attempt store.
        catalog: Catalog for the template and question sampling.
        user_id: Owning user.
        template_id: Template to attempt.
        rng: Optional random source for sampled sections.

    Returns:
        (attempt, created). created is False when an attempt was resumed.

    Raises:
        NotFound: If the template is missing or inactive.
    """
    template = catalog.get_template(template_id)
    if template is None or not template.is_active:
        raise NotFound("Test not found or inactive")

    existing = store.find_in_progress(user_id, template_id)
    if existing is not None:
        logger.info("Resuming attempt %s for user %s", existing.id, user_id)
        return existing, False

    def _new_attempt() -> TestAttempt:
        sections = build_sections(template, catalog, rng)
        return TestAttempt(
            user=user_id,
            exam=template.exam,
            test_template=template.id,
            test_type=template.test_type,
            total_duration_minutes=template.total_duration_minutes,
            sections=sections,
            overall_stats=OverallStats(total_questions=count_questions(sections)),
        )

    attempt, created = store.create_once(user_id, template_id, _new_attempt)
    if created:
        logger.info(
            "Attempt %s started: template %s, %d sections, %d questions",
            attempt.id, template_id, len(attempt.sections), attempt.overall_stats.total_questions,
        )
    return attempt, created


def validate_module_order(module_order: Any, section_count: Optional[int] = None) -> List[int]:
    """
    Checks that module_order is a permutation of section indices.

    Raises:
        InvalidArgument: With the specific reason.
    """
    if (
        not isinstance(module_order, (list, tuple))
        or not module_order
        or not all(isinstance(n, int) and not isinstance(n, bool) for n in module_order)
    ):
        raise InvalidArgument("moduleOrder must be a non-empty array of indices")
    if section_count is None:
        return list(module_order)

    if any(n < 0 or n >= section_count for n in module_order):
        raise InvalidArgument("Invalid module indices in moduleOrder")
    if len(set(module_order)) != len(module_order):
        raise InvalidArgument("moduleOrder must not repeat a module")
    if len(module_order) != section_count:
        raise InvalidArgument(f"moduleOrder must list all {section_count} modules")
    return list(module_order)


def set_module_order(
    store: AttemptStore, attempt_id: str, user_id: str, module_order: Any
) -> TestAttempt:
    """
    Reorders the attempt's sections and starts choose-your-order navigation.

    Raises:
        InvalidArgument: If module_order is not a permutation of section indices.
        NotFound: If the attempt does not exist for this user.
        Conflict: If the attempt is no longer in progress.
    """
    validate_module_order(module_order)

    with store.lock(attempt_id):
        attempt = store.get(attempt_id, user_id)
        _require_in_progress(attempt)
        order = validate_module_order(module_order, len(attempt.sections))

        attempt.sections = [attempt.sections[i] for i in order]
        attempt.gmat_meta = GmatMeta(
            order_chosen=True,
            module_order=order,
            phase=GmatPhase.SECTION_INSTRUCTIONS,
            current_section_index=0,
            current_question_index=0,
        )
        store.save(attempt)

    logger.info("Attempt %s module order set to %s", attempt_id, order)
    return attempt


def get_attempt(store: AttemptStore, catalog: Catalog, attempt_id: str, user_id: str) -> AttemptView:
    """Loads an attempt with its questions, redacted unless the attempt is completed."""
    attempt = store.get(attempt_id, user_id)
    question_ids = attempt_question_ids(attempt)
    found = catalog.get_questions(question_ids)
    questions = [found[qid] for qid in question_ids if qid in found]

    return AttemptView(
        attempt=attempt,
        sanitized_questions=sanitize_questions(questions, attempt.status),
    )


def submit_attempt(
    store: AttemptStore,
    catalog: Catalog,
    attempt_id: str,
    user_id: str,
    now: Optional[datetime] = None,
) -> TestAttempt:
    """
    Scores and completes an attempt.

    The scored attempt is persisted in one write together with the status
    change; any failure before that leaves the stored attempt in progress.

    Raises:
        NotFound: If the attempt does not exist for this user.
        Conflict: If the attempt is no longer in progress.
        CatalogUnavailable: If questions cannot be loaded.
    """
    now = now or utcnow()

    with store.lock(attempt_id):
        attempt = store.get(attempt_id, user_id)
        _require_in_progress(attempt)

        questions = catalog.get_questions(attempt_question_ids(attempt))
        score_attempt(attempt, questions, now)
        attempt.status = AttemptStatus.COMPLETED
        attempt.completed_at = now
        store.save(attempt)

    logger.info("Attempt %s submitted", attempt_id)
    return attempt

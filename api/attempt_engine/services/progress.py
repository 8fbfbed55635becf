"""
Progress Recorder
Applies partial client updates to an in-progress attempt.
"""
import logging
from datetime import datetime
from typing import Dict, Mapping, Optional, Tuple, TypeVar

from attempt_engine.errors import Conflict, InvalidArgument
from attempt_engine.schemas import (
    AttemptQuestion,
    AttemptStatus,
    GmatMeta,
    ProgressUpdate,
    SaveProgressRequest,
    SectionStatus,
    TestAttempt,
    utcnow,
)
from attempt_engine.services.store import AttemptStore

logger = logging.getLogger(__name__)

V = TypeVar("V")


def merge_selections(existing: Mapping[str, V], incoming: Mapping[str, V]) -> Dict[str, V]:
    """Right-biased key merge: incoming keys overwrite, other existing keys are kept."""
    merged = dict(existing)
    merged.update(incoming)
    return merged


def _resolve(attempt: TestAttempt, update: ProgressUpdate) -> Optional[Tuple[int, AttemptQuestion]]:
    s_idx, q_idx = update.section_index, update.question_index
    if s_idx is None or q_idx is None:
        return None
    if not 0 <= s_idx < len(attempt.sections):
        return None
    questions = attempt.sections[s_idx].questions
    if not 0 <= q_idx < len(questions):
        return None
    return s_idx, questions[q_idx]


def _apply_update(aq: AttemptQuestion, update: ProgressUpdate) -> None:
    if update.answer_option_indexes is not None:
        aq.answer_option_indexes = list(update.answer_option_indexes)
    if update.answer_text is not None:
        aq.answer_text = update.answer_text
    if update.selections is not None:
        aq.selections = merge_selections(aq.selections, update.selections)
    if update.dropdown_selections is not None:
        aq.dropdown_selections = merge_selections(aq.dropdown_selections, update.dropdown_selections)
    if update.is_answered is not None:
        aq.is_answered = update.is_answered
    if update.marked_for_review is not None:
        aq.marked_for_review = update.marked_for_review
    if update.time_spent_seconds is not None:
        aq.time_spent_seconds = update.time_spent_seconds


def _apply_navigation(attempt: TestAttempt, request: SaveProgressRequest) -> None:
    nav_fields = {
        "phase": request.gmat_phase,
        "current_section_index": request.current_section_index,
        "current_question_index": request.current_question_index,
        "on_break": request.on_break,
        "break_expires_at": request.break_expires_at,
    }
    present = {name: value for name, value in nav_fields.items() if value is not None}
    if not present:
        return
    if attempt.gmat_meta is None:
        attempt.gmat_meta = GmatMeta()
    for name, value in present.items():
        setattr(attempt.gmat_meta, name, value)


def apply_progress(
    attempt: TestAttempt, request: SaveProgressRequest, now: Optional[datetime] = None
) -> Tuple[int, int]:
    """
    Applies a progress request to the attempt in place.

    Updates pointing outside the attempt are skipped. Scoring fields are
    never touched here.

    Returns:
        (applied, skipped) update counts.
    """
    now = now or utcnow()
    applied = skipped = 0

    for update in request.updates:
        target = _resolve(attempt, update)
        if target is None:
            skipped += 1
            continue
        s_idx, aq = target
        section = attempt.sections[s_idx]
        section.status = SectionStatus.IN_PROGRESS
        if section.started_at is None:
            section.started_at = now
        _apply_update(aq, update)
        applied += 1

    if request.total_time_used_seconds is not None:
        attempt.total_time_used_seconds = request.total_time_used_seconds

    _apply_navigation(attempt, request)
    return applied, skipped


def save_progress(
    store: AttemptStore, attempt_id: str, user_id: str, request: SaveProgressRequest
) -> TestAttempt:
    """
    Records client progress on an in-progress attempt.

    Raises:
        InvalidArgument: If no updates were sent.
        NotFound: If the attempt does not exist for this user.
        Conflict: If the attempt is no longer in progress.
    """
    if not request.updates:
        raise InvalidArgument("updates[] is required")

    with store.lock(attempt_id):
        attempt = store.get(attempt_id, user_id)
        if attempt.status != AttemptStatus.IN_PROGRESS:
            raise Conflict("Attempt already finished")

        applied, skipped = apply_progress(attempt, request)
        store.save(attempt)

    logger.info("Attempt %s progress saved: %d applied, %d skipped", attempt_id, applied, skipped)
    return attempt

"""
Scoring Engine
Evaluates every attempt question against its type-specific rule and rolls up
per-section and overall statistics. A run is a full recomputation, so it can
be repeated against the same stored answers.
"""
import logging
from datetime import datetime
from typing import Callable, Dict, Optional, Tuple

from attempt_engine.config import DEFAULT_MARKS, DEFAULT_NEGATIVE_MARKS
from attempt_engine.schemas import (
    ESSAY_TYPES,
    AttemptQuestion,
    DataInsights,
    DataInsightsSubtype,
    OverallStats,
    Question,
    QuestionType,
    SectionStats,
    SectionStatus,
    TestAttempt,
    utcnow,
)

logger = logging.getLogger(__name__)

Evaluator = Callable[[Question, AttemptQuestion], bool]


def has_answer(aq: AttemptQuestion) -> bool:
    return bool(
        aq.answer_option_indexes
        or aq.answer_text.strip()
        or aq.selections
        or aq.dropdown_selections
    )


# --- Data insights subtypes ---

def _multi_source_correct(di: DataInsights, aq: AttemptQuestion) -> bool:
    if di.multi_source is None or not di.multi_source.statements:
        return False
    return all(aq.selections.get(st.id) == st.correct for st in di.multi_source.statements)


def _two_part_correct(di: DataInsights, aq: AttemptQuestion) -> bool:
    if di.two_part is None or not di.two_part.correct_by_column:
        return False
    return all(
        aq.selections.get(column_id) == option_id
        for column_id, option_id in di.two_part.correct_by_column.items()
    )


def _table_analysis_correct(di: DataInsights, aq: AttemptQuestion) -> bool:
    if di.table_analysis is None or not di.table_analysis.statements:
        return False
    return all(aq.selections.get(st.id) == st.correct for st in di.table_analysis.statements)


def _graphics_correct(di: DataInsights, aq: AttemptQuestion) -> bool:
    if di.graphics is None or not di.graphics.dropdowns:
        return False
    return all(
        dd.correct_index is not None and aq.dropdown_selections.get(dd.id) == dd.correct_index
        for dd in di.graphics.dropdowns
    )


DATA_INSIGHTS_EVALUATORS: Dict[DataInsightsSubtype, Callable[[DataInsights, AttemptQuestion], bool]] = {
    DataInsightsSubtype.MULTI_SOURCE_REASONING: _multi_source_correct,
    DataInsightsSubtype.TWO_PART_ANALYSIS: _two_part_correct,
    DataInsightsSubtype.TABLE_ANALYSIS: _table_analysis_correct,
    DataInsightsSubtype.GRAPHICS_INTERPRETATION: _graphics_correct,
}


# --- Question kinds ---

def _essay_correct(question: Question, aq: AttemptQuestion) -> bool:
    # Quality is graded later by the writing evaluator.
    return True


def _data_insights_correct(question: Question, aq: AttemptQuestion) -> bool:
    di = question.data_insights
    if di is None:
        logger.warning("Question %s has no dataInsights payload; graded incorrect", question.id)
        return False
    return DATA_INSIGHTS_EVALUATORS[di.subtype](di, aq)


def _options_correct(question: Question, aq: AttemptQuestion) -> bool:
    correct = {index for index, opt in enumerate(question.options) if opt.is_correct}
    return set(aq.answer_option_indexes) == correct


def _text_correct(question: Question, aq: AttemptQuestion) -> bool:
    expected = (question.correct_answer_text or "").strip().lower()
    given = aq.answer_text.strip().lower()
    return bool(expected) and bool(given) and expected == given


EVALUATORS: Dict[str, Evaluator] = {
    "essay": _essay_correct,
    "data_insights": _data_insights_correct,
    "options": _options_correct,
    "text": _text_correct,
}


def question_kind(question: Question) -> str:
    """Maps a question onto the evaluator key used by EVALUATORS."""
    if question.question_type in ESSAY_TYPES:
        return "essay"
    if question.question_type == QuestionType.GMAT_DATA_INSIGHTS:
        return "data_insights"
    if question.options:
        return "options"
    return "text"


def _recorded_writing_verdict(question: Question, aq: AttemptQuestion) -> Optional[Tuple[bool, float]]:
    """Verdict stored by a previous writing evaluation pass, if any."""
    if question.question_type not in ESSAY_TYPES:
        return None
    meta = aq.evaluation_meta
    if meta is None or meta.evaluated_at is None:
        return None
    return aq.is_correct, aq.marks_awarded


def score_attempt(
    attempt: TestAttempt,
    questions: Dict[str, Question],
    now: Optional[datetime] = None,
) -> OverallStats:
    """
    Scores every question of the attempt and writes section and overall stats.

    Args:
        attempt: Attempt to score (mutated in place).
        questions: Question id -> catalog Question. Missing ids are skipped.
        now: Timestamp for section endedAt (defaults to current UTC time).

    Returns:
        The new overall stats (also stored on the attempt).
    """
    now = now or utcnow()
    overall = OverallStats()

    for section in attempt.sections:
        stats = SectionStats()

        for aq in section.questions:
            question = questions.get(aq.question)
            if question is None:
                logger.warning("Attempt %s: question %s missing from catalog; skipped", attempt.id, aq.question)
                continue

            overall.total_questions += 1

            if not has_answer(aq):
                aq.is_correct = False
                aq.marks_awarded = 0
                stats.skipped += 1
                overall.total_skipped += 1
                continue

            overall.total_attempted += 1

            recorded = _recorded_writing_verdict(question, aq)
            if recorded is not None:
                is_correct, marks_awarded = recorded
            else:
                is_correct = EVALUATORS[question_kind(question)](question, aq)
                marks = question.marks if question.marks is not None else DEFAULT_MARKS
                negative = question.negative_marks if question.negative_marks is not None else DEFAULT_NEGATIVE_MARKS
                marks_awarded = marks if is_correct else (-negative if negative else 0)

            aq.is_correct = is_correct
            aq.marks_awarded = marks_awarded
            if is_correct:
                stats.correct += 1
                overall.total_correct += 1
            else:
                stats.incorrect += 1
                overall.total_incorrect += 1
            stats.raw_score += marks_awarded
            overall.raw_score += marks_awarded

        section.stats = stats
        section.status = SectionStatus.COMPLETED
        section.ended_at = section.ended_at or now

    attempt.overall_stats = overall
    logger.info(
        "Attempt %s scored: %d/%d correct, %d skipped, raw %s",
        attempt.id, overall.total_correct, overall.total_questions, overall.total_skipped, overall.raw_score,
    )
    return overall

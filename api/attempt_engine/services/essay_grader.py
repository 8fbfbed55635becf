"""
Writing Evaluation Service
Grades essay-type answers of completed attempts with Google Gemini and
recomputes the attempt's stats afterwards.
"""
import logging
from datetime import datetime
from typing import Dict, Optional

from google import genai
from google.genai import errors, types

from attempt_engine.config import MODEL_NAME, Settings, get_api_key, get_prompt
from attempt_engine.errors import Conflict
from attempt_engine.schemas import (
    ESSAY_TYPES,
    AttemptStatus,
    EvaluationMeta,
    Question,
    TestAttempt,
    WritingEvaluation,
    utcnow,
)
from attempt_engine.services.catalog import Catalog
from attempt_engine.services.lifecycle import attempt_question_ids
from attempt_engine.services.scoring import score_attempt
from attempt_engine.services.store import AttemptStore

logger = logging.getLogger(__name__)


def get_client(api_key: Optional[str] = None) -> genai.Client:
    """
    Creates and returns a configured Gemini API client.

    Raises:
        ValueError: If API key is not configured.
    """
    resolved_key = api_key.strip() if api_key else ""
    if not resolved_key:
        resolved_key = get_api_key()
    return genai.Client(api_key=resolved_key)


class WritingEvaluator:
    """Contract for the external writing evaluator."""

    def evaluate(self, question: Question, answer_text: str) -> WritingEvaluation:
        raise NotImplementedError


class GeminiWritingEvaluator(WritingEvaluator):
    def __init__(self, client: genai.Client, model: str = MODEL_NAME, max_score: float = 6.0):
        self.client = client
        self.model = model
        self.max_score = max_score

    def evaluate(self, question: Question, answer_text: str) -> WritingEvaluation:
        """
        Scores one essay.

        Raises:
            ValueError: If Gemini returns no parsable verdict.
            google.genai.errors.APIError: If the API call fails.
        """
        prompt = get_prompt(
            "writing_evaluator",
            question_text=question.question_text,
            stimulus=question.stimulus or "",
            answer_text=answer_text,
            max_score=self.max_score,
        )
        response = self.client.models.generate_content(
            model=self.model,
            contents=[prompt],
            config=types.GenerateContentConfig(
                response_mime_type="application/json",
                response_schema=WritingEvaluation,
                temperature=0,
            ),
        )
        parsed = response.parsed
        if parsed is None:
            raise ValueError("[Writing] Empty response from Gemini")
        score = min(max(parsed.score, 0.0), self.max_score)
        return WritingEvaluation(score=score, feedback=parsed.feedback)


def _writing_done(attempt: TestAttempt, questions: Dict[str, Question]) -> bool:
    for section in attempt.sections:
        for aq in section.questions:
            question = questions.get(aq.question)
            if question is None or question.question_type not in ESSAY_TYPES:
                continue
            if aq.answer_text.strip() and (aq.evaluation_meta is None or aq.evaluation_meta.evaluated_at is None):
                return False
    return True


def apply_writing_evaluations(
    attempt: TestAttempt,
    questions: Dict[str, Question],
    evaluator: WritingEvaluator,
    settings: Settings,
    now: Optional[datetime] = None,
) -> int:
    """
    Evaluates every answered, not yet evaluated essay of the attempt, then
    re-runs scoring so section and overall stats reflect the new marks.

    A failed evaluation is logged and left for a later pass.

    Returns:
        Number of essays evaluated in this pass.
    """
    now = now or utcnow()
    evaluated = 0

    for section in attempt.sections:
        for aq in section.questions:
            question = questions.get(aq.question)
            if question is None or question.question_type not in ESSAY_TYPES:
                continue
            if not aq.answer_text.strip():
                continue
            if aq.evaluation_meta is not None and aq.evaluation_meta.evaluated_at is not None:
                continue

            try:
                result = evaluator.evaluate(question, aq.answer_text)
            except (errors.APIError, ValueError):
                logger.exception("Writing evaluation failed for question %s of attempt %s", aq.question, attempt.id)
                continue

            aq.marks_awarded = result.score
            aq.is_correct = result.score >= settings.writing_pass_threshold * settings.writing_max_score
            aq.evaluation_meta = EvaluationMeta(score=result.score, feedback=result.feedback, evaluated_at=now)
            evaluated += 1

    score_attempt(attempt, questions, now)
    attempt.analysis_status = _writing_done(attempt, questions)
    return evaluated


def evaluate_attempt_writing(
    store: AttemptStore,
    catalog: Catalog,
    evaluator: WritingEvaluator,
    attempt_id: str,
    user_id: str,
    settings: Settings,
) -> TestAttempt:
    """
    Runs the writing evaluation pass on a completed attempt and persists it.

    Raises:
        NotFound: If the attempt does not exist for this user.
        Conflict: If the attempt is not completed yet.
    """
    with store.lock(attempt_id):
        attempt = store.get(attempt_id, user_id)
        if attempt.status != AttemptStatus.COMPLETED:
            raise Conflict("Writing is evaluated after submission")

        questions = catalog.get_questions(attempt_question_ids(attempt))
        evaluated = apply_writing_evaluations(attempt, questions, evaluator, settings)
        store.save(attempt)

    logger.info("Attempt %s: %d essays evaluated, analysis done=%s", attempt_id, evaluated, attempt.analysis_status)
    return attempt

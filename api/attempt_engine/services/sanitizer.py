"""
Answer Sanitizer
Client-safe projection of question documents.
"""
from typing import Any, Dict, Iterable, List

from attempt_engine.schemas import AttemptStatus, Question

# Top-level fields that reveal or hint at the answer.
REDACTED_FIELDS = ("correctAnswerText", "explanation", "negativeMarks", "source")


def _strip(items: List[Dict[str, Any]], field: str) -> List[Dict[str, Any]]:
    return [{k: v for k, v in item.items() if k != field} for item in items]


def _sanitize_data_insights(di: Dict[str, Any]) -> Dict[str, Any]:
    di = dict(di)
    if di.get("multiSource"):
        block = dict(di["multiSource"])
        block["statements"] = _strip(block.get("statements") or [], "correct")
        di["multiSource"] = block
    if di.get("tableAnalysis"):
        block = dict(di["tableAnalysis"])
        block["statements"] = _strip(block.get("statements") or [], "correct")
        di["tableAnalysis"] = block
    if di.get("graphics"):
        block = dict(di["graphics"])
        block["dropdowns"] = _strip(block.get("dropdowns") or [], "correctIndex")
        di["graphics"] = block
    if di.get("twoPart"):
        di["twoPart"] = {k: v for k, v in di["twoPart"].items() if k != "correctByColumn"}
    return di


def sanitize_question(document: Dict[str, Any]) -> Dict[str, Any]:
    """Returns a copy of a camelCase question document without correctness fields."""
    plain = {k: v for k, v in document.items() if k not in REDACTED_FIELDS}
    if plain.get("options"):
        plain["options"] = _strip(plain["options"], "isCorrect")
    if plain.get("dataInsights"):
        plain["dataInsights"] = _sanitize_data_insights(plain["dataInsights"])
    return plain


def sanitize_questions(questions: Iterable[Question], status: AttemptStatus) -> List[Dict[str, Any]]:
    """
    Projects questions for the client.

    Completed attempts get the full documents so answers can be reviewed;
    any other status gets the redacted view.
    """
    documents = [q.to_document() for q in questions]
    if status == AttemptStatus.COMPLETED:
        return documents
    return [sanitize_question(doc) for doc in documents]

"""
Question Sampler
Filters the catalog's question pool and draws a random subset of ids.
"""
import random
from typing import List, Optional, Union

from pydantic import Field, field_validator

from attempt_engine.schemas import CamelModel, Question
from attempt_engine.services.catalog import Catalog


def split_csv(value: Union[str, List[str], None]) -> List[str]:
    """Accepts 'a, b' or ['a', 'b'] and returns trimmed, non-empty entries."""
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [str(item).strip() for item in value if str(item).strip()]


class QuestionFilter(CamelModel):
    """Conjunctive filter over catalog questions."""
    exam_id: str
    section_id: Optional[str] = None
    question_types: List[str] = Field(default_factory=list)
    difficulties: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    search: Optional[str] = None

    @field_validator("question_types", "difficulties", "tags", mode="before")
    @classmethod
    def _split(cls, value):
        return split_csv(value)

    def matches(self, question: Question) -> bool:
        if question.exam != self.exam_id:
            return False
        if self.section_id and question.section != self.section_id:
            return False
        if self.question_types and question.question_type.value not in self.question_types:
            return False
        if self.difficulties and question.difficulty.value not in self.difficulties:
            return False
        if self.tags and not set(question.tags) & set(self.tags):
            return False
        if self.search:
            needle = self.search.lower()
            haystacks = (question.question_text, question.stimulus, question.source)
            if not any(needle in (text or "").lower() for text in haystacks):
                return False
        return True


def sample_question_ids(
    catalog: Catalog,
    question_filter: QuestionFilter,
    size: int,
    rng: Optional[random.Random] = None,
) -> List[str]:
    """
    Draws up to `size` matching question ids uniformly without replacement.

    Args:
        catalog: Catalog providing the candidate pool.
        question_filter: Filter the candidates must satisfy.
        size: Requested number of questions.
        rng: Optional random source (seeded in tests).

    Returns:
        Ids in draw order. Fewer than `size` when the pool is smaller.
    """
    if size <= 0:
        return []
    pool = [
        q.id for q in catalog.list_questions(question_filter.exam_id, question_filter.section_id)
        if question_filter.matches(q)
    ]
    rng = rng or random
    return rng.sample(pool, min(size, len(pool)))

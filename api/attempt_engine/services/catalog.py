"""
Catalog Service
Read-only lookups of templates, sections and questions owned by the catalog.
"""
import logging
from typing import Dict, Iterable, List, Optional

import httpx
from pydantic import ValidationError

from attempt_engine.errors import CatalogUnavailable
from attempt_engine.schemas import Question, Section, TestTemplate

logger = logging.getLogger(__name__)


def _parse_questions(payload: List[dict]) -> List[Question]:
    """Validates catalog documents one by one; malformed ones are logged and left out."""
    questions = []
    for item in payload:
        try:
            questions.append(Question.model_validate(item))
        except ValidationError as e:
            qid = item.get("id") if isinstance(item, dict) else None
            logger.warning("Catalog question %s is malformed; left out: %s", qid, e.errors()[:1])
    return questions


class Catalog:
    """Lookup contract the engine consumes. Unknown ids resolve to None / are omitted."""

    def get_template(self, template_id: str) -> Optional[TestTemplate]:
        raise NotImplementedError

    def get_section(self, section_id: str) -> Optional[Section]:
        raise NotImplementedError

    def get_questions(self, question_ids: Iterable[str]) -> Dict[str, Question]:
        raise NotImplementedError

    def list_questions(self, exam_id: str, section_id: Optional[str] = None) -> List[Question]:
        raise NotImplementedError


class InMemoryCatalog(Catalog):
    """Dict-backed catalog for tests and local runs."""

    def __init__(
        self,
        templates: Iterable[TestTemplate] = (),
        sections: Iterable[Section] = (),
        questions: Iterable[Question] = (),
    ):
        self.templates: Dict[str, TestTemplate] = {t.id: t for t in templates}
        self.sections: Dict[str, Section] = {s.id: s for s in sections}
        self.questions: Dict[str, Question] = {q.id: q for q in questions}

    def add_template(self, template: TestTemplate) -> None:
        self.templates[template.id] = template

    def add_section(self, section: Section) -> None:
        self.sections[section.id] = section

    def add_questions(self, questions: Iterable[Question]) -> None:
        for question in questions:
            self.questions[question.id] = question

    def get_template(self, template_id: str) -> Optional[TestTemplate]:
        return self.templates.get(template_id)

    def get_section(self, section_id: str) -> Optional[Section]:
        return self.sections.get(section_id)

    def get_questions(self, question_ids: Iterable[str]) -> Dict[str, Question]:
        return {qid: self.questions[qid] for qid in question_ids if qid in self.questions}

    def list_questions(self, exam_id: str, section_id: Optional[str] = None) -> List[Question]:
        return [
            q for q in self.questions.values()
            if q.exam == exam_id and (section_id is None or q.section == section_id)
        ]


class HttpCatalog(Catalog):
    """
    Catalog client backed by the catalog service's JSON API.

    Every call has a bounded timeout; transport failures raise CatalogUnavailable
    so the calling operation fails closed.
    """

    def __init__(self, base_url: str, timeout: float = 10.0, client: Optional[httpx.Client] = None):
        self.client = client or httpx.Client(base_url=base_url, timeout=timeout)

    def _get(self, path: str, params: Optional[dict] = None):
        try:
            response = self.client.get(path, params=params)
            if response.status_code == 404:
                return None
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as e:
            logger.error("Catalog request %s failed: %s", path, e)
            raise CatalogUnavailable(f"Catalog unavailable: {e}") from e

    def get_template(self, template_id: str) -> Optional[TestTemplate]:
        payload = self._get(f"/templates/{template_id}")
        return TestTemplate.model_validate(payload) if payload else None

    def get_section(self, section_id: str) -> Optional[Section]:
        payload = self._get(f"/sections/{section_id}")
        return Section.model_validate(payload) if payload else None

    def get_questions(self, question_ids: Iterable[str]) -> Dict[str, Question]:
        ids = list(dict.fromkeys(question_ids))
        if not ids:
            return {}
        payload = self._get("/questions", params={"ids": ",".join(ids)}) or []
        return {q.id: q for q in _parse_questions(payload)}

    def list_questions(self, exam_id: str, section_id: Optional[str] = None) -> List[Question]:
        params = {"examId": exam_id}
        if section_id:
            params["sectionId"] = section_id
        payload = self._get("/questions", params=params) or []
        return _parse_questions(payload)

    def close(self) -> None:
        self.client.close()

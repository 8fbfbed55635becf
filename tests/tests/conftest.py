"""
Pytest Configuration & Shared Fixtures
"""
import random
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from attempt_engine import schemas
from attempt_engine.main import app, get_catalog, get_store, get_writing_evaluator
from attempt_engine.schemas import (
    DataInsights,
    Dropdown,
    Graphics,
    MultiSource,
    MultiSourceStatement,
    Option,
    Question,
    Section,
    TableAnalysis,
    TableStatement,
    TwoPart,
    TwoPartColumn,
    TwoPartOption,
    WritingEvaluation,
)
from attempt_engine.services.catalog import InMemoryCatalog
from attempt_engine.services.store import AttemptStore

EXAM_ID = "exam-gmat"
USER_ID = "user-1"
OTHER_USER_ID = "user-2"


def mcq(qid, section="sec-quant", correct=(1,), **kwargs):
    """Four-option question with the given correct indexes."""
    options = [Option(label=label, text=f"Option {label}", is_correct=i in correct) for i, label in enumerate("ABCD")]
    kwargs.setdefault("question_type", "gmat_quant_problem_solving")
    kwargs.setdefault("question_text", f"Question {qid}")
    return Question(id=qid, exam=EXAM_ID, section=section, options=options, **kwargs)


def build_questions():
    return [
        mcq("q-ps-1", difficulty="Easy", tags=["algebra"], explanation="Factor it", source="Official Guide"),
        mcq("q-ps-2", difficulty="Medium", tags=["geometry"]),
        mcq("q-ps-3", difficulty="Hard", tags=["algebra", "probability"], stimulus="A bag holds 3 red marbles"),
        mcq("q-ps-4", difficulty="Hard", tags=["probability"]),
        mcq(
            "q-mcq-multi", section="sec-verbal", correct=(0, 2), marks=3, negative_marks=1,
            question_type="gmat_verbal_cr",
        ),
        Question(
            id="q-text", exam=EXAM_ID, section="sec-quant", question_type="gre_quantitative",
            question_text="What is 6 x 7?", correct_answer_text=" 42 ",
        ),
        Question(
            id="q-ms", exam=EXAM_ID, section="sec-di", question_type="gmat_data_insights",
            question_text="Consider each pair.",
            data_insights=DataInsights(
                subtype="multi_source_reasoning",
                multi_source=MultiSource(statements=[
                    MultiSourceStatement(id="s1", text="Tony and Rahul", correct="yes"),
                    MultiSourceStatement(id="s2", text="Ann and Lee", correct="no"),
                    MultiSourceStatement(id="s3", text="Sam and Kim", correct="yes"),
                ]),
            ),
        ),
        Question(
            id="q-tp", exam=EXAM_ID, section="sec-di", question_type="gmat_data_insights",
            question_text="Select one value per column.",
            data_insights=DataInsights(
                subtype="two_part_analysis",
                two_part=TwoPart(
                    columns=[TwoPartColumn(id="first", title="First mixture"), TwoPartColumn(id="second", title="Second mixture")],
                    options=[TwoPartOption(id="opt_4", label="4"), TwoPartOption(id="opt_6", label="6")],
                    correct_by_column={"first": "opt_4", "second": "opt_6"},
                ),
            ),
        ),
        Question(
            id="q-ta", exam=EXAM_ID, section="sec-di", question_type="gmat_data_insights",
            question_text="True or false for each statement.",
            data_insights=DataInsights(
                subtype="table_analysis",
                table_analysis=TableAnalysis(statements=[
                    TableStatement(id="t1", text="Don Pizza sells more", correct="true"),
                    TableStatement(id="t2", text="Pizza King is cheaper", correct="false"),
                ]),
            ),
        ),
        Question(
            id="q-gi", exam=EXAM_ID, section="sec-di", question_type="gmat_data_insights",
            question_text="Complete the statement.",
            data_insights=DataInsights(
                subtype="graphics_interpretation",
                graphics=Graphics(dropdowns=[
                    Dropdown(id="d1", options=["east", "west", "north"], correct_index=2),
                    Dropdown(id="d2", options=["rose", "fell"], correct_index=0),
                ]),
            ),
        ),
        Question(
            id="q-essay", exam=EXAM_ID, section="sec-awa", question_type="gre_analytical_writing",
            question_text="Discuss the claim.", marks=6,
        ),
    ]


def build_templates():
    return [
        schemas.TestTemplate(
            id="tpl-full", title="GMAT Full Test 1", exam=EXAM_ID, test_type="full_length",
            total_duration_minutes=135,
            sections=[
                schemas.SectionConfig(id="cfg-quant", section="sec-quant", questions=["q-ps-1", "q-ps-2", "q-text"], duration_minutes=45),
                schemas.SectionConfig(id="cfg-verbal", section="sec-verbal", custom_name="Verbal Reasoning", questions=["q-mcq-multi"]),
                schemas.SectionConfig(id="cfg-di", section="sec-di", questions=["q-ms", "q-tp", "q-ta", "q-gi"]),
            ],
        ),
        schemas.TestTemplate(
            id="tpl-random", title="Quant Sectional", exam=EXAM_ID, test_type="sectional",
            total_duration_minutes=45,
            sections=[
                schemas.SectionConfig(
                    section="sec-quant", selection_mode="random",
                    random_config=schemas.RandomConfig(question_types=["gmat_quant_problem_solving"], question_count=3),
                ),
            ],
        ),
        schemas.TestTemplate(
            id="tpl-quiz", title="PS Quiz", exam=EXAM_ID, test_type="quiz", total_duration_minutes=20,
            quiz_config=schemas.QuizConfig(allowed_question_types=["gmat_quant_problem_solving"], total_questions=2),
        ),
        schemas.TestTemplate(
            id="tpl-awa", title="Writing", exam=EXAM_ID, test_type="sectional",
            sections=[schemas.SectionConfig(section="sec-awa", questions=["q-essay", "q-text"])],
        ),
        schemas.TestTemplate(
            id="tpl-inactive", title="Retired", exam=EXAM_ID, test_type="quiz", is_active=False,
            quiz_config=schemas.QuizConfig(total_questions=1),
        ),
    ]


@pytest.fixture
def catalog():
    """In-memory catalog with one GMAT exam."""
    return InMemoryCatalog(
        templates=build_templates(),
        sections=[
            Section(id="sec-quant", exam=EXAM_ID, name="Quantitative Reasoning"),
            Section(id="sec-verbal", exam=EXAM_ID, name="Verbal"),
            Section(id="sec-di", exam=EXAM_ID, name="Data Insights"),
            Section(id="sec-awa", exam=EXAM_ID, name="Analytical Writing"),
        ],
        questions=build_questions(),
    )


@pytest.fixture
def store():
    return AttemptStore()


@pytest.fixture
def rng():
    return random.Random(7)


@pytest.fixture
def mock_evaluator():
    """Writing evaluator that scores every essay 5/6."""
    evaluator = MagicMock()
    evaluator.evaluate.return_value = WritingEvaluation(score=5, feedback="Clear and well argued")
    return evaluator


@pytest.fixture
def client(store, catalog, mock_evaluator):
    """TestClient wired to the fixture store, catalog and evaluator."""
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_catalog] = lambda: catalog
    app.dependency_overrides[get_writing_evaluator] = lambda: mock_evaluator
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    return {"X-User-Id": USER_ID}

"""
Data Schemas for the Attempt Engine
Pydantic models for catalog documents, test templates and test attempts.
Fields are snake_case in Python and camelCase on the wire.
"""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# --- Enums ---

class QuestionType(str, Enum):
    """Catalog question types."""
    GMAT_QUANT_PROBLEM_SOLVING = "gmat_quant_problem_solving"
    GMAT_QUANT_DATA_SUFFICIENCY = "gmat_quant_data_sufficiency"
    GMAT_VERBAL_SC = "gmat_verbal_sc"
    GMAT_VERBAL_CR = "gmat_verbal_cr"
    GMAT_VERBAL_RC = "gmat_verbal_rc"
    GMAT_DATA_INSIGHTS = "gmat_data_insights"
    GRE_ANALYTICAL_WRITING = "gre_analytical_writing"
    GRE_VERBAL_TEXT_COMPLETION = "gre_verbal_text_completion"
    GRE_VERBAL_SENTENCE_EQUIVALENCE = "gre_verbal_sentence_equivalence"
    GRE_VERBAL_READING_COMP = "gre_verbal_reading_comp"
    GRE_QUANTITATIVE = "gre_quantitative"
    SAT_READING_WRITING = "sat_reading_writing"
    SAT_MATH_CALCULATOR = "sat_math_calculator"
    SAT_MATH_NO_CALCULATOR = "sat_math_no_calculator"
    ESSAY = "essay"
    OTHER = "other"


ESSAY_TYPES = frozenset({QuestionType.GRE_ANALYTICAL_WRITING, QuestionType.ESSAY})


class Difficulty(str, Enum):
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"


class DataInsightsSubtype(str, Enum):
    MULTI_SOURCE_REASONING = "multi_source_reasoning"
    TWO_PART_ANALYSIS = "two_part_analysis"
    TABLE_ANALYSIS = "table_analysis"
    GRAPHICS_INTERPRETATION = "graphics_interpretation"


class TestType(str, Enum):
    QUIZ = "quiz"
    FULL_LENGTH = "full_length"
    SECTIONAL = "sectional"


class SelectionMode(str, Enum):
    FIXED = "fixed"
    RANDOM = "random"


class AttemptStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class SectionStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class GmatPhase(str, Enum):
    """Navigation phase of a choose-your-order exam."""
    INTRO = "intro"
    SELECT_ORDER = "select_order"
    SECTION_INSTRUCTIONS = "section_instructions"
    IN_SECTION = "in_section"
    REVIEW = "review"
    BREAK = "break"


# --- Catalog documents (read-only to the engine) ---

class Exam(CamelModel):
    id: str = Field(..., description="Exam id")
    name: str = Field(..., description="Exam name, e.g. GMAT")
    description: Optional[str] = None
    sections: List[str] = Field(default_factory=list, description="Section ids")


class Section(CamelModel):
    id: str = Field(..., description="Section id")
    exam: str = Field(..., description="Owning exam id")
    name: str = Field(..., description="Section name, e.g. Quant")
    duration_minutes: Optional[int] = Field(None, description="Duration hint")
    question_count: Optional[int] = Field(None, description="Question-count hint")


class Option(CamelModel):
    """A single answer option of an option-based question."""
    label: Optional[str] = Field(None, description="Option label (A, B, C...)")
    text: str = Field("", description="Option text")
    is_correct: bool = Field(False, description="Several options may be correct")


class MultiSourceTab(CamelModel):
    id: str
    title: str = ""
    content_html: str = ""


class MultiSourceStatement(CamelModel):
    id: str
    text: str = ""
    yes_label: str = "Yes"
    no_label: str = "No"
    correct: Optional[str] = Field(None, description="'yes' or 'no'")


class MultiSource(CamelModel):
    tabs: List[MultiSourceTab] = Field(default_factory=list)
    statements: List[MultiSourceStatement] = Field(default_factory=list)


class TwoPartColumn(CamelModel):
    id: str
    title: str = ""


class TwoPartOption(CamelModel):
    id: str
    label: str = ""


class TwoPart(CamelModel):
    stem: Optional[str] = None
    columns: List[TwoPartColumn] = Field(default_factory=list)
    options: List[TwoPartOption] = Field(default_factory=list)
    correct_by_column: Dict[str, str] = Field(
        default_factory=dict,
        description="Column id -> correct option id",
    )


class TableRow(CamelModel):
    id: str
    cells: List[str] = Field(default_factory=list)


class TableData(CamelModel):
    columns: List[str] = Field(default_factory=list)
    rows: List[TableRow] = Field(default_factory=list)


class TableStatement(CamelModel):
    id: str
    text: str = ""
    true_label: str = "True"
    false_label: str = "False"
    correct: Optional[str] = Field(None, description="'true' or 'false'")


class TableAnalysis(CamelModel):
    table: TableData = Field(default_factory=TableData)
    statements: List[TableStatement] = Field(default_factory=list)


class Dropdown(CamelModel):
    id: str
    label: str = ""
    options: List[str] = Field(default_factory=list)
    correct_index: Optional[int] = None


class Graphics(CamelModel):
    prompt: Optional[str] = None
    dropdowns: List[Dropdown] = Field(default_factory=list)


class DataInsights(CamelModel):
    """Composite question payload; only the block matching `subtype` is used."""
    subtype: DataInsightsSubtype
    multi_source: Optional[MultiSource] = None
    two_part: Optional[TwoPart] = None
    table_analysis: Optional[TableAnalysis] = None
    graphics: Optional[Graphics] = None


class Question(CamelModel):
    """Catalog question document."""
    id: str = Field(..., description="Question id")
    exam: str = Field(..., description="Exam id")
    section: Optional[str] = Field(None, description="Section id")
    question_type: QuestionType = Field(..., description="Question format type")
    difficulty: Difficulty = Difficulty.MEDIUM
    tags: List[str] = Field(default_factory=list)
    stimulus: Optional[str] = Field(None, description="Passage, graph or scenario")
    question_text: str = Field(..., description="The question text")
    options: List[Option] = Field(default_factory=list)
    correct_answer_text: Optional[str] = Field(None, description="Numeric or text answer")
    data_insights: Optional[DataInsights] = None
    marks: Optional[float] = Field(None, description="Marks for a correct answer (default 1)")
    negative_marks: Optional[float] = Field(None, description="Deduction for an incorrect answer (default 0)")
    explanation: Optional[str] = None
    source: Optional[str] = Field(None, description="Official Guide, Custom, ...")


# --- Test templates ---

class QuizConfig(CamelModel):
    mode: str = Field("single_type", description="single_type or mixed_types")
    allowed_question_types: List[str] = Field(default_factory=list)
    difficulties: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    total_questions: int = 0
    duration_minutes: Optional[int] = None


class RandomConfig(CamelModel):
    question_types: List[str] = Field(default_factory=list)
    difficulties: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    question_count: Optional[int] = None


class SectionConfig(CamelModel):
    id: str = Field(default_factory=new_id)
    section: str = Field(..., description="Catalog section id")
    custom_name: Optional[str] = None
    order: int = 1
    duration_minutes: Optional[int] = None
    question_count: Optional[int] = None
    selection_mode: SelectionMode = SelectionMode.FIXED
    questions: List[str] = Field(default_factory=list, description="Fixed question ids")
    random_config: Optional[RandomConfig] = None


class TestTemplate(CamelModel):
    """Authored blueprint from which attempts are assembled."""
    id: str = Field(..., description="Template id")
    title: str
    description: Optional[str] = None
    exam: str = Field(..., description="Exam id")
    test_type: TestType
    difficulty_label: str = "Mixed"
    sections: List[SectionConfig] = Field(default_factory=list)
    quiz_config: Optional[QuizConfig] = None
    total_duration_minutes: Optional[int] = None
    total_questions: Optional[int] = None
    is_active: bool = True


# --- Attempts ---

Selection = Union[str, int, float]


class EvaluationMeta(CamelModel):
    score: float = 0
    feedback: str = ""
    evaluated_at: Optional[datetime] = None


class AttemptQuestion(CamelModel):
    question: str = Field(..., description="Question id")
    order: int = 1
    answer_option_indexes: List[int] = Field(default_factory=list)
    answer_text: str = ""
    selections: Dict[str, Selection] = Field(default_factory=dict)
    dropdown_selections: Dict[str, int] = Field(default_factory=dict)
    evaluation_meta: Optional[EvaluationMeta] = None
    is_answered: bool = False
    marked_for_review: bool = False
    time_spent_seconds: int = 0
    is_correct: bool = False
    marks_awarded: float = 0


class SectionStats(CamelModel):
    correct: int = 0
    incorrect: int = 0
    skipped: int = 0
    raw_score: float = 0


class AttemptSection(CamelModel):
    section_config_id: Optional[str] = None
    section_ref: Optional[str] = None
    name: str = "Section"
    duration_minutes: Optional[int] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    status: SectionStatus = SectionStatus.NOT_STARTED
    questions: List[AttemptQuestion] = Field(default_factory=list)
    stats: SectionStats = Field(default_factory=SectionStats)


class GmatMeta(CamelModel):
    order_chosen: bool = False
    module_order: List[int] = Field(default_factory=list)
    phase: GmatPhase = GmatPhase.INTRO
    current_section_index: int = 0
    current_question_index: int = 0
    on_break: bool = False
    break_expires_at: Optional[datetime] = None


class OverallStats(CamelModel):
    total_questions: int = 0
    total_attempted: int = 0
    total_correct: int = 0
    total_incorrect: int = 0
    total_skipped: int = 0
    raw_score: float = 0


class TestAttempt(CamelModel):
    """One candidate's instance of a test template (aggregate root)."""
    id: str = Field(default_factory=new_id)
    user: str = Field(..., description="Owning user id")
    exam: str = Field(..., description="Exam id")
    test_template: str = Field(..., description="Template id")
    test_type: TestType
    status: AttemptStatus = AttemptStatus.IN_PROGRESS
    analysis_status: bool = Field(False, description="Writing evaluation finished")
    gmat_meta: Optional[GmatMeta] = None
    started_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    total_duration_minutes: Optional[int] = None
    total_time_used_seconds: int = 0
    sections: List[AttemptSection] = Field(default_factory=list)
    overall_stats: OverallStats = Field(default_factory=OverallStats)


# --- Requests / responses ---

class StartAttemptRequest(CamelModel):
    test_template_id: str = Field(..., min_length=1)


class ModuleOrderRequest(CamelModel):
    # Validated by the lifecycle manager so malformed orders get a specific reason.
    module_order: Optional[Any] = None


class ProgressUpdate(CamelModel):
    section_index: Optional[int] = None
    question_index: Optional[int] = None
    answer_option_indexes: Optional[List[int]] = None
    answer_text: Optional[str] = None
    selections: Optional[Dict[str, Selection]] = None
    dropdown_selections: Optional[Dict[str, int]] = None
    is_answered: Optional[bool] = None
    marked_for_review: Optional[bool] = None
    time_spent_seconds: Optional[int] = None


class SaveProgressRequest(CamelModel):
    updates: List[ProgressUpdate] = Field(default_factory=list)
    total_time_used_seconds: Optional[int] = None
    gmat_phase: Optional[GmatPhase] = None
    current_section_index: Optional[int] = None
    current_question_index: Optional[int] = None
    on_break: Optional[bool] = None
    break_expires_at: Optional[datetime] = None


class AttemptView(CamelModel):
    attempt: TestAttempt
    sanitized_questions: List[Dict[str, Any]] = Field(default_factory=list)


class WritingEvaluation(BaseModel):
    """Verdict returned by the writing evaluator."""
    score: float = Field(..., description="Score on the exam's writing scale")
    feedback: str = Field("", description="Short feedback")

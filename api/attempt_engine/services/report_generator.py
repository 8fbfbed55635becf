"""
Score Report Generator
Renders a completed attempt as a .docx score report.
"""
import logging
from typing import Dict

from docx import Document
from docx.shared import Pt

from attempt_engine.errors import Conflict
from attempt_engine.schemas import AttemptStatus, Question, TestAttempt
from attempt_engine.services.scoring import has_answer

logger = logging.getLogger(__name__)


def _format_marks(value: float) -> str:
    return f"{value:g}"


def _result_label(aq) -> str:
    if not has_answer(aq):
        return "Skipped"
    return "Correct" if aq.is_correct else "Incorrect"


def generate_report(
    attempt: TestAttempt,
    questions: Dict[str, Question],
    output_path: str,
    title: str = "Score Report",
) -> None:
    """
    Generates a .docx score report for a completed attempt.

    Args:
        attempt: Completed attempt.
        questions: Question id -> catalog Question (for types in the review table).
        output_path: Path where the .docx file should be saved.
        title: Document title.

    Raises:
        Conflict: If the attempt is not completed.
    """
    if attempt.status != AttemptStatus.COMPLETED:
        raise Conflict("Score report is available after submission")

    logger.info("Generating score report for attempt %s at %s", attempt.id, output_path)
    doc = Document()
    doc.core_properties.title = title
    doc.core_properties.subject = attempt.test_type.value

    style = doc.styles['Normal']
    style.font.size = Pt(11)

    heading = doc.add_heading(title, 0)
    heading.alignment = 1  # Center

    stats = attempt.overall_stats
    p_info = doc.add_paragraph()
    p_info.add_run(f"Raw score: {_format_marks(stats.raw_score)}").bold = True
    p_info.add_run(
        f" | Correct {stats.total_correct} | Incorrect {stats.total_incorrect}"
        f" | Skipped {stats.total_skipped} | Total {stats.total_questions}"
    )
    if attempt.completed_at:
        doc.add_paragraph(f"Completed: {attempt.completed_at:%Y-%m-%d %H:%M} UTC")

    # Section summary
    doc.add_heading("Sections", level=1)
    table = doc.add_table(rows=1, cols=5)
    table.style = 'Table Grid'
    hdr_cells = table.rows[0].cells
    for cell, text in zip(hdr_cells, ("Section", "Correct", "Incorrect", "Skipped", "Raw score")):
        cell.text = text
    for section in attempt.sections:
        row_cells = table.add_row().cells
        row_cells[0].text = section.name
        row_cells[1].text = str(section.stats.correct)
        row_cells[2].text = str(section.stats.incorrect)
        row_cells[3].text = str(section.stats.skipped)
        row_cells[4].text = _format_marks(section.stats.raw_score)

    # Answer review
    doc.add_page_break()
    doc.add_heading("Answer Review", level=1)
    for section in attempt.sections:
        doc.add_heading(section.name, level=2)
        review = doc.add_table(rows=1, cols=4)
        review.style = 'Table Grid'
        hdr_cells = review.rows[0].cells
        for cell, text in zip(hdr_cells, ("No.", "Type", "Result", "Marks")):
            cell.text = text
        for aq in section.questions:
            question = questions.get(aq.question)
            row_cells = review.add_row().cells
            row_cells[0].text = str(aq.order)
            row_cells[1].text = question.question_type.value if question else "-"
            row_cells[2].text = _result_label(aq)
            row_cells[3].text = _format_marks(aq.marks_awarded)

    doc.save(output_path)

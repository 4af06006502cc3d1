"""PDF export for study plans.

Layout follows the on-screen result view:
- Title + inferred subject
- Executive summary box
- All extracted questions, numbered, with difficulty / marks / reference / year
- Topic-wise study plan: one block per module with priority badge and rationale

Platypus handles pagination: content that would overflow a page flows onto
the next one, and every page gets a footer with its page number.
"""

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import cm
from reportlab.platypus import (
    SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle,
    HRFlowable, KeepTogether,
)
from reportlab.lib.enums import TA_CENTER
import io
from xml.sax.saxutils import escape as xml_escape

from app.models.study_plan import Question, StudyPlan, TopicModule


# ──────────────────────────────────────────────
# Colours
# ──────────────────────────────────────────────
_PRIMARY = colors.Color(0.16, 0.27, 0.55)       # indigo
_LIGHT_BG = colors.Color(0.95, 0.96, 0.99)      # summary box bg
_MUTED = colors.Color(0.50, 0.50, 0.55)         # muted grey
_RULE = colors.Color(0.82, 0.83, 0.88)          # ruled line colour

_PRIORITY_COLOURS = {
    "High": colors.Color(0.80, 0.16, 0.16),
    "Medium": colors.Color(0.85, 0.55, 0.05),
    "Low": colors.Color(0.15, 0.55, 0.30),
}

_DIFFICULTY_COLOURS = {
    "Easy": colors.Color(0.15, 0.55, 0.30),
    "Medium": colors.Color(0.85, 0.55, 0.05),
    "Hard": colors.Color(0.80, 0.16, 0.16),
}


# ──────────────────────────────────────────────
# Unicode → latin-1 safe replacements
# ──────────────────────────────────────────────
_UNICODE_REPLACEMENTS = {
    "\u2014": "-",   # em dash
    "\u2013": "-",   # en dash
    "\u2018": "'",   # left single quote
    "\u2019": "'",   # right single quote
    "\u201c": '"',   # left double quote
    "\u201d": '"',   # right double quote
    "\u2026": "...", # ellipsis
    "\u00d7": "x",   # multiplication sign
    "\u00f7": "/",   # division sign
    "\u2264": "<=",  # less than or equal
    "\u2265": ">=",  # greater than or equal
    "\u2260": "!=",  # not equal
    "\u2192": "->",  # right arrow
    "\u221a": "sqrt",  # square root
    "\u03c0": "pi",  # pi
}


def _sanitize_text(text: str) -> str:
    """Replace characters Helvetica/latin-1 cannot encode and escape markup."""
    if not text:
        return ""
    for char, replacement in _UNICODE_REPLACEMENTS.items():
        text = text.replace(char, replacement)
    text = text.encode("latin-1", errors="replace").decode("latin-1")
    return xml_escape(text)


def _hex(colour: colors.Color) -> str:
    return f"#{colour.hexval()[2:]}"


def _format_marks(marks: float) -> str:
    value = int(marks) if float(marks).is_integer() else marks
    return f"{value} mark" if value == 1 else f"{value} marks"


def question_annotations(question: Question) -> list[str]:
    """Difficulty, marks, reference and year, in that order, where present."""
    notes = [question.difficulty]
    if question.marks is not None:
        notes.append(_format_marks(question.marks))
    if question.reference:
        notes.append(question.reference)
    if question.year_appeared:
        notes.append(question.year_appeared)
    return notes


class PDFService:
    """Service for rendering a StudyPlan as a paginated PDF."""

    def __init__(self):
        self.styles = getSampleStyleSheet()
        self._setup_custom_styles()
        self._page_count = 0

    @property
    def page_count(self) -> int:
        """Pages in the most recently generated document."""
        return self._page_count

    def _setup_custom_styles(self):
        """Set up paragraph styles using the built-in Helvetica family."""

        self.styles.add(ParagraphStyle(
            name='PlanTitle',
            fontName='Helvetica-Bold',
            fontSize=20,
            leading=24,
            spaceAfter=4,
            alignment=TA_CENTER,
            textColor=_PRIMARY,
        ))
        self.styles.add(ParagraphStyle(
            name='PlanSubtitle',
            fontName='Helvetica',
            fontSize=10,
            textColor=_MUTED,
            alignment=TA_CENTER,
            spaceAfter=16,
        ))
        self.styles.add(ParagraphStyle(
            name='SectionHeader',
            fontName='Helvetica-Bold',
            fontSize=15,
            leading=19,
            textColor=_PRIMARY,
            spaceBefore=18,
            spaceAfter=8,
        ))
        self.styles.add(ParagraphStyle(
            name='SummaryText',
            fontName='Helvetica',
            fontSize=10.5,
            leading=15,
            textColor=colors.Color(0.25, 0.25, 0.25),
        ))
        self.styles.add(ParagraphStyle(
            name='QuestionText',
            fontName='Helvetica',
            fontSize=10.5,
            leading=14,
            leftIndent=18,
            firstLineIndent=-18,
            spaceAfter=2,
        ))
        self.styles.add(ParagraphStyle(
            name='QuestionMeta',
            fontName='Helvetica-Oblique',
            fontSize=8.5,
            leading=11,
            textColor=_MUTED,
            leftIndent=18,
            spaceAfter=6,
        ))
        self.styles.add(ParagraphStyle(
            name='ModuleTitle',
            fontName='Helvetica-Bold',
            fontSize=12.5,
            leading=16,
            spaceBefore=10,
            spaceAfter=3,
        ))
        self.styles.add(ParagraphStyle(
            name='ModuleDesc',
            fontName='Helvetica',
            fontSize=9.5,
            leading=13,
            textColor=colors.Color(0.35, 0.35, 0.35),
            spaceAfter=6,
        ))
        self.styles.add(ParagraphStyle(
            name='ModuleQuestion',
            fontName='Helvetica',
            fontSize=9.5,
            leading=13,
            leftIndent=24,
            firstLineIndent=-10,
            spaceAfter=1,
        ))
        self.styles.add(ParagraphStyle(
            name='EmptyNote',
            fontName='Helvetica-Oblique',
            fontSize=9,
            textColor=_MUTED,
            leftIndent=14,
        ))

    # ──────────────────────────────────────────
    # Main entry point
    # ──────────────────────────────────────────
    def generate_study_plan_pdf(self, plan: StudyPlan) -> bytes:
        """Render the plan and return the PDF as bytes."""
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            rightMargin=2.0 * cm,
            leftMargin=2.0 * cm,
            topMargin=2.0 * cm,
            bottomMargin=2.0 * cm,
            title="Question Bank & Study Plan",
        )

        self._page_count = 0

        story = []
        self._build_header(story, plan)
        self._build_all_questions(story, plan.extracted_questions)
        self._build_modules(story, plan.modules)

        doc.build(
            story,
            onFirstPage=self._draw_page_furniture,
            onLaterPages=self._draw_page_furniture,
        )
        buffer.seek(0)
        return buffer.getvalue()

    # ──────────────────────────────────────────
    # Page furniture (header rule + footer)
    # ──────────────────────────────────────────
    def _draw_page_furniture(self, canvas, doc):
        canvas.saveState()
        page_width, page_height = A4
        self._page_count += 1

        canvas.setStrokeColor(_PRIMARY)
        canvas.setLineWidth(1.5)
        canvas.line(2.0 * cm, page_height - 1.6 * cm,
                    page_width - 2.0 * cm, page_height - 1.6 * cm)

        y_footer = 1.0 * cm
        canvas.setFont('Helvetica', 7)
        canvas.setFillColor(_MUTED)
        canvas.drawString(2.0 * cm, y_footer, "ExamPrep AI  |  Question Bank & Study Plan")
        canvas.drawRightString(
            page_width - 2.0 * cm, y_footer,
            f"Page {self._page_count}"
        )

        canvas.setStrokeColor(_RULE)
        canvas.setLineWidth(0.5)
        canvas.line(2.0 * cm, y_footer + 10, page_width - 2.0 * cm, y_footer + 10)

        canvas.restoreState()

    # ──────────────────────────────────────────
    # Sections
    # ──────────────────────────────────────────
    def _build_header(self, story: list, plan: StudyPlan) -> None:
        story.append(Paragraph("Question Bank &amp; Study Plan", self.styles['PlanTitle']))

        subtitle_parts = []
        if plan.subject:
            subtitle_parts.append(_sanitize_text(plan.subject))
        subtitle_parts.append(f"{len(plan.extracted_questions)} questions")
        subtitle_parts.append(f"{len(plan.modules)} modules")
        story.append(Paragraph("  |  ".join(subtitle_parts), self.styles['PlanSubtitle']))

        # Summary in a single-cell bordered box
        page_width = A4[0] - 4.0 * cm
        summary = Paragraph(
            f"<b>Summary</b><br/>{_sanitize_text(plan.summary)}",
            self.styles['SummaryText'],
        )
        box = Table([[summary]], colWidths=[page_width])
        box.setStyle(TableStyle([
            ('BACKGROUND', (0, 0), (-1, -1), _LIGHT_BG),
            ('BOX', (0, 0), (-1, -1), 0.5, _PRIMARY),
            ('TOPPADDING', (0, 0), (-1, -1), 8),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 8),
            ('LEFTPADDING', (0, 0), (-1, -1), 12),
            ('RIGHTPADDING', (0, 0), (-1, -1), 12),
        ]))
        story.append(box)

    def _build_all_questions(self, story: list, questions: list[Question]) -> None:
        story.append(Paragraph("All Extracted Questions", self.styles['SectionHeader']))
        story.append(HRFlowable(
            width="100%", thickness=0.5, color=_RULE,
            spaceBefore=0, spaceAfter=8,
        ))

        if not questions:
            story.append(Paragraph("No questions were extracted.", self.styles['EmptyNote']))
            return

        for number, question in enumerate(questions, 1):
            # KeepTogether prevents a question being split from its annotations
            story.append(KeepTogether(self._build_numbered_question(question, number)))

    def _build_numbered_question(self, question: Question, number: int) -> list:
        colour = _DIFFICULTY_COLOURS.get(question.difficulty, _MUTED)
        notes = question_annotations(question)
        return [
            Paragraph(
                f"<b><font color='{_hex(_PRIMARY)}'>{number}.</font></b>  "
                f"{_sanitize_text(question.text)}",
                self.styles['QuestionText'],
            ),
            Paragraph(
                f"<font color='{_hex(colour)}'>{_sanitize_text(notes[0])}</font>"
                + "".join(f"  &middot;  {_sanitize_text(n)}" for n in notes[1:]),
                self.styles['QuestionMeta'],
            ),
        ]

    def _build_modules(self, story: list, modules: list[TopicModule]) -> None:
        story.append(Spacer(1, 6))
        story.append(Paragraph("Topic-wise Study Plan", self.styles['SectionHeader']))
        story.append(HRFlowable(
            width="100%", thickness=0.5, color=_RULE,
            spaceBefore=0, spaceAfter=8,
        ))

        if not modules:
            story.append(Paragraph("No topic modules were produced.", self.styles['EmptyNote']))
            return

        for module in modules:
            story.extend(self._build_module(module))
            story.append(Spacer(1, 8))

    def _build_module(self, module: TopicModule) -> list:
        colour = _PRIORITY_COLOURS.get(module.priority, _MUTED)
        heading = [
            Paragraph(
                f"{_sanitize_text(module.topic_name)}  "
                f"<font size='9' color='{_hex(colour)}'>({module.priority} Priority)</font>",
                self.styles['ModuleTitle'],
            ),
            Paragraph(_sanitize_text(module.description), self.styles['ModuleDesc']),
        ]

        if not module.questions:
            heading.append(Paragraph("No questions mapped to this topic.", self.styles['EmptyNote']))
            return [KeepTogether(heading)]

        lines = []
        for question in module.questions:
            notes = "  &middot;  ".join(_sanitize_text(n) for n in question_annotations(question))
            lines.append(Paragraph(
                f"- {_sanitize_text(question.text)} <font size='8' color='{_hex(_MUTED)}'>[{notes}]</font>",
                self.styles['ModuleQuestion'],
            ))

        # Keep the heading with at least its first question
        return [KeepTogether(heading + lines[:1]), *lines[1:]]


def get_pdf_service() -> PDFService:
    return PDFService()

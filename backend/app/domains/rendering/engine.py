import io

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.shared import Pt

from backend.app.domains.rendering.schemas import RenderMetadata
from backend.app.infrastructure.errors import WorkflowValidationError
from backend.app.logging_config import get_logger

logger = get_logger("app.domains.rendering.engine")

SUPPORTED_FORMATS = ("docx", "txt")


def _header_lines(metadata: RenderMetadata) -> list[str]:
    referee = metadata.referee
    lines = [referee.institution, referee.department, referee.name, referee.title]
    if referee.email:
        lines.append(f"Email: {referee.email}")
    return [line.strip() for line in lines if line and line.strip()]


def _body_paragraphs(content: str) -> list[str]:
    """Split on blank lines; single newlines stay inside a paragraph."""
    paragraphs = []
    for chunk in content.replace("\r\n", "\n").split("\n\n"):
        text = chunk.strip()
        if text:
            paragraphs.append(text)
    return paragraphs


class LetterRenderer:
    """(content, metadata, format) -> bytes. Layout is deliberately plain."""

    def render(self, content: str, metadata: RenderMetadata, output_format: str) -> bytes:
        if output_format == "docx":
            return self._render_docx(content, metadata)
        if output_format == "txt":
            return self._render_txt(content, metadata)
        raise WorkflowValidationError(
            "format", f"expected one of {list(SUPPORTED_FORMATS)}", value=output_format
        )

    def _render_docx(self, content: str, metadata: RenderMetadata) -> bytes:
        doc = Document()
        core_props = doc.core_properties
        core_props.title = metadata.title
        core_props.subject = f"Recommendation for {metadata.applicant_name}"
        if metadata.referee.name:
            core_props.author = metadata.referee.name

        for line in _header_lines(metadata):
            paragraph = doc.add_paragraph()
            paragraph.alignment = WD_ALIGN_PARAGRAPH.CENTER
            run = paragraph.add_run(line)
            run.bold = True
            run.font.size = Pt(12)

        date_paragraph = doc.add_paragraph(metadata.letter_date.strftime("%d %B %Y"))
        date_paragraph.alignment = WD_ALIGN_PARAGRAPH.RIGHT

        for text in _body_paragraphs(content):
            paragraph = doc.add_paragraph()
            paragraph.alignment = WD_ALIGN_PARAGRAPH.JUSTIFY
            lines = text.split("\n")
            for index, line in enumerate(lines):
                run = paragraph.add_run(line)
                if index < len(lines) - 1:
                    run.add_break()

        buffer = io.BytesIO()
        doc.save(buffer)
        rendered = buffer.getvalue()
        logger.debug(f"Rendered docx for {metadata.applicant_name}: {len(rendered)} bytes")
        return rendered

    def _render_txt(self, content: str, metadata: RenderMetadata) -> bytes:
        parts = []
        header = _header_lines(metadata)
        if header:
            parts.append("\n".join(header))
        parts.append(metadata.letter_date.strftime("%d %B %Y"))
        parts.append("\n\n".join(_body_paragraphs(content)))
        return ("\n\n".join(parts) + "\n").encode("utf-8")

import io
import zipfile

from docx import Document
from docx.opc.exceptions import PackageNotFoundError

from backend.app.domains.rendering.schemas import RenderValidationResult
from backend.app.logging_config import get_logger

logger = get_logger("app.domains.rendering.validator")

REQUIRED_DOCX_PARTS = ("[Content_Types].xml", "word/document.xml")


class RenderedLetterValidator:
    def validate(self, content: bytes, output_format: str) -> RenderValidationResult:
        result = RenderValidationResult()
        if not content:
            result.add_error("No content to validate")
            return result

        result.file_size_bytes = len(content)
        if output_format == "txt":
            return self._validate_txt(content, result)
        return self._validate_docx(content, result)

    def _validate_txt(
        self, content: bytes, result: RenderValidationResult
    ) -> RenderValidationResult:
        try:
            text = content.decode("utf-8")
        except UnicodeDecodeError as e:
            result.add_error(f"Text output is not valid UTF-8: {e}")
            return result
        result.paragraph_count = len([p for p in text.split("\n\n") if p.strip()])
        return result

    def _validate_docx(
        self, content: bytes, result: RenderValidationResult
    ) -> RenderValidationResult:
        try:
            with zipfile.ZipFile(io.BytesIO(content), "r") as zf:
                names = set(zf.namelist())
        except zipfile.BadZipFile:
            result.add_error("File is not a valid ZIP archive")
            return result

        missing = [part for part in REQUIRED_DOCX_PARTS if part not in names]
        if missing:
            result.add_error(f"File is missing required DOCX components: {missing}")
            return result

        try:
            doc = Document(io.BytesIO(content))
        except PackageNotFoundError as e:
            result.add_error(f"Cannot open document: {e}")
            return result

        result.paragraph_count = len([p for p in doc.paragraphs if p.text.strip()])
        if result.paragraph_count == 0:
            result.add_error("Document has no text")
        return result

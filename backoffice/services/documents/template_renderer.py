"""DOCX template rendering for contract drafts.

Templates live in ``CONTRACT_TEMPLATES_DIR`` as ``<type>.docx`` (for example
``rental_pf.docx``) with ``{{ placeholder }}`` fields. The filled document is
converted to HTML so it can be edited before approval.
"""

import io
import logging
from pathlib import Path
from typing import Any, Mapping

import mammoth
from docxtpl import DocxTemplate

from backoffice.exceptions import TemplateNotFoundError, TemplateRenderError

logger = logging.getLogger(__name__)


class DocxTemplateRenderer:
    """Fills a DOCX template with docxtpl and converts it to HTML with mammoth."""

    def __init__(self, templates_dir: str | Path):
        self.templates_dir = Path(templates_dir)

    def template_path(self, template_name: str) -> Path:
        return self.templates_dir / f"{template_name}.docx"

    def render_docx(self, template_name: str, context: Mapping[str, Any]) -> bytes:
        path = self.template_path(template_name)
        if not path.is_file():
            raise TemplateNotFoundError(template_name, str(path))

        try:
            doc = DocxTemplate(str(path))
            doc.render(dict(context), autoescape=True)
            buffer = io.BytesIO()
            doc.save(buffer)
        except Exception as e:
            logger.error("Template %s failed to render: %s", template_name, e)
            raise TemplateRenderError(f"Erro ao gerar documento: {e}") from e

        return buffer.getvalue()

    def render_html(self, template_name: str, context: Mapping[str, Any]) -> str:
        """Render ``template_name`` with ``context`` and return editor HTML."""
        filled = self.render_docx(template_name, context)

        try:
            result = mammoth.convert_to_html(io.BytesIO(filled))
        except Exception as e:
            logger.error("DOCX to HTML conversion failed for %s: %s", template_name, e)
            raise TemplateRenderError(f"Erro ao converter documento: {e}") from e

        if result.messages:
            logger.warning(
                "Template %s converted with %d warning(s): %s",
                template_name,
                len(result.messages),
                "; ".join(m.message for m in result.messages[:5]),
            )
        return result.value

"""HTML -> DOCX conversion for approved contracts.

Layout options are fixed: table rows never split across pages and every page
carries a footer with its page number.
"""

import io
import logging

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from htmldocx import HtmlToDocx

from backoffice.exceptions import DocumentConversionError

logger = logging.getLogger(__name__)

DOCX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def _add_page_number_field(paragraph) -> None:
    run = paragraph.add_run()
    begin = OxmlElement("w:fldChar")
    begin.set(qn("w:fldCharType"), "begin")
    instr = OxmlElement("w:instrText")
    instr.set(qn("xml:space"), "preserve")
    instr.text = "PAGE"
    end = OxmlElement("w:fldChar")
    end.set(qn("w:fldCharType"), "end")
    run._r.append(begin)
    run._r.append(instr)
    run._r.append(end)


def _keep_rows_together(document) -> None:
    for table in document.tables:
        for row in table.rows:
            tr_pr = row._tr.get_or_add_trPr()
            if tr_pr.find(qn("w:cantSplit")) is None:
                tr_pr.append(OxmlElement("w:cantSplit"))


class HtmlDocxConverter:
    """Builds a DOCX document from editor HTML using python-docx + htmldocx."""

    def convert(self, html: str) -> bytes:
        try:
            document = Document()
            HtmlToDocx().add_html_to_document(html, document)
            _keep_rows_together(document)

            for section in document.sections:
                footer = section.footer
                paragraph = footer.paragraphs[0] if footer.paragraphs else footer.add_paragraph()
                paragraph.alignment = WD_ALIGN_PARAGRAPH.CENTER
                _add_page_number_field(paragraph)

            buffer = io.BytesIO()
            document.save(buffer)
        except Exception as e:
            logger.error("HTML to DOCX conversion failed: %s", e)
            raise DocumentConversionError("Erro na conversão do documento.") from e

        return buffer.getvalue()

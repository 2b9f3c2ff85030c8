"""Adapters for the document collaborators: template engine, converter, storage."""

from .template_renderer import DocxTemplateRenderer
from .docx_converter import HtmlDocxConverter, DOCX_CONTENT_TYPE
from .storage import SupabaseStorage

__all__ = [
    "DocxTemplateRenderer",
    "HtmlDocxConverter",
    "DOCX_CONTENT_TYPE",
    "SupabaseStorage",
]

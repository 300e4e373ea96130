# File: app/services/document_export.py
"""
Contract Export Service
Renders sanitized contract HTML to Word (python-docx) or PDF (WeasyPrint)
"""

from docx import Document
from docx.shared import Inches, Pt, RGBColor
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.oxml.ns import qn
from docx.oxml import OxmlElement
from html import escape
from html.parser import HTMLParser
from io import BytesIO
from datetime import datetime
import logging

from app.utils.sanitize import sanitize_contract_content

logger = logging.getLogger(__name__)

DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
PDF_MEDIA_TYPE = "application/pdf"

HEADING_COLOURS = {
    1: RGBColor(26, 54, 93),
    2: RGBColor(31, 58, 104),
}

BLOCK_TAGS = ("p", "div", "td", "th", "caption")


class HTMLToDocxParser(HTMLParser):
    """Walks contract HTML and appends formatted paragraphs to a Word document"""

    def __init__(self, doc):
        super().__init__(convert_charrefs=True)
        self.doc = doc
        self.paragraph = None
        self.list_stack = []
        self.bold = 0
        self.italic = 0
        self.underline = 0
        self.heading_level = None
        self.preformatted = False
        self.skip_depth = 0

    def _new_paragraph(self, style=None):
        self.paragraph = self.doc.add_paragraph(style=style)
        self.paragraph.paragraph_format.space_after = Pt(8)
        self.paragraph.paragraph_format.line_spacing = 1.15
        return self.paragraph

    def handle_starttag(self, tag, attrs):
        tag = tag.lower()

        if tag in ("script", "style"):
            self.skip_depth += 1
        elif tag in ("h1", "h2", "h3", "h4", "h5", "h6"):
            self.heading_level = int(tag[1])
            self._new_paragraph(style=f"Heading {self.heading_level}")
        elif tag in BLOCK_TAGS:
            self._new_paragraph()
        elif tag == "br":
            if self.paragraph is not None:
                self.paragraph.add_run().add_break()
        elif tag in ("ul", "ol"):
            self.list_stack.append(tag)
        elif tag == "li":
            style = "List Bullet" if self.list_stack and self.list_stack[-1] == "ul" else "List Number"
            self._new_paragraph(style=style)
        elif tag in ("strong", "b"):
            self.bold += 1
        elif tag in ("em", "i"):
            self.italic += 1
        elif tag == "u":
            self.underline += 1
        elif tag == "hr":
            self._add_rule()
        elif tag == "blockquote":
            self._new_paragraph().paragraph_format.left_indent = Inches(0.5)
        elif tag == "pre":
            self._new_paragraph()
            self.preformatted = True

    def handle_endtag(self, tag):
        tag = tag.lower()

        if tag in ("script", "style"):
            self.skip_depth = max(0, self.skip_depth - 1)
        elif tag in ("h1", "h2", "h3", "h4", "h5", "h6"):
            self.heading_level = None
            self.paragraph = None
        elif tag in BLOCK_TAGS or tag in ("li", "blockquote"):
            self.paragraph = None
        elif tag in ("ul", "ol"):
            if self.list_stack:
                self.list_stack.pop()
        elif tag in ("strong", "b"):
            self.bold = max(0, self.bold - 1)
        elif tag in ("em", "i"):
            self.italic = max(0, self.italic - 1)
        elif tag == "u":
            self.underline = max(0, self.underline - 1)
        elif tag == "pre":
            self.preformatted = False
            self.paragraph = None

    def handle_data(self, data):
        if self.skip_depth:
            return
        if not data.strip() and not self.preformatted:
            return

        if self.paragraph is None:
            self._new_paragraph()

        run = self.paragraph.add_run(data)
        run.font.size = Pt(11)
        run.font.name = "Calibri"
        run.bold = bool(self.bold) or bool(self.heading_level)
        run.italic = bool(self.italic)
        run.underline = bool(self.underline)

        if self.heading_level:
            run.font.size = Pt(max(11, 18 - 2 * self.heading_level))
            if self.heading_level in HEADING_COLOURS:
                run.font.color.rgb = HEADING_COLOURS[self.heading_level]

    def _add_rule(self):
        p = self.doc.add_paragraph()
        border = OxmlElement("w:pBdr")
        bottom = OxmlElement("w:bottom")
        bottom.set(qn("w:val"), "single")
        bottom.set(qn("w:sz"), "6")
        bottom.set(qn("w:space"), "1")
        bottom.set(qn("w:color"), "auto")
        border.append(bottom)
        p._element.get_or_add_pPr().append(border)
        self.paragraph = None


def contract_body_html(contract) -> str:
    """Sanitized HTML of everything that forms the contract document"""
    parts = [contract.content or "", contract.annexure_data or ""]
    return sanitize_contract_content("\n".join(part for part in parts if part))


def export_filename(contract, extension: str) -> str:
    return f"{contract.reference or 'Contract'}_{datetime.utcnow().strftime('%Y%m%d')}.{extension}"


class DocumentExportService:
    """Contract to DOCX / PDF"""

    @staticmethod
    def generate_docx(contract) -> BytesIO:
        logger.info(f"📝 Generating Word document for contract {contract.id}")

        doc = Document()
        for section in doc.sections:
            section.top_margin = Inches(1)
            section.bottom_margin = Inches(1)
            section.left_margin = Inches(1)
            section.right_margin = Inches(1)

        title = doc.add_paragraph()
        title.alignment = WD_ALIGN_PARAGRAPH.CENTER
        title_run = title.add_run(contract.title)
        title_run.bold = True
        title_run.font.size = Pt(16)

        meta = doc.add_paragraph()
        meta.alignment = WD_ALIGN_PARAGRAPH.RIGHT
        meta_run = meta.add_run(f"Ref: {contract.reference}")
        meta_run.font.size = Pt(10)

        parser = HTMLToDocxParser(doc)
        parser.feed(contract_body_html(contract))
        parser.close()

        buffer = BytesIO()
        doc.save(buffer)
        buffer.seek(0)
        return buffer

    @staticmethod
    def render_html_document(contract) -> str:
        return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <title>{escape(contract.title)}</title>
    <style>
        @page {{ size: A4; margin: 2.5cm; }}
        body {{ font-family: "Times New Roman", serif; font-size: 12pt; line-height: 1.5; }}
        h1.title {{ text-align: center; font-size: 18pt; }}
        .reference {{ text-align: right; font-size: 10pt; color: #666; }}
        table {{ border-collapse: collapse; width: 100%; }}
        td, th {{ border: 1px solid #999; padding: 4px; }}
        img {{ max-width: 100%; height: auto; }}
    </style>
</head>
<body>
    <h1 class="title">{escape(contract.title)}</h1>
    <p class="reference">Ref: {escape(contract.reference)}</p>
    <div class="contract-content">
        {contract_body_html(contract)}
    </div>
</body>
</html>
"""

    @staticmethod
    def generate_pdf(contract) -> BytesIO:
        # WeasyPrint needs system Pango libraries; loaded only when a PDF is requested
        from weasyprint import HTML

        logger.info(f"📄 Generating PDF for contract {contract.id}")
        pdf_bytes = HTML(string=DocumentExportService.render_html_document(contract)).write_pdf()
        buffer = BytesIO(pdf_bytes)
        buffer.seek(0)
        return buffer

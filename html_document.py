"""
HTML Document
-------------
The append-only output document and the assembler that decides which
object-kind sections it contains.
"""
import html
import os
from typing import Any, Dict, Optional, TextIO

from catalog_queries import FUNCTION_KIND, PROCEDURE_KIND, TABLE_KIND, VIEW_KIND
from object_renderers import (
    FunctionRenderer,
    ProcedureRenderer,
    TableRenderer,
    ViewRenderer,
    escape,
    format_timestamp,
    write_description,
)

TOP_TEMPLATE_FILE = 'top.html'

DEFAULT_TOP_HTML = """\t<link rel="stylesheet" href="https://cdnjs.cloudflare.com/ajax/libs/highlight.js/11.9.0/styles/default.min.css">
\t<script src="https://cdnjs.cloudflare.com/ajax/libs/highlight.js/11.9.0/highlight.min.js"></script>
\t<script>hljs.highlightAll();</script>
\t<style>
\t\tbody {
\t\t\tfont-family: Arial, sans-serif;
\t\t\tline-height: 1.6;
\t\t\tmargin: 0;
\t\t\tpadding: 20px;
\t\t\tcolor: #333;
\t\t}
\t\th1, h2, h3, h4 {
\t\t\tcolor: #2c3e50;
\t\t}
\t\t.description-box {
\t\t\tbackground-color: #f8f9fa;
\t\t\tpadding: 10px;
\t\t\tborder-radius: 5px;
\t\t}
\t\t.object-description {
\t\t\tdisplay: flex;
\t\t\tgap: 10px;
\t\t\tcolor: #666;
\t\t\tfont-style: italic;
\t\t}
\t\t.table-jump a, .kind-jump a {
\t\t\tmargin-right: 15px;
\t\t\ttext-decoration: none;
\t\t\tcolor: #007bff;
\t\t}
\t\tdl dt {
\t\t\tfont-weight: bold;
\t\t\tmargin-top: 8px;
\t\t}
\t\t.table-data {
\t\t\tdisplay: grid;
\t\t\tgrid-template-columns: repeat(var(--columns), auto);
\t\t\toverflow-x: auto;
\t\t}
\t\t.table-data div {
\t\t\tborder: 1px solid #ddd;
\t\t\tpadding: 4px 8px;
\t\t}
\t\t.table-header {
\t\t\tbackground-color: #f2f2f2;
\t\t\tfont-weight: bold;
\t\t}
\t\tpre {
\t\t\tbackground-color: #f5f5f5;
\t\t\tpadding: 10px;
\t\t\tborder-radius: 5px;
\t\t\toverflow-x: auto;
\t\t}
\t</style>
</head>

<body>
"""

# Fixed rendering order of the object kinds
KIND_RENDERERS = [
    (TABLE_KIND, TableRenderer),
    (VIEW_KIND, ViewRenderer),
    (PROCEDURE_KIND, ProcedureRenderer),
    (FUNCTION_KIND, FunctionRenderer),
]


class StreamError(Exception):
    """The output document could not be written or finalized"""


def load_top_html(path: str = TOP_TEMPLATE_FILE) -> str:
    """Page chrome placed after <title>; must close <head> and open <body>"""
    if os.path.exists(path):
        with open(path, 'r', encoding='utf-8') as f:
            return f.read()
    return DEFAULT_TOP_HTML


class HtmlDocument:
    def __init__(self, stream: TextIO, owns_stream: bool = False):
        """Wrap a text stream; file-backed documents are synced to disk on close"""
        self.stream = stream
        self.owns_stream = owns_stream
        self.closed = False

    @classmethod
    def create(cls, path: str, title: str, top_html: Optional[str] = None) -> 'HtmlDocument':
        try:
            stream = open(path, 'w', encoding='utf-8')
        except OSError as e:
            raise StreamError(f"Could not open {path}: {str(e)}") from e
        document = cls(stream, owns_stream=True)
        document.write_head(title, top_html)
        return document

    def write_head(self, title: str, top_html: Optional[str] = None) -> None:
        self.write(f"""<!DOCTYPE html>
<html lang="en" dir="ltr">

<head>
\t<meta charset="utf-8">
\t<meta name="viewport" content="width=device-width, initial-scale=1.0">
\t<title>{escape(title)} - SQL Server Database Documentation</title>
""")
        self.write(top_html if top_html is not None else DEFAULT_TOP_HTML)

    def write(self, text: str) -> None:
        if self.closed:
            raise StreamError("Document is already closed")
        try:
            self.stream.write(text)
        except (OSError, ValueError) as e:
            raise StreamError(f"Error writing document: {str(e)}") from e

    def close(self) -> None:
        """Write the closing tags and make sure everything reaches the disk"""
        self.write('</body>\n\n</html>\n')
        try:
            self.stream.flush()
            if self.owns_stream:
                os.fsync(self.stream.fileno())
        except OSError as e:
            raise StreamError(f"Error closing document: {str(e)}") from e
        finally:
            if self.owns_stream:
                self.stream.close()
            self.closed = True

    def abort(self) -> None:
        """Release the file without finalizing it; the output is left incomplete"""
        if self.owns_stream and not self.closed:
            self.stream.close()
        self.closed = True


class DocumentAssembler:
    def __init__(self, catalog, document: HtmlDocument, database: str, object_counts: Dict[str, int]):
        self.catalog = catalog
        self.document = document
        self.database = database
        self.object_counts = object_counts

    def present_kinds(self):
        return [
            (kind, renderer_class) for kind, renderer_class in KIND_RENDERERS
            if self.object_counts.get(kind, 0) > 0
        ]

    def assemble(self) -> None:
        """Write the document body: database header, kind jump list and kind sections"""
        self.write_database_header()

        present = self.present_kinds()
        if not present:
            print('No objects found')
            self.document.write('\t<p class="no-objects">No objects found</p>\n')
            return

        renderers = [renderer_class(self.catalog, self.document) for _, renderer_class in present]
        if len(renderers) > 1:
            self.write_kind_jump(renderers)

        for renderer in renderers:
            renderer.render()

    def write_database_header(self) -> None:
        database: Dict[str, Any] = self.catalog.fetch_database(self.database)
        self.document.write(f'\t<h1>{escape(self.database)}</h1>\n')
        self.document.write('\t<div class="description-box">\n')
        write_description(self.document, database.get('description'))
        self.document.write(f"\t\t<p>Created: <strong>{format_timestamp(database.get('create_date'))}</strong></p>\n")
        self.document.write('\t</div>\n\n')

    def write_kind_jump(self, renderers) -> None:
        self.document.write('\t<div class="kind-jump">\n')
        for renderer in renderers:
            self.document.write(f'\t\t<a href="#{renderer.section_id}">{html.escape(renderer.title)}</a>\n')
        self.document.write('\t</div>\n\n')

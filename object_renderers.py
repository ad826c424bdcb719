"""
Object Renderers
----------------
One renderer per documented object kind. Each renderer fetches its object
list from the catalog, then writes every object's sections to the document
in a fixed order. A failed sub-section query is reported and the section is
left out; the rest of the document is still written.
"""
import html
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import markdown

from catalog_queries import QueryError
from type_formatter import format_parameter_name, format_type, is_redacted, is_redacted_column

DEFAULT_SCHEMA = 'dbo'


def display_name(schema_name: Optional[str], name: str) -> str:
    """Objects in the default schema are shown unqualified"""
    if not schema_name or schema_name == DEFAULT_SCHEMA:
        return name
    return f'{schema_name}.{name}'


def anchor_id(kind: str, schema_name: Optional[str], name: str) -> str:
    """Anchor for an object; anchors can't contain the schema dot"""
    return f"{kind}-{display_name(schema_name, name).replace('.', '-')}"


def escape(value: Any) -> str:
    return html.escape(str(value), quote=False)


def format_timestamp(value: Any) -> str:
    if value is None:
        return 'N/A'
    if isinstance(value, datetime):
        return value.strftime('%Y-%m-%d %H:%M:%S')
    return str(value)


def render_description(description: Any) -> str:
    """MS_Description values are written in Markdown"""
    return markdown.markdown(str(description), extensions=['tables', 'fenced_code'])


def write_description(document, description: Any, indent: str = '\t\t') -> None:
    if description:
        document.write(f"""{indent}<div class="object-description">
{indent}\t<div>//</div>
{indent}\t<div>{render_description(description)}</div>
{indent}</div>
""")


def format_index_columns(columns: List[Dict[str, Any]]) -> str:
    """Comma-joined key columns with their sort direction"""
    return ', '.join(
        f"{column['name']} {'DESC' if column['is_descending_key'] else 'ASC'}"
        for column in columns
    )


def format_sample_value(value: Any, type_name: Optional[str] = None, redacted: bool = False) -> str:
    if type_name and (redacted or is_redacted(type_name)):
        return f'[{type_name}]'
    if value is None:
        return 'NULL'
    if isinstance(value, (bytes, bytearray, memoryview)):
        return '[binary]'
    if isinstance(value, datetime):
        return format_timestamp(value)
    return str(value)


class ObjectRenderer:
    """Base renderer: kind section, jump list, heading and shared sections"""

    kind = ''
    section_id = ''
    title = ''

    def __init__(self, catalog, document):
        self.catalog = catalog
        self.document = document

    def fetch_objects(self) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def render_object(self, obj: Dict[str, Any]) -> None:
        raise NotImplementedError

    def render(self) -> int:
        """Write the whole kind section; returns the number of objects rendered"""
        self.document.write(f'\t<section id="{self.section_id}">\n')
        self.document.write(f'\t<h2>{self.title}</h2>\n')

        try:
            objects = self.fetch_objects()
        except QueryError as e:
            self.report_error(self.title, None, e)
            objects = []

        if objects:
            self.write_jump(objects)
        for obj in objects:
            self.render_object(obj)

        self.document.write('\t</section>\n\n')
        return len(objects)

    def report_error(self, stage: str, obj: Optional[Dict[str, Any]], error: Exception) -> None:
        target = f" {display_name(obj['schema_name'], obj['name'])}:" if obj else ''
        print(f"*** {stage.upper()} ERROR ***{target} {str(error)}")

    def fetch_section(self, stage: str, obj: Dict[str, Any], fetch: Callable, *args) -> Optional[Any]:
        """Run one section query; None means the section is skipped"""
        print(f'--{stage}')
        try:
            return fetch(*args)
        except QueryError as e:
            self.report_error(stage, obj, e)
            return None

    def write_jump(self, objects: List[Dict[str, Any]]) -> None:
        self.document.write('\t<div class="table-jump">\n')
        for obj in objects:
            anchor = anchor_id(self.kind, obj['schema_name'], obj['name'])
            name = display_name(obj['schema_name'], obj['name'])
            self.document.write(f'\t\t<a href="#{html.escape(anchor)}">{escape(name)}</a>\n')
        self.document.write('\t</div>\n\n')

    def write_heading(self, obj: Dict[str, Any]) -> None:
        anchor = anchor_id(self.kind, obj['schema_name'], obj['name'])
        name = display_name(obj['schema_name'], obj['name'])
        print(f'Processing {self.title[:-1]}: {name}')

        self.document.write(f'\t<a id="{html.escape(anchor)}"></a>\n')
        self.document.write(f'\t<h3>{escape(name)}</h3>\n')
        self.document.write('\t<div class="description-box">\n')
        write_description(self.document, obj.get('description'))
        self.document.write(
            f"\t\t<p>Created: <strong>{format_timestamp(obj.get('create_date'))}</strong>, "
            f"Modified: <strong>{format_timestamp(obj.get('modify_date'))}</strong></p>\n"
        )
        self.document.write('\t</div>\n')

    def write_columns(self, columns: List[Dict[str, Any]]) -> None:
        self.document.write('\t<h4>Columns</h4>\n')
        if not columns:
            self.document.write('\t<p class="empty-section">No columns found</p>\n')
            return
        self.document.write('\t<dl class="columns-definition">\n')
        for column in columns:
            self.document.write(f"\t\t<dt>{escape(column['name'])}</dt>\n")
            self.document.write(f"\t\t<dd>{escape(format_type(column))}</dd>\n")
            if column.get('description'):
                self.document.write(f"\t\t<dd>{render_description(column['description'])}</dd>\n")
        self.document.write('\t</dl>\n')

    def write_definition(self, obj: Dict[str, Any]) -> None:
        definition = obj.get('definition') or '-- Definition not available'
        self.document.write('\t<h4>Definition</h4>\n')
        self.document.write(f'\t<pre><code class="language-sql">{escape(definition)}</code></pre>\n')


class TableRenderer(ObjectRenderer):
    kind = 'table'
    section_id = 'tables'
    title = 'Tables'

    def fetch_objects(self) -> List[Dict[str, Any]]:
        return self.catalog.fetch_tables()

    def render_object(self, table: Dict[str, Any]) -> None:
        self.write_heading(table)

        columns = self.fetch_section('Columns', table, self.catalog.fetch_columns, table['object_id'])
        if columns is not None:
            self.write_columns(columns)

        indexes = self.fetch_section('Indexes', table, self.catalog.fetch_indexes, table['object_id'])
        if indexes:
            self.write_indexes(indexes)

        foreign_keys = self.fetch_section('Foreign Keys', table, self.catalog.fetch_foreign_keys, table['object_id'])
        if foreign_keys:
            self.write_foreign_keys(foreign_keys)

        checks = self.fetch_section('Check Constraints', table, self.catalog.fetch_check_constraints, table['object_id'])
        if checks:
            self.write_check_constraints(checks)

        # Without the column types the sample can't be redacted
        if not columns:
            self.document.write('\t<h4>Sample Data Unavailable</h4>\n')
        else:
            sample = self.fetch_section('Sample Data', table, self.catalog.fetch_sample_rows,
                                        table['schema_name'], table['name'], columns)
            if sample is not None:
                headers, rows = sample
                self.write_sample_data(headers, rows, columns)

        self.document.write('\n')

    def write_indexes(self, indexes: List[Dict[str, Any]]) -> None:
        self.document.write('\t<h4>Indexes</h4>\n')
        self.document.write('\t<dl class="indexes-definition">\n')
        for index in indexes:
            markers = []
            if index.get('is_primary_key'):
                markers.append('PRIMARY KEY')
            elif index.get('is_unique'):
                markers.append('UNIQUE')
            if index.get('type_desc'):
                markers.append(index['type_desc'])

            self.document.write(f"\t\t<dt>{escape(index['name'])}</dt>\n")
            if markers:
                self.document.write(f"\t\t<dd>{escape(' '.join(markers))}</dd>\n")
            if index.get('description'):
                self.document.write(f"\t\t<dd>{render_description(index['description'])}</dd>\n")
            self.document.write(f"\t\t<dd>{escape(format_index_columns(index['columns']))}</dd>\n")
            if index.get('included_columns'):
                self.document.write(f"\t\t<dd>INCLUDE ({escape(', '.join(index['included_columns']))})</dd>\n")
        self.document.write('\t</dl>\n')

    def write_foreign_keys(self, foreign_keys: List[Dict[str, Any]]) -> None:
        self.document.write('\t<h4>Foreign Keys</h4>\n')
        self.document.write('\t<dl class="foreign-keys-definition">\n')
        for foreign_key in foreign_keys:
            parent_anchor = anchor_id(TableRenderer.kind, foreign_key['parent_schema'], foreign_key['parent_table'])
            parent_name = display_name(foreign_key['parent_schema'], foreign_key['parent_table'])
            pairs = ', '.join(
                f"{pair['column']} → {pair['parent_column']}" for pair in foreign_key['columns']
            )

            self.document.write(f"\t\t<dt>{escape(foreign_key['name'])}</dt>\n")
            if foreign_key.get('description'):
                self.document.write(f"\t\t<dd>{render_description(foreign_key['description'])}</dd>\n")
            self.document.write(
                f'\t\t<dd>References <a href="#{html.escape(parent_anchor)}">{escape(parent_name)}</a></dd>\n'
            )
            self.document.write(f'\t\t<dd>{escape(pairs)}</dd>\n')

            actions = []
            if foreign_key.get('delete_action') not in (None, 'NO ACTION'):
                actions.append(f"ON DELETE {foreign_key['delete_action']}")
            if foreign_key.get('update_action') not in (None, 'NO ACTION'):
                actions.append(f"ON UPDATE {foreign_key['update_action']}")
            if actions:
                self.document.write(f"\t\t<dd>{escape(' '.join(actions))}</dd>\n")
        self.document.write('\t</dl>\n')

    def write_check_constraints(self, checks: List[Dict[str, Any]]) -> None:
        self.document.write('\t<h4>Check Constraints</h4>\n')
        self.document.write('\t<dl class="checks-definition">\n')
        for check in checks:
            target = f"Column {check['column_name']}" if check.get('column_name') else 'Table'
            self.document.write(f"\t\t<dt>{escape(check['name'])}</dt>\n")
            if check.get('description'):
                self.document.write(f"\t\t<dd>{render_description(check['description'])}</dd>\n")
            self.document.write(f'\t\t<dd>{escape(target)}</dd>\n')
            self.document.write(f"\t\t<dd><code>{escape(check.get('definition') or '')}</code></dd>\n")
        self.document.write('\t</dl>\n')

    def write_sample_data(self, headers: List[str], rows: List[tuple],
                          columns: List[Dict[str, Any]]) -> None:
        """Rows are positionally aligned with columns"""
        if not rows:
            self.document.write('\t<h4>No Sample Data</h4>\n')
            return

        type_names = [column['type_name'] for column in columns]
        redacted = [is_redacted_column(column) for column in columns]

        self.document.write('\t<h4>Sample Data</h4>\n')
        self.document.write(f'\t<div class="table-data" style="--columns: {len(headers)};">\n')
        for header in headers:
            self.document.write(f'\t\t<div class="table-header">{escape(header)}</div>\n')
        for row in rows:
            for value, type_name, hidden in zip(row, type_names, redacted):
                self.document.write(f'\t\t<div>{escape(format_sample_value(value, type_name, hidden))}</div>\n')
        self.document.write('\t</div>\n')


class ViewRenderer(ObjectRenderer):
    kind = 'view'
    section_id = 'views'
    title = 'Views'

    def fetch_objects(self) -> List[Dict[str, Any]]:
        return self.catalog.fetch_views()

    def render_object(self, view: Dict[str, Any]) -> None:
        self.write_heading(view)

        columns = self.fetch_section('Columns', view, self.catalog.fetch_columns, view['object_id'])
        if columns:
            self.write_columns(columns)

        self.write_definition(view)
        self.document.write('\n')


class RoutineRenderer(ObjectRenderer):
    """Shared rendering for stored procedures and scalar functions"""

    def render_object(self, routine: Dict[str, Any]) -> None:
        self.write_heading(routine)

        parameters = self.fetch_section('Parameters', routine, self.catalog.fetch_parameters, routine['object_id'])
        if parameters:
            self.write_parameters(parameters)

        self.write_definition(routine)
        self.document.write('\n')

    def write_parameters(self, parameters: List[Dict[str, Any]]) -> None:
        self.document.write('\t<h4>Parameters</h4>\n')
        self.document.write('\t<dl class="parameters-definition">\n')
        for parameter in parameters:
            type_def = format_type(parameter)
            # The return value is flagged as an output parameter as well
            if parameter.get('is_output') and parameter.get('name'):
                type_def += ' OUTPUT'
            self.document.write(f"\t\t<dt>{escape(format_parameter_name(parameter.get('name')))}</dt>\n")
            self.document.write(f'\t\t<dd>{escape(type_def)}</dd>\n')
            if parameter.get('description'):
                self.document.write(f"\t\t<dd>{render_description(parameter['description'])}</dd>\n")
        self.document.write('\t</dl>\n')


class ProcedureRenderer(RoutineRenderer):
    kind = 'procedure'
    section_id = 'procedures'
    title = 'Stored Procedures'

    def fetch_objects(self) -> List[Dict[str, Any]]:
        return self.catalog.fetch_procedures()


class FunctionRenderer(RoutineRenderer):
    kind = 'function'
    section_id = 'functions'
    title = 'Scalar Functions'

    def fetch_objects(self) -> List[Dict[str, Any]]:
        return self.catalog.fetch_functions()

"""
Catalog Queries
---------------
Read-only queries against the SQL Server system catalog (sys.*).
Every method returns plain dictionaries keyed by column alias, in a
deterministic order.
"""
from typing import Any, Dict, List, Optional, Sequence, Tuple

from type_formatter import is_redacted_column

SAMPLE_ROW_LIMIT = 10

# sys.objects.type codes for the documented object kinds
TABLE_KIND = 'U'
VIEW_KIND = 'V'
PROCEDURE_KIND = 'P'
FUNCTION_KIND = 'FN'
SUPPORTED_KINDS = (TABLE_KIND, VIEW_KIND, PROCEDURE_KIND, FUNCTION_KIND)


class QueryError(Exception):
    """A catalog query could not be executed"""

    def __init__(self, message: str, query: str = None, params: Sequence[Any] = ()):
        super().__init__(message)
        self.query = query
        self.params = tuple(params)


def quote_identifier(name: str) -> str:
    """Bracket-quote an identifier for places parameters can't be used"""
    return '[' + name.replace(']', ']]') + ']'


class CatalogQueries:
    def __init__(self, connection):
        """Wrap an open DB-API connection; a single cursor is reused for every query"""
        self.connection = connection
        self.cursor = connection.cursor()

    def close(self) -> None:
        if self.cursor:
            self.cursor.close()
            self.cursor = None

    def _execute(self, query: str, params: Sequence[Any] = ()) -> Tuple[List[str], List[tuple]]:
        """Execute a query and return (column names, rows)"""
        try:
            if params:
                self.cursor.execute(query, tuple(params))
            else:
                self.cursor.execute(query)
            columns = [column[0] for column in self.cursor.description]
            rows = [tuple(row) for row in self.cursor.fetchall()]
        except Exception as e:
            raise QueryError(f"Error executing query: {str(e)}", query, params) from e
        return columns, rows

    def _execute_query(self, query: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        """Execute a query and return results as a list of dictionaries"""
        columns, rows = self._execute(query, params)
        return [dict(zip(columns, row)) for row in rows]

    def fetch_database(self, database: str) -> Dict[str, Any]:
        """Name, creation date and description of the documented database"""
        rows = self._execute_query("""
            SELECT
                d.name,
                d.create_date,
                ep.value AS description
            FROM
                sys.databases d
            LEFT JOIN
                sys.extended_properties ep ON ep.class = 0
                AND ep.name = 'MS_Description'
            WHERE
                d.name = ?
        """, (database,))
        if not rows:
            raise QueryError(f"Database not found in catalog: {database}")
        return rows[0]

    def fetch_object_counts(self) -> Dict[str, int]:
        """Number of user objects per documented kind, absent kinds omitted"""
        rows = self._execute_query("""
            SELECT
                RTRIM(o.type) AS object_type,
                COUNT(*) AS object_count
            FROM
                sys.objects o
            WHERE
                o.is_ms_shipped = 0
                AND o.type IN ('U', 'V', 'P', 'FN')
            GROUP BY
                o.type
            ORDER BY
                o.type
        """)
        return {row['object_type'].strip(): row['object_count'] for row in rows}

    def _fetch_objects(self, catalog_view: str, extra_where: str = '', with_definition: bool = True) -> List[Dict[str, Any]]:
        definition_column = "m.definition AS definition" if with_definition else "NULL AS definition"
        definition_join = "LEFT JOIN sys.sql_modules m ON o.object_id = m.object_id" if with_definition else ""
        return self._execute_query(f"""
            SELECT
                o.object_id,
                o.name,
                s.name AS schema_name,
                o.create_date,
                o.modify_date,
                ep.value AS description,
                {definition_column}
            FROM
                {catalog_view} o
            INNER JOIN
                sys.schemas s ON o.schema_id = s.schema_id
            LEFT JOIN
                sys.extended_properties ep ON ep.major_id = o.object_id
                AND ep.minor_id = 0
                AND ep.class = 1
                AND ep.name = 'MS_Description'
            {definition_join}
            WHERE
                o.is_ms_shipped = 0
                {extra_where}
            ORDER BY
                s.name, o.name
        """)

    def fetch_tables(self) -> List[Dict[str, Any]]:
        return self._fetch_objects('sys.tables', with_definition=False)

    def fetch_views(self) -> List[Dict[str, Any]]:
        return self._fetch_objects('sys.views')

    def fetch_procedures(self) -> List[Dict[str, Any]]:
        """T-SQL procedures only, matching the 'P' kind count"""
        return self._fetch_objects('sys.procedures', "AND o.type = 'P'")

    def fetch_functions(self) -> List[Dict[str, Any]]:
        """Scalar functions only"""
        return self._fetch_objects('sys.objects', "AND o.type = 'FN'")

    def fetch_columns(self, object_id: int) -> List[Dict[str, Any]]:
        """Columns of a table or view, in catalog order"""
        return self._execute_query("""
            SELECT
                c.column_id,
                c.name,
                t.name AS type_name,
                TYPE_NAME(c.system_type_id) AS system_type_name,
                t.is_assembly_type,
                c.max_length,
                c.precision,
                c.scale,
                c.is_nullable,
                c.is_identity,
                ic.seed_value,
                ic.increment_value,
                dc.definition AS default_definition,
                ep.value AS description
            FROM
                sys.columns c
            INNER JOIN
                sys.types t ON c.user_type_id = t.user_type_id
            LEFT JOIN
                sys.identity_columns ic ON ic.object_id = c.object_id
                AND ic.column_id = c.column_id
            LEFT JOIN
                sys.default_constraints dc ON c.default_object_id = dc.object_id
            LEFT JOIN
                sys.extended_properties ep ON ep.major_id = c.object_id
                AND ep.minor_id = c.column_id
                AND ep.class = 1
                AND ep.name = 'MS_Description'
            WHERE
                c.object_id = ?
            ORDER BY
                c.column_id
        """, (object_id,))

    def fetch_indexes(self, object_id: int) -> List[Dict[str, Any]]:
        """Indexes of a table (heaps excluded), each with its ordered columns"""
        indexes = self._execute_query("""
            SELECT
                i.index_id,
                i.name,
                i.type_desc,
                i.is_unique,
                i.is_primary_key,
                ep.value AS description
            FROM
                sys.indexes i
            LEFT JOIN
                sys.extended_properties ep ON ep.major_id = i.object_id
                AND ep.minor_id = i.index_id
                AND ep.class = 7
                AND ep.name = 'MS_Description'
            WHERE
                i.object_id = ?
                AND i.type > 0
            ORDER BY
                i.name
        """, (object_id,))

        for index in indexes:
            index_columns = self._execute_query("""
                SELECT
                    c.name,
                    ic.is_descending_key,
                    ic.is_included_column
                FROM
                    sys.index_columns ic
                INNER JOIN
                    sys.columns c ON c.object_id = ic.object_id
                    AND c.column_id = ic.column_id
                WHERE
                    ic.object_id = ?
                    AND ic.index_id = ?
                ORDER BY
                    ic.key_ordinal, ic.index_column_id
            """, (object_id, index['index_id']))

            index['columns'] = []
            index['included_columns'] = []
            for column in index_columns:
                if column['is_included_column']:
                    index['included_columns'].append(column['name'])
                else:
                    index['columns'].append({
                        'name': column['name'],
                        'is_descending_key': bool(column['is_descending_key'])
                    })

        return indexes

    def fetch_foreign_keys(self, object_id: int) -> List[Dict[str, Any]]:
        """Foreign keys of a table with their (child, parent) column pairs"""
        rows = self._execute_query("""
            SELECT
                fk.object_id AS constraint_id,
                fk.name,
                rs.name AS parent_schema,
                rt.name AS parent_table,
                pc.name AS column_name,
                rc.name AS parent_column_name,
                fk.delete_referential_action,
                fk.update_referential_action,
                ep.value AS description
            FROM
                sys.foreign_keys fk
            INNER JOIN
                sys.foreign_key_columns fkc ON fk.object_id = fkc.constraint_object_id
            INNER JOIN
                sys.tables rt ON fk.referenced_object_id = rt.object_id
            INNER JOIN
                sys.schemas rs ON rt.schema_id = rs.schema_id
            INNER JOIN
                sys.columns pc ON pc.object_id = fkc.parent_object_id
                AND pc.column_id = fkc.parent_column_id
            INNER JOIN
                sys.columns rc ON rc.object_id = fkc.referenced_object_id
                AND rc.column_id = fkc.referenced_column_id
            LEFT JOIN
                sys.extended_properties ep ON ep.major_id = fk.object_id
                AND ep.minor_id = 0
                AND ep.class = 1
                AND ep.name = 'MS_Description'
            WHERE
                fk.parent_object_id = ?
            ORDER BY
                fk.name, fkc.constraint_column_id
        """, (object_id,))

        # Group by constraint
        constraints: Dict[Any, Dict[str, Any]] = {}
        for row in rows:
            key = row['constraint_id']
            if key not in constraints:
                constraints[key] = {
                    'name': row['name'],
                    'description': row['description'],
                    'parent_schema': row['parent_schema'],
                    'parent_table': row['parent_table'],
                    'delete_action': get_referential_action_name(row['delete_referential_action']),
                    'update_action': get_referential_action_name(row['update_referential_action']),
                    'columns': []
                }
            constraints[key]['columns'].append({
                'column': row['column_name'],
                'parent_column': row['parent_column_name']
            })

        return list(constraints.values())

    def fetch_check_constraints(self, object_id: int) -> List[Dict[str, Any]]:
        """Check constraints of a table; column_name is None for table-level checks"""
        return self._execute_query("""
            SELECT
                cc.name,
                cc.definition,
                c.name AS column_name,
                ep.value AS description
            FROM
                sys.check_constraints cc
            LEFT JOIN
                sys.columns c ON c.object_id = cc.parent_object_id
                AND c.column_id = cc.parent_column_id
            LEFT JOIN
                sys.extended_properties ep ON ep.major_id = cc.object_id
                AND ep.minor_id = 0
                AND ep.class = 1
                AND ep.name = 'MS_Description'
            WHERE
                cc.parent_object_id = ?
            ORDER BY
                cc.name
        """, (object_id,))

    def fetch_parameters(self, object_id: int) -> List[Dict[str, Any]]:
        """Parameters of a procedure or function; parameter_id 0 is the return value"""
        return self._execute_query("""
            SELECT
                p.parameter_id,
                p.name,
                t.name AS type_name,
                p.max_length,
                p.precision,
                p.scale,
                p.is_output,
                p.is_nullable,
                ep.value AS description
            FROM
                sys.parameters p
            INNER JOIN
                sys.types t ON p.user_type_id = t.user_type_id
            LEFT JOIN
                sys.extended_properties ep ON ep.major_id = p.object_id
                AND ep.minor_id = p.parameter_id
                AND ep.class = 2
                AND ep.name = 'MS_Description'
            WHERE
                p.object_id = ?
            ORDER BY
                p.parameter_id
        """, (object_id,))

    def fetch_sample_rows(self, schema_name: str, table_name: str,
                          columns: List[Dict[str, Any]],
                          limit: int = SAMPLE_ROW_LIMIT) -> Tuple[List[str], List[tuple]]:
        """
        Fetch the first rows of a table

        The select list is built from the column list so that each row is
        aligned with it. Redacted and CLR types are selected as NULL and are
        never decoded.

        Returns:
            (column headers, rows)
        """
        if not columns:
            raise ValueError(f"No columns known for {schema_name}.{table_name}")

        select_list = ', '.join(sample_select_expression(column) for column in columns)
        query = (
            f"SELECT TOP {int(limit)} {select_list} "
            f"FROM {quote_identifier(schema_name)}.{quote_identifier(table_name)}"
        )
        return self._execute(query)


def sample_select_expression(column: Dict[str, Any]) -> str:
    """Select-list entry for one column of the sample query"""
    name = quote_identifier(column['name'])
    if is_redacted_column(column):
        return f"NULL AS {name}"
    # pyodbc has no reader for datetimeoffset (SQL type -155)
    if (column.get('system_type_name') or column['type_name']) == 'datetimeoffset':
        return f"CONVERT(nvarchar(34), {name}, 127) AS {name}"
    return name


def get_referential_action_name(action_id: Optional[int]) -> str:
    """Convert referential action ID to name"""
    if action_id == 0:
        return 'NO ACTION'
    elif action_id == 1:
        return 'CASCADE'
    elif action_id == 2:
        return 'SET NULL'
    elif action_id == 3:
        return 'SET DEFAULT'
    else:
        return 'UNKNOWN'

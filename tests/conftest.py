import io
from datetime import datetime

import pytest

from catalog_queries import QueryError
from html_document import HtmlDocument


class FakeCursor:
    """DB-API cursor answering queries from a queue of (columns, rows) responses"""

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.executed = []
        self.description = None
        self._rows = []
        self.closed = False

    def execute(self, query, params=None):
        self.executed.append((query, params))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        columns, rows = response
        self.description = [(name, None, None, None, None, None, None) for name in columns]
        self._rows = list(rows)
        return self

    def fetchall(self):
        return self._rows

    def close(self):
        self.closed = True


class FakeConnection:
    def __init__(self, responses=None):
        self.cursor_obj = FakeCursor(responses)
        self.closed = False

    def cursor(self):
        return self.cursor_obj

    def close(self):
        self.closed = True


def column(name, type_name, max_length=None, precision=0, scale=0, is_nullable=False,
           is_identity=False, seed_value=None, increment_value=None,
           default_definition=None, description=None, column_id=1,
           system_type_name=None, is_assembly_type=False):
    return {
        'column_id': column_id,
        'name': name,
        'type_name': type_name,
        'max_length': max_length,
        'precision': precision,
        'scale': scale,
        'is_nullable': is_nullable,
        'is_identity': is_identity,
        'seed_value': seed_value,
        'increment_value': increment_value,
        'default_definition': default_definition,
        'description': description,
        'system_type_name': system_type_name or type_name,
        'is_assembly_type': is_assembly_type,
    }


def schema_object(object_id, name, schema_name='dbo', description=None, definition=None):
    return {
        'object_id': object_id,
        'name': name,
        'schema_name': schema_name,
        'create_date': datetime(2023, 1, 2, 3, 4, 5),
        'modify_date': datetime(2023, 6, 7, 8, 9, 10),
        'description': description,
        'definition': definition,
    }


class FakeCatalog:
    """Stands in for CatalogQueries with canned rows"""

    def __init__(self, database='Shop', tables=(), views=(), procedures=(), functions=(),
                 columns=None, indexes=None, foreign_keys=None, checks=None,
                 parameters=None, samples=None, failing=()):
        self.database = {'name': database, 'create_date': datetime(2020, 5, 1, 12, 0, 0), 'description': None}
        self.tables = list(tables)
        self.views = list(views)
        self.procedures = list(procedures)
        self.functions = list(functions)
        self.columns = columns or {}
        self.indexes = indexes or {}
        self.foreign_keys = foreign_keys or {}
        self.checks = checks or {}
        self.parameters = parameters or {}
        self.samples = samples or {}
        self.failing = set(failing)
        self.calls = []

    def _call(self, method, *args):
        self.calls.append((method, args))
        if method in self.failing:
            raise QueryError(f"{method} failed")

    def fetch_database(self, name):
        self._call('fetch_database', name)
        return self.database

    def fetch_object_counts(self):
        self._call('fetch_object_counts')
        counts = {'U': len(self.tables), 'V': len(self.views), 'P': len(self.procedures), 'FN': len(self.functions)}
        return {kind: count for kind, count in counts.items() if count}

    def fetch_tables(self):
        self._call('fetch_tables')
        return self.tables

    def fetch_views(self):
        self._call('fetch_views')
        return self.views

    def fetch_procedures(self):
        self._call('fetch_procedures')
        return self.procedures

    def fetch_functions(self):
        self._call('fetch_functions')
        return self.functions

    def fetch_columns(self, object_id):
        self._call('fetch_columns', object_id)
        return self.columns.get(object_id, [])

    def fetch_indexes(self, object_id):
        self._call('fetch_indexes', object_id)
        return self.indexes.get(object_id, [])

    def fetch_foreign_keys(self, object_id):
        self._call('fetch_foreign_keys', object_id)
        return self.foreign_keys.get(object_id, [])

    def fetch_check_constraints(self, object_id):
        self._call('fetch_check_constraints', object_id)
        return self.checks.get(object_id, [])

    def fetch_parameters(self, object_id):
        self._call('fetch_parameters', object_id)
        return self.parameters.get(object_id, [])

    def fetch_sample_rows(self, schema_name, table_name, columns=None, limit=10):
        self._call('fetch_sample_rows', schema_name, table_name)
        if (schema_name, table_name) in self.samples:
            return self.samples[(schema_name, table_name)]
        return [c['name'] for c in columns or []], []

    def close(self):
        self.calls.append(('close', ()))

    def called(self, method):
        return [args for name, args in self.calls if name == method]


@pytest.fixture
def buffer():
    return io.StringIO()


@pytest.fixture
def document(buffer):
    return HtmlDocument(buffer)

import pyodbc
import pytest

import db_documenter
from conftest import FakeCatalog, FakeConnection, column, schema_object

ARGS = ['-u', 'sa', '-p', 'secret', '-s', 'db.local', '-d', 'Shop']


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def connect(monkeypatch):
    calls = []

    def fake_connect(connection_string):
        calls.append(connection_string)
        return FakeConnection()

    monkeypatch.setattr(db_documenter.pyodbc, 'connect', fake_connect)
    return calls


def use_catalog(monkeypatch, catalog):
    monkeypatch.setattr(db_documenter, 'CatalogQueries', lambda connection: catalog)


class TestScenarios:
    def test_single_table_without_rows(self, workdir, connect, monkeypatch):
        catalog = FakeCatalog(
            tables=[schema_object(1, 'Customers')],
            columns={1: [column('Name', 'varchar', max_length=50)]},
        )
        use_catalog(monkeypatch, catalog)

        assert db_documenter.main(ARGS) == 0

        output = (workdir / 'Shop.html').read_text(encoding='utf-8')
        assert output.count('<h3>') == 1
        assert '<dt>Name</dt>\n\t\t<dd>[varchar](50) NOT NULL</dd>' in output
        assert '<h4>No Sample Data</h4>' in output
        assert output.endswith('</html>\n')
        assert 'Encrypt=yes;TrustServerCertificate=yes;' in connect[0]

    def test_foreign_key_across_schemas(self, workdir, connect, monkeypatch):
        catalog = FakeCatalog(
            tables=[schema_object(1, 'Customers'), schema_object(2, 'Orders', schema_name='sales')],
            columns={
                1: [column('Id', 'int')],
                2: [column('Id', 'int'), column('CustomerId', 'int', column_id=2)],
            },
            foreign_keys={2: [{'name': 'FK_Orders_Customers', 'description': None, 'parent_schema': 'dbo',
                               'parent_table': 'Customers', 'delete_action': 'NO ACTION',
                               'update_action': 'NO ACTION',
                               'columns': [{'column': 'CustomerId', 'parent_column': 'Id'}]}]},
        )
        use_catalog(monkeypatch, catalog)

        assert db_documenter.main(ARGS) == 0

        output = (workdir / 'Shop.html').read_text(encoding='utf-8')
        assert '<a id="table-sales-Orders"></a>' in output
        assert '<h3>sales.Orders</h3>' in output
        assert 'References <a href="#table-Customers">Customers</a>' in output
        assert '<dd>CustomerId → Id</dd>' in output

    def test_empty_database(self, workdir, connect, monkeypatch):
        catalog = FakeCatalog()
        use_catalog(monkeypatch, catalog)

        assert db_documenter.main(ARGS) == 0

        output = (workdir / 'Shop.html').read_text(encoding='utf-8')
        body = output.split('<body>', 1)[1]
        assert 'No objects found' in body
        assert '<section' not in body
        assert '<h3>' not in body


class TestFailures:
    def test_partial_arguments(self, workdir, connect, capsys):
        assert db_documenter.main(['-u', 'sa', '-d', 'Shop']) == 1
        printed = capsys.readouterr().out
        assert '--password (-p) Password not specified' in printed
        assert '--server (-s) Server not specified' in printed
        assert connect == []

    def test_missing_default_config(self, workdir, connect, capsys):
        assert db_documenter.main([]) == 1
        assert 'Missing configuration file config.json' in capsys.readouterr().out
        assert connect == []

    def test_connection_failure(self, workdir, monkeypatch, capsys):
        def refuse(connection_string):
            raise pyodbc.Error('08001', 'Login timeout expired')

        monkeypatch.setattr(db_documenter.pyodbc, 'connect', refuse)
        assert db_documenter.main(ARGS) == 1
        assert 'Login timeout expired' in capsys.readouterr().out
        assert not (workdir / 'Shop.html').exists()

    def test_object_count_failure_is_fatal(self, workdir, connect, monkeypatch, capsys):
        use_catalog(monkeypatch, FakeCatalog(failing={'fetch_object_counts'}))
        assert db_documenter.main(ARGS) == 1
        assert '*** STARTUP ERROR ***' in capsys.readouterr().out

    def test_database_header_failure_leaves_unfinished_document(self, workdir, connect, monkeypatch):
        use_catalog(monkeypatch, FakeCatalog(tables=[schema_object(1, 'A')], failing={'fetch_database'}))
        assert db_documenter.main(ARGS) == 1
        assert '</html>' not in (workdir / 'Shop.html').read_text(encoding='utf-8')

    def test_generate_requires_connection(self):
        documenter = db_documenter.DatabaseDocumenter({'database': 'Shop'})
        with pytest.raises(ConnectionError):
            documenter.generate_html()


class TestDisconnect:
    def test_connection_closed_after_run(self, workdir, monkeypatch):
        connection = FakeConnection()
        monkeypatch.setattr(db_documenter.pyodbc, 'connect', lambda connection_string: connection)
        use_catalog(monkeypatch, FakeCatalog())
        assert db_documenter.main(ARGS) == 0
        assert connection.closed

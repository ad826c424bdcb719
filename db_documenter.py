#!/usr/bin/env python3
"""
Database Schema Documenter
--------------------------
A tool to document SQL Server database schemas.
Generates a single static HTML document describing the tables, views,
stored procedures and scalar functions of one database.
"""
import argparse
import os
import sys
import traceback
from typing import Any, Dict, List, Optional

import pyodbc

from catalog_queries import CatalogQueries, QueryError
from documenter_config import ConfigError, build_connection_string, resolve_config
from html_document import DocumentAssembler, HtmlDocument, StreamError, load_top_html

VERSION = '0.6'


class DatabaseDocumenter:
    def __init__(self, config: Dict[str, Any]):
        """Initialize the documenter with a resolved configuration"""
        self.config = config
        self.database = config['database']
        self.connection = None
        self.catalog = None
        self.connection_successful = False

    def connect(self) -> None:
        """Open the single database session used for every catalog query"""
        try:
            print("Connecting to mssql database...")
            self.connection = pyodbc.connect(build_connection_string(self.config))
            print("Connection successful!")
            self.connection_successful = True
        except pyodbc.Error as e:
            error_code = e.args[0] if len(e.args) > 0 else "Unknown"
            error_message = e.args[1] if len(e.args) > 1 else str(e)
            print(f"Connection Error ({error_code}): {error_message}")
            raise ConnectionError(f"Failed to connect to the database: {error_message}") from e

    def disconnect(self) -> None:
        """Disconnect from the database"""
        if self.catalog:
            self.catalog.close()
            self.catalog = None
        if self.connection:
            self.connection.close()
            self.connection = None

    def generate_html(self, output_dir: str = '.') -> str:
        """Generate the HTML documentation; returns the path of the written file"""
        if not self.connection_successful:
            raise ConnectionError("Not connected to database")

        self.catalog = CatalogQueries(self.connection)
        object_counts = self.catalog.fetch_object_counts()

        html_file = os.path.join(output_dir, f"{self.database}.html")
        print('=== OPENING DOCUMENT ===')
        document = HtmlDocument.create(html_file, self.database, load_top_html())
        try:
            DocumentAssembler(self.catalog, document, self.database, object_counts).assemble()
        except Exception:
            document.abort()
            raise

        print('=== CLOSING DOCUMENT ===')
        document.close()
        print(f"HTML documentation generated: {html_file}")
        return html_file


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Generate SQL Server database documentation')
    parser.add_argument('-u', '--user', help='User with rights to the database')
    parser.add_argument('-p', '--password', help='User password')
    parser.add_argument('-s', '--server', help='Server name or IP address')
    parser.add_argument('-d', '--database', help='Database name')
    parser.add_argument('-c', '--config', help='Configuration JSON file')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    print(f'SQL Server Database Documentation Generator v{VERSION}\n')
    args = build_parser().parse_args(argv)

    try:
        config = resolve_config(
            user=args.user,
            password=args.password,
            server=args.server,
            database=args.database,
            config_path=args.config
        )
    except ConfigError as e:
        print(f"*** CONFIGURATION ERROR *** {str(e)}")
        return 1

    documenter = DatabaseDocumenter(config)
    try:
        documenter.connect()
        documenter.generate_html()
    except ConnectionError as e:
        print(f"*** CONNECTION ERROR *** {str(e)}")
        return 1
    except QueryError as e:
        print(f"*** STARTUP ERROR *** {str(e)}")
        if e.query:
            print(f"Query: {e.query}")
        return 1
    except StreamError as e:
        print(f"*** DOCUMENT ERROR *** {str(e)}")
        return 1
    except Exception as e:
        print(f"Error: {str(e)}")
        traceback.print_exc()
        return 1
    finally:
        documenter.disconnect()

    return 0


if __name__ == '__main__':
    sys.exit(main())

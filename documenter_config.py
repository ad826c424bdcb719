"""
Documenter Configuration
------------------------
Resolves the connection settings from a JSON config file or the command
line and builds the pyodbc connection string.
"""
import json
import os
from typing import Any, Dict, Optional

DEFAULT_CONFIG_FILE = 'config.json'
DEFAULT_DRIVER = 'ODBC Driver 18 for SQL Server'

REQUIRED_KEYS = ('user', 'password', 'server', 'database')

MISSING_OPTION_MESSAGES = {
    'user': '--user (-u) User not specified',
    'password': '--password (-p) Password not specified',
    'server': '--server (-s) Server not specified',
    'database': '--database (-d) Database not specified',
}


class ConfigError(Exception):
    """Configuration is missing, unreadable or incomplete"""


def load_config(filename: str) -> Dict[str, Any]:
    """Load and validate a JSON config file"""
    if not os.path.exists(filename):
        raise ConfigError(f"Missing configuration file {filename}")

    try:
        with open(filename, 'r', encoding='utf-8') as f:
            settings = json.load(f)
    except (OSError, ValueError) as e:
        raise ConfigError(f"Invalid configuration file {filename}: {str(e)}") from e

    if not isinstance(settings, dict) or not all(settings.get(key) for key in REQUIRED_KEYS):
        raise ConfigError(f"Invalid configuration file {filename}")

    config = {key: settings[key] for key in REQUIRED_KEYS}
    config['driver'] = settings.get('driver') or DEFAULT_DRIVER
    return config


def resolve_config(user: Optional[str] = None, password: Optional[str] = None,
                   server: Optional[str] = None, database: Optional[str] = None,
                   config_path: Optional[str] = None,
                   default_config: str = DEFAULT_CONFIG_FILE) -> Dict[str, Any]:
    """
    Pick the configuration source

    Priority: explicit config file, then a complete set of connection
    arguments, then the default config file when no argument is given.
    A partial set of arguments is an error.
    """
    if config_path:
        return load_config(config_path)

    arguments = {'user': user, 'password': password, 'server': server, 'database': database}
    if all(arguments.values()):
        config = dict(arguments)
        config['driver'] = DEFAULT_DRIVER
        return config

    if not any(arguments.values()):
        return load_config(default_config)

    missing = [MISSING_OPTION_MESSAGES[key] for key in REQUIRED_KEYS if not arguments[key]]
    raise ConfigError(
        'To access a database through command line arguments all must be present.\n'
        + '\n'.join(missing)
    )


def _odbc_value(value: Any) -> str:
    value = str(value)
    if any(char in value for char in ';{}') or value != value.strip():
        return '{' + value.replace('}', '}}') + '}'
    return value


def build_connection_string(config: Dict[str, Any]) -> str:
    """Build a pyodbc connection string for SQL Server"""
    driver = config.get('driver') or DEFAULT_DRIVER
    connection_string = f"DRIVER={{{driver}}};"
    connection_string += f"SERVER={_odbc_value(config['server'])};"
    connection_string += f"DATABASE={_odbc_value(config['database'])};"
    connection_string += f"UID={_odbc_value(config['user'])};"
    connection_string += f"PWD={_odbc_value(config['password'])};"
    # Encryption is always on and the server certificate is not validated
    connection_string += "Encrypt=yes;TrustServerCertificate=yes;"
    return connection_string

"""
Configuration management module
"""
import os
import logging
from typing import Any, Dict, List, Optional, Tuple
from pathlib import Path

from dotenv import load_dotenv

# Look for .env file in the parent directory
env_path = Path(__file__).parent.parent / '.env'
if env_path.exists():
    load_dotenv(env_path)


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ('1', 'true', 'yes')


def _env_list(name: str, default: str) -> Tuple[str, ...]:
    return tuple(item.strip().upper() for item in os.getenv(name, default).split(',') if item.strip())


class Config:
    """Application configuration class"""

    # Application Settings
    APP_NAME: str = os.getenv('APP_NAME', 'JSON View Generator for Snowflake')
    APP_VERSION: str = os.getenv('APP_VERSION', '1.0.0')
    DEBUG: bool = _env_flag('DEBUG', 'false')

    # Logging Configuration
    LOG_LEVEL: str = os.getenv('LOG_LEVEL', 'INFO').upper()
    LOG_FILE_PATH: str = os.getenv('LOG_FILE_PATH', 'logs/app.log')

    # Snowflake Connection
    SNOWFLAKE_ACCOUNT: Optional[str] = os.getenv('SNOWFLAKE_ACCOUNT')
    SNOWFLAKE_USER: Optional[str] = os.getenv('SNOWFLAKE_USER')
    SNOWFLAKE_PASSWORD: Optional[str] = os.getenv('SNOWFLAKE_PASSWORD')
    SNOWFLAKE_WAREHOUSE: str = os.getenv('SNOWFLAKE_WAREHOUSE', 'COMPUTE_WH')
    SNOWFLAKE_DATABASE: Optional[str] = os.getenv('SNOWFLAKE_DATABASE')
    SNOWFLAKE_SCHEMA: str = os.getenv('SNOWFLAKE_SCHEMA', 'PUBLIC')
    SNOWFLAKE_ROLE: Optional[str] = os.getenv('SNOWFLAKE_ROLE')
    SNOWFLAKE_LOGIN_TIMEOUT: int = int(os.getenv('SNOWFLAKE_LOGIN_TIMEOUT', '60'))

    # View Generation Settings
    DEFAULT_COLUMN_CASE: str = os.getenv('DEFAULT_COLUMN_CASE', 'uppercase cols')
    DEFAULT_COLUMN_TYPE: str = os.getenv('DEFAULT_COLUMN_TYPE', 'match datatypes')
    VIEW_NAME_SUFFIX: str = os.getenv('VIEW_NAME_SUFFIX', '_VW')
    SEMI_STRUCTURED_TYPES: Tuple[str, ...] = _env_list('JSON_VIEW_SEMI_STRUCTURED_TYPES', 'VARIANT')
    VALIDATE_ALIASES: bool = _env_flag('VALIDATE_ALIASES', 'true')

    @classmethod
    def setup_logging(cls):
        """Setup logging configuration with directory creation"""
        log_file_path = Path(cls.LOG_FILE_PATH)
        log_file_path.parent.mkdir(parents=True, exist_ok=True)

        logging.basicConfig(
            level=cls.get_log_level(),
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            handlers=[
                logging.FileHandler(cls.LOG_FILE_PATH, encoding='utf-8'),
                logging.StreamHandler()
            ]
        )

        if not cls.DEBUG:
            # The connector logs every request at INFO
            logging.getLogger('snowflake.connector').setLevel(logging.WARNING)
            logging.getLogger('urllib3').setLevel(logging.WARNING)

    @classmethod
    def get_log_level(cls) -> int:
        """Convert log level string to logging level constant"""
        return getattr(logging, cls.LOG_LEVEL, logging.INFO)

    @classmethod
    def get_connection_params(cls, **overrides: Any) -> Dict[str, Any]:
        """Build snowflake.connector.connect() keyword arguments, dropping unset values"""
        params = {
            'account': cls.SNOWFLAKE_ACCOUNT,
            'user': cls.SNOWFLAKE_USER,
            'password': cls.SNOWFLAKE_PASSWORD,
            'warehouse': cls.SNOWFLAKE_WAREHOUSE,
            'database': cls.SNOWFLAKE_DATABASE,
            'schema': cls.SNOWFLAKE_SCHEMA,
            'role': cls.SNOWFLAKE_ROLE,
            'login_timeout': cls.SNOWFLAKE_LOGIN_TIMEOUT,
        }
        params.update(overrides)
        return {key: value for key, value in params.items() if value not in (None, '')}

    @classmethod
    def validate_config(cls) -> List[str]:
        """Validate configuration and return list of issues"""
        issues = []

        if cls.SNOWFLAKE_LOGIN_TIMEOUT <= 0:
            issues.append("SNOWFLAKE_LOGIN_TIMEOUT must be positive")

        if not cls.SEMI_STRUCTURED_TYPES:
            issues.append("JSON_VIEW_SEMI_STRUCTURED_TYPES must name at least one data type")

        if cls.DEFAULT_COLUMN_CASE.strip()[:1].upper() not in ('M', 'U'):
            issues.append("DEFAULT_COLUMN_CASE must be 'match col case' or 'uppercase cols'")

        if cls.DEFAULT_COLUMN_TYPE.strip()[:1].upper() not in ('M', 'S'):
            issues.append("DEFAULT_COLUMN_TYPE must be 'match datatypes' or 'string datatypes'")

        if cls.LOG_LEVEL not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            issues.append(f"LOG_LEVEL '{cls.LOG_LEVEL}' is not a logging level")

        return issues

    @classmethod
    def get_config_summary(cls) -> dict:
        """Get a summary of current configuration (without sensitive data)"""
        return {
            'app_name': cls.APP_NAME,
            'app_version': cls.APP_VERSION,
            'debug': cls.DEBUG,
            'log_level': cls.LOG_LEVEL,
            'account': cls.SNOWFLAKE_ACCOUNT,
            'warehouse': cls.SNOWFLAKE_WAREHOUSE,
            'database': cls.SNOWFLAKE_DATABASE,
            'schema': cls.SNOWFLAKE_SCHEMA,
            'role': cls.SNOWFLAKE_ROLE,
            'default_column_case': cls.DEFAULT_COLUMN_CASE,
            'default_column_type': cls.DEFAULT_COLUMN_TYPE,
            'view_name_suffix': cls.VIEW_NAME_SUFFIX,
            'semi_structured_types': list(cls.SEMI_STRUCTURED_TYPES),
            'validate_aliases': cls.VALIDATE_ALIASES,
            'validation_issues': cls.validate_config()
        }


# Create a global config instance
config = Config()

validation_issues = config.validate_config()
if validation_issues:
    logging.getLogger(__name__).warning(f"Configuration issues detected: {', '.join(validation_issues)}")

# datasight/config.py
import os
from pathlib import Path
from typing import List, Optional
from dataclasses import dataclass
import json

@dataclass
class PathConfig:
    """Configuration for project paths"""
    PROJECT_ROOT: Path
    LOGS_DIR: Path

@dataclass
class IngestionConfig:
    """Configuration for file ingestion"""
    MAX_FILE_SIZE_MB: int
    SUPPORTED_FILE_FORMATS: List[str]
    CSV_ENCODINGS: List[str]
    CSV_SEPARATORS: List[str]

@dataclass
class AnalysisConfig:
    """Thresholds used by the analysis engine"""
    SAMPLE_SIZE: int
    MIN_POINTS: int
    CATEGORICAL_RATIO: float
    CORRELATION_THRESHOLD: float
    STRONG_CORRELATION: float
    OUTLIER_IQR_MULTIPLIER: float
    MAX_OUTLIER_EXAMPLES: int
    TREND_THRESHOLD: float
    SIGNIFICANT_TREND: float
    SEASONALITY_RATIO: float
    LARGE_DATASET_ROWS: int

@dataclass
class InsightServiceConfig:
    """Configuration for the generative text service"""
    PROVIDER: str  # 'gemini' or 'none'
    API_KEY: str
    MODEL: str
    BASE_URL: str
    TIMEOUT: float
    MAX_INSIGHTS: int
    CHAT_HISTORY_LIMIT: int

@dataclass
class APIConfig:
    """Configuration for the HTTP API"""
    DEFAULT_PORT: int
    DEFAULT_HOST: str
    MAX_REQUEST_SIZE: int
    ENABLE_CORS: bool
    ENABLE_DOCS: bool

class Config:
    """Central configuration manager for datasight"""

    def __init__(self, config_file: Optional[str] = None):
        """
        Initialize configuration

        Args:
            config_file: Optional path to JSON config file to override defaults
        """
        self._load_default_config()

        if config_file and os.path.exists(config_file):
            self._load_config_file(config_file)

        self._load_environment_variables()

    def _load_default_config(self):
        """Load default configuration values"""

        project_root = Path(__file__).parent.parent
        self.paths = PathConfig(
            PROJECT_ROOT=project_root,
            LOGS_DIR=project_root / "logs"
        )

        self.ingestion = IngestionConfig(
            MAX_FILE_SIZE_MB=100,
            SUPPORTED_FILE_FORMATS=['.csv', '.xlsx', '.xls', '.json'],
            CSV_ENCODINGS=['utf-8', 'latin-1', 'cp1252'],
            CSV_SEPARATORS=[',', ';', '\t']
        )

        self.analysis = AnalysisConfig(
            SAMPLE_SIZE=100,
            MIN_POINTS=5,
            CATEGORICAL_RATIO=0.2,
            CORRELATION_THRESHOLD=0.5,
            STRONG_CORRELATION=0.8,
            OUTLIER_IQR_MULTIPLIER=1.5,
            MAX_OUTLIER_EXAMPLES=5,
            TREND_THRESHOLD=10.0,
            SIGNIFICANT_TREND=20.0,
            SEASONALITY_RATIO=0.4,
            LARGE_DATASET_ROWS=10000
        )

        self.insight_service = InsightServiceConfig(
            PROVIDER="gemini",
            API_KEY="",
            MODEL="gemini-2.5-flash",
            BASE_URL="https://generativelanguage.googleapis.com/v1beta",
            TIMEOUT=30.0,
            MAX_INSIGHTS=5,
            CHAT_HISTORY_LIMIT=4
        )

        self.api = APIConfig(
            DEFAULT_PORT=8000,
            DEFAULT_HOST="0.0.0.0",
            MAX_REQUEST_SIZE=100 * 1024 * 1024,  # 100MB
            ENABLE_CORS=True,
            ENABLE_DOCS=True
        )

        # Additional settings
        self.logging_level = "INFO"

    def _load_config_file(self, config_file: str):
        """Load configuration from JSON file"""
        try:
            with open(config_file, 'r') as f:
                config_data = json.load(f)

            # Update configurations with values from file
            for section, values in config_data.items():
                if hasattr(self, section):
                    config_obj = getattr(self, section)
                    if not isinstance(values, dict):
                        setattr(self, section, values)
                        continue
                    for key, value in values.items():
                        if hasattr(config_obj, key):
                            setattr(config_obj, key, value)

        except (OSError, ValueError) as e:
            print(f"Warning: Could not load config file {config_file}: {e}")

    def _load_environment_variables(self):
        """Load configuration from environment variables"""

        # Analysis settings
        if os.getenv("DATASIGHT_SAMPLE_SIZE"):
            self.analysis.SAMPLE_SIZE = int(os.getenv("DATASIGHT_SAMPLE_SIZE"))

        # Ingestion settings
        if os.getenv("MAX_FILE_SIZE_MB"):
            self.ingestion.MAX_FILE_SIZE_MB = int(os.getenv("MAX_FILE_SIZE_MB"))

        # Generative service settings
        if os.getenv("GEMINI_API_KEY"):
            self.insight_service.API_KEY = os.getenv("GEMINI_API_KEY")

        if os.getenv("GEMINI_MODEL"):
            self.insight_service.MODEL = os.getenv("GEMINI_MODEL")

        if os.getenv("INSIGHT_PROVIDER"):
            self.insight_service.PROVIDER = os.getenv("INSIGHT_PROVIDER").lower()

        if os.getenv("INSIGHT_TIMEOUT"):
            self.insight_service.TIMEOUT = float(os.getenv("INSIGHT_TIMEOUT"))

        # API settings
        if os.getenv("API_PORT"):
            self.api.DEFAULT_PORT = int(os.getenv("API_PORT"))

        if os.getenv("API_HOST"):
            self.api.DEFAULT_HOST = os.getenv("API_HOST")

        # General settings
        if os.getenv("LOG_LEVEL"):
            self.logging_level = os.getenv("LOG_LEVEL")

    @property
    def insight_service_enabled(self) -> bool:
        """Whether a generative text service can be reached at all"""
        return self.insight_service.PROVIDER != 'none' and bool(self.insight_service.API_KEY)

    def save_config(self, config_file: str):
        """Save current configuration to JSON file"""
        config_dict = {}

        # Convert dataclasses to dictionaries
        for attr_name in dir(self):
            if attr_name.startswith('_') or attr_name == 'insight_service_enabled':
                continue
            attr_value = getattr(self, attr_name)
            if hasattr(attr_value, '__dict__'):
                config_dict[attr_name] = {}
                for field_name, field_value in attr_value.__dict__.items():
                    if isinstance(field_value, Path):
                        config_dict[attr_name][field_name] = str(field_value)
                    elif field_name == 'API_KEY':
                        config_dict[attr_name][field_name] = ""
                    else:
                        config_dict[attr_name][field_name] = field_value
            elif not callable(attr_value):
                config_dict[attr_name] = attr_value

        with open(config_file, 'w') as f:
            json.dump(config_dict, f, indent=2)

    def validate_config(self) -> List[str]:
        """Validate configuration and return list of issues"""
        issues = []

        if self.analysis.SAMPLE_SIZE <= 0:
            issues.append(f"Sample size must be positive: {self.analysis.SAMPLE_SIZE}")

        if self.analysis.MIN_POINTS < 2:
            issues.append(f"Minimum points must be >= 2: {self.analysis.MIN_POINTS}")

        if not 0 < self.analysis.CORRELATION_THRESHOLD < 1:
            issues.append(f"Invalid correlation threshold: {self.analysis.CORRELATION_THRESHOLD}")

        if self.analysis.STRONG_CORRELATION <= self.analysis.CORRELATION_THRESHOLD:
            issues.append("Strong correlation threshold must exceed the correlation threshold")

        if self.analysis.OUTLIER_IQR_MULTIPLIER <= 0:
            issues.append(f"Invalid IQR multiplier: {self.analysis.OUTLIER_IQR_MULTIPLIER}")

        if self.ingestion.MAX_FILE_SIZE_MB <= 0:
            issues.append(f"Invalid max file size: {self.ingestion.MAX_FILE_SIZE_MB}")

        if self.insight_service.PROVIDER not in ('gemini', 'none'):
            issues.append(f"Unknown insight provider: {self.insight_service.PROVIDER}")

        if self.insight_service.TIMEOUT <= 0:
            issues.append(f"Invalid insight service timeout: {self.insight_service.TIMEOUT}")

        return issues

    def __str__(self) -> str:
        """String representation of configuration"""
        return f"Config(project_root={self.paths.PROJECT_ROOT}, log_level={self.logging_level})"

# Global configuration instance
_config = None

def get_config(config_file: Optional[str] = None) -> Config:
    """Get global configuration instance (singleton pattern)"""
    global _config
    if _config is None:
        _config = Config(config_file)
    return _config

def reload_config(config_file: Optional[str] = None) -> Config:
    """Reload configuration (useful for testing)"""
    global _config
    _config = Config(config_file)
    return _config

# Example configuration file template
CONFIG_TEMPLATE = {
    "analysis": {
        "SAMPLE_SIZE": 100,
        "CORRELATION_THRESHOLD": 0.5,
        "STRONG_CORRELATION": 0.8
    },
    "ingestion": {
        "MAX_FILE_SIZE_MB": 100
    },
    "insight_service": {
        "PROVIDER": "gemini",
        "MODEL": "gemini-2.5-flash",
        "TIMEOUT": 30.0
    },
    "api": {
        "DEFAULT_PORT": 8080
    }
}

def create_config_template(output_file: str):
    """Create a configuration template file"""
    with open(output_file, 'w') as f:
        json.dump(CONFIG_TEMPLATE, f, indent=2)

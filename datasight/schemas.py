# datasight/schemas.py
"""Data structures produced and consumed by the analysis engine.

Every structure is a plain dataclass. ``to_dict()`` renders the camelCase
shape consumed by the dashboard and chat layers.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

Record = Dict[str, Any]


class DatasightError(Exception):
    """Base class for datasight errors"""


class UnsupportedFormatError(DatasightError):
    """Raised when a file extension cannot be parsed into records"""


class FileTooLargeError(DatasightError):
    """Raised when an input file exceeds the configured size limit"""


class SchemaMismatchError(DatasightError):
    """Raised when a record does not match the schema discovered at load time"""


class InsightServiceError(DatasightError):
    """Raised by text-insight providers when the remote call fails"""


class ColumnType(str, Enum):
    NUMERIC = "numeric"
    BOOLEAN = "boolean"
    DATETIME = "datetime"
    CATEGORICAL = "categorical"
    TEXT = "text"


@dataclass
class Column:
    name: str
    type: ColumnType
    unique_values: int = 0
    missing_values: int = 0
    missing_percentage: float = 0.0
    min: Optional[float] = None
    max: Optional[float] = None
    mean: Optional[float] = None
    median: Optional[float] = None
    std_dev: Optional[float] = None
    quartiles: Optional[Tuple[float, float, float]] = None

    @property
    def is_numeric(self) -> bool:
        return self.type == ColumnType.NUMERIC

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'name': self.name,
            'type': self.type.value,
            'uniqueValues': self.unique_values,
            'missingValues': self.missing_values,
            'missingPercentage': self.missing_percentage,
        }
        if self.is_numeric and self.quartiles is not None:
            data.update({
                'min': self.min,
                'max': self.max,
                'mean': self.mean,
                'median': self.median,
                'stdDev': self.std_dev,
                'quartiles': list(self.quartiles),
            })
        return data


@dataclass
class DataQuality:
    missing_values: int = 0
    duplicate_rows: int = 0
    outliers: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            'missingValues': self.missing_values,
            'duplicateRows': self.duplicate_rows,
            'outliers': self.outliers,
        }


@dataclass
class DatasetInfo:
    """Aggregate describing one loaded dataset.

    ``columns`` is ordered like the keys of the first record and ``records``
    holds the rows left after the empty-row filter.
    """
    file_name: str
    file_size: int
    row_count: int
    column_count: int
    columns: List[Column]
    records: List[Record]
    data_quality: DataQuality

    @classmethod
    def from_records(cls, records: List[Record], file_name: str = "",
                     file_size: int = 0, sample_size: Optional[int] = 100) -> "DatasetInfo":
        """Profile ``records`` and build the aggregate"""
        from datasight.agents.profiling_agent import compute_data_quality, infer_columns
        from datasight.utils.values import drop_empty_records

        records = drop_empty_records(records)
        columns = infer_columns(records, sample_size=sample_size)
        return cls(
            file_name=file_name,
            file_size=file_size,
            row_count=len(records),
            column_count=len(columns),
            columns=list(columns.values()),
            records=records,
            data_quality=compute_data_quality(records),
        )

    @property
    def schema(self) -> List[str]:
        return [column.name for column in self.columns]

    def column_map(self) -> Dict[str, Column]:
        return {column.name: column for column in self.columns}

    def columns_of_type(self, column_type: ColumnType) -> List[Column]:
        return [column for column in self.columns if column.type == column_type]

    def validate_record(self, record: Record) -> None:
        """Reject records whose key set drifted from the discovered schema"""
        expected = set(self.schema)
        actual = set(record.keys())
        if actual != expected:
            missing = sorted(expected - actual)
            extra = sorted(actual - expected)
            raise SchemaMismatchError(
                f"Record does not match schema (missing={missing}, unexpected={extra})"
            )

    def to_dict(self, include_records: bool = False) -> Dict[str, Any]:
        data = {
            'fileName': self.file_name,
            'fileSize': self.file_size,
            'rowCount': self.row_count,
            'columnCount': self.column_count,
            'columns': [column.to_dict() for column in self.columns],
            'dataQuality': self.data_quality.to_dict(),
        }
        if include_records:
            data['data'] = self.records
        return data


@dataclass
class OutlierInfo:
    count: int
    percentage: float
    lower: float
    upper: float
    examples: List[Record] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'count': self.count,
            'percentage': self.percentage,
            'boundaries': {'lower': self.lower, 'upper': self.upper},
            'examples': self.examples,
        }


@dataclass
class Correlation:
    columns: Tuple[str, str]
    correlation: float
    strength: str  # 'moderate' | 'strong'
    direction: str  # 'positive' | 'negative'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'columns': list(self.columns),
            'correlation': self.correlation,
            'strength': self.strength,
            'direction': self.direction,
        }


@dataclass
class TimeTrend:
    date_column: str
    value_column: str
    trend_direction: str  # 'increasing' | 'decreasing' | 'stable'
    percent_change: str
    seasonality: bool
    moving_average: List[float] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'dateColumn': self.date_column,
            'valueColumn': self.value_column,
            'trendDirection': self.trend_direction,
            'percentChange': self.percent_change,
            'seasonality': self.seasonality,
            'movingAverage': self.moving_average,
        }


@dataclass
class Recommendation:
    type: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {'type': self.type, 'message': self.message}


@dataclass
class Insights:
    time_trends: List[TimeTrend] = field(default_factory=list)
    correlations: List[Correlation] = field(default_factory=list)
    outliers: Dict[str, OutlierInfo] = field(default_factory=dict)
    recommendations: List[Recommendation] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timeTrends': [trend.to_dict() for trend in self.time_trends],
            'correlations': [corr.to_dict() for corr in self.correlations],
            'outliers': {name: info.to_dict() for name, info in self.outliers.items()},
            'recommendations': [rec.to_dict() for rec in self.recommendations],
        }


@dataclass
class AIInsight:
    type: str  # 'trend' | 'pattern' | 'anomaly' | 'recommendation' | 'summary'
    title: str
    description: str
    confidence: float
    actionable: bool
    related_columns: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.type,
            'title': self.title,
            'description': self.description,
            'confidence': self.confidence,
            'actionable': self.actionable,
            'relatedColumns': self.related_columns,
        }


@dataclass
class ChartSuggestion:
    chart_type: str  # 'bar' | 'line' | 'scatter' | 'pie' | 'histogram' | 'boxplot'
    title: str
    x_axis: Optional[str] = None
    y_axis: Optional[str] = None
    reason: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.chart_type,
            'title': self.title,
            'xAxis': self.x_axis,
            'yAxis': self.y_axis,
            'reason': self.reason,
        }


@dataclass
class ChatMessage:
    role: str  # 'user' | 'assistant'
    content: str
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, str]:
        return {
            'role': self.role,
            'content': self.content,
            'timestamp': self.timestamp.isoformat(),
        }

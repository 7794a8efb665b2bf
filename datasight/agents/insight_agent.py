# datasight/agents/insight_agent.py
import asyncio
import logging
import math
from itertools import combinations
from typing import Dict, List, Optional

import numpy as np

from datasight.config import AnalysisConfig, get_config
from datasight.schemas import (
    Column,
    ColumnType,
    Correlation,
    DatasetInfo,
    Insights,
    OutlierInfo,
    Recommendation,
    Record,
    TimeTrend,
)
from datasight.utils.logging_config import log_execution_time
from datasight.utils.values import to_number, to_timestamp

logger = logging.getLogger(__name__)


def _numeric_names(columns: Dict[str, Column]) -> List[str]:
    return [name for name, column in columns.items() if column.type == ColumnType.NUMERIC]


def find_outliers(records: List[Record], columns: Dict[str, Column],
                  config: Optional[AnalysisConfig] = None) -> Dict[str, OutlierInfo]:
    """Flag values outside the IQR fences of each numeric column.

    Fences are computed over the full dataset from nearest-rank Q1/Q3.
    Columns with fewer than ``MIN_POINTS`` numeric values are skipped and
    only columns with at least one outlier are reported.
    """
    config = config or get_config().analysis
    outliers: Dict[str, OutlierInfo] = {}
    if not records:
        return outliers

    for name in _numeric_names(columns):
        values = [to_number(row.get(name)) for row in records]
        numbers = np.sort(np.array([value for value in values if value is not None], dtype=float))
        if len(numbers) < config.MIN_POINTS:
            continue

        q1 = float(numbers[math.floor(len(numbers) * 0.25)])
        q3 = float(numbers[math.floor(len(numbers) * 0.75)])
        iqr = q3 - q1
        lower = q1 - config.OUTLIER_IQR_MULTIPLIER * iqr
        upper = q3 + config.OUTLIER_IQR_MULTIPLIER * iqr

        offending = [
            row for row, value in zip(records, values)
            if value is not None and (value < lower or value > upper)
        ]
        if not offending:
            continue

        outliers[name] = OutlierInfo(
            count=len(offending),
            percentage=round(len(offending) / len(records) * 100, 2),
            lower=lower,
            upper=upper,
            examples=offending[:config.MAX_OUTLIER_EXAMPLES],
        )

    return outliers


def pearson(xs: np.ndarray, ys: np.ndarray) -> Optional[float]:
    """Sum-based Pearson r; None when either side has no variance"""
    n = len(xs)
    numerator = n * np.sum(xs * ys) - np.sum(xs) * np.sum(ys)
    variance_product = (n * np.sum(xs * xs) - np.sum(xs) ** 2) * (n * np.sum(ys * ys) - np.sum(ys) ** 2)
    if variance_product <= 0:
        return None
    return float(numerator / math.sqrt(variance_product))


def find_correlations(records: List[Record], columns: Dict[str, Column],
                      config: Optional[AnalysisConfig] = None) -> List[Correlation]:
    """Pairwise Pearson correlations above the threshold, strongest first"""
    config = config or get_config().analysis
    if not records:
        return []

    found = []
    for first, second in combinations(_numeric_names(columns), 2):
        pairs = [
            (to_number(row.get(first)), to_number(row.get(second)))
            for row in records
        ]
        pairs = [(x, y) for x, y in pairs if x is not None and y is not None]
        if len(pairs) < config.MIN_POINTS:
            continue

        xs = np.array([x for x, _ in pairs], dtype=float)
        ys = np.array([y for _, y in pairs], dtype=float)
        r = pearson(xs, ys)
        if r is None or abs(r) <= config.CORRELATION_THRESHOLD:
            continue

        found.append((abs(r), Correlation(
            columns=(first, second),
            correlation=round(r, 2),
            strength='strong' if abs(r) > config.STRONG_CORRELATION else 'moderate',
            direction='positive' if r > 0 else 'negative',
        )))

    found.sort(key=lambda item: item[0], reverse=True)
    return [correlation for _, correlation in found]


def detect_trend(records: List[Record], date_column: str, value_column: str,
                 config: Optional[AnalysisConfig] = None) -> Optional[TimeTrend]:
    """Direction, percent change, moving average and seasonality of a series.

    Returns None when the trend cannot be computed (too few rows, a zero
    baseline, incomparable dates). None means "not computed", not "flat".
    """
    config = config or get_config().analysis
    if not records or len(records) < config.MIN_POINTS:
        return None

    try:
        points = []
        for row in records:
            when = to_timestamp(row.get(date_column))
            value = to_number(row.get(value_column))
            if when is not None and value is not None:
                points.append((when, value))
        if len(points) < config.MIN_POINTS:
            return None

        points.sort(key=lambda point: point[0])
        values = [value for _, value in points]
        count = len(values)

        moving_average = [
            (values[i - 1] + values[i] + values[i + 1]) / 3
            for i in range(1, count - 1)
        ]

        first_quarter = values[:count // 4]
        last_quarter = values[(count * 3) // 4:]
        first_avg = sum(first_quarter) / len(first_quarter)
        last_avg = sum(last_quarter) / len(last_quarter)
        if first_avg == 0:
            return None
        percent_change = (last_avg - first_avg) / first_avg * 100
        if round(percent_change, 2) == 0:
            # avoid "-0.00"
            percent_change = 0.0

        if percent_change > config.TREND_THRESHOLD:
            direction = 'increasing'
        elif percent_change < -config.TREND_THRESHOLD:
            direction = 'decreasing'
        else:
            direction = 'stable'

        diffs = [values[i] - values[i - 1] for i in range(1, count)]
        sign_changes = sum(
            1 for previous, current in zip(diffs, diffs[1:])
            if (current > 0 and previous < 0) or (current < 0 and previous > 0)
        )

        return TimeTrend(
            date_column=date_column,
            value_column=value_column,
            trend_direction=direction,
            percent_change=f"{percent_change:.2f}",
            seasonality=sign_changes > len(diffs) * config.SEASONALITY_RATIO,
            moving_average=moving_average,
        )

    except (ArithmeticError, TypeError, ValueError) as e:
        logger.debug(f"Trend detection skipped for {date_column}/{value_column}: {str(e)}")
        return None


@log_execution_time
def compose_insights(records: List[Record], dataset_info: Optional[DatasetInfo],
                     config: Optional[AnalysisConfig] = None) -> Insights:
    """Run outlier, correlation and trend analysis and derive recommendations"""
    config = config or get_config().analysis
    insights = Insights()
    if not records or dataset_info is None:
        return insights

    columns = dataset_info.column_map()
    date_columns = [c.name for c in dataset_info.columns_of_type(ColumnType.DATETIME)]
    numeric_columns = [c.name for c in dataset_info.columns_of_type(ColumnType.NUMERIC)]

    insights.correlations = find_correlations(records, columns, config=config)

    for date_column in date_columns:
        for value_column in numeric_columns:
            trend = detect_trend(records, date_column, value_column, config=config)
            if trend is not None:
                insights.time_trends.append(trend)

    insights.outliers = find_outliers(records, columns, config=config)
    insights.recommendations = _recommend(insights, config)
    return insights


def _recommend(insights: Insights, config: AnalysisConfig) -> List[Recommendation]:
    recommendations = []

    if insights.correlations:
        first, second = insights.correlations[0].columns
        recommendations.append(Recommendation(
            type='correlation',
            message=(
                f"Consider creating a scatter plot to visualize the strong correlation "
                f"between {first} and {second}."
            ),
        ))

    significant = [
        trend for trend in insights.time_trends
        if abs(float(trend.percent_change)) > config.SIGNIFICANT_TREND
    ]
    if significant:
        trend = max(significant, key=lambda t: abs(float(t.percent_change)))
        recommendations.append(Recommendation(
            type='trend',
            message=(
                f"There's a significant {trend.trend_direction} trend ({trend.percent_change}%) "
                f"in {trend.value_column} over time. Consider creating a line chart with "
                f"moving averages to visualize this trend."
            ),
        ))

    seasonal = next((trend for trend in insights.time_trends if trend.seasonality), None)
    if seasonal is not None:
        recommendations.append(Recommendation(
            type='seasonality',
            message=(
                f"Seasonal patterns detected in {seasonal.value_column}. Consider decomposing "
                f"the time series to analyze seasonal components."
            ),
        ))

    affected = list(insights.outliers.keys())
    if affected:
        verb = 'contains' if len(affected) == 1 else 'contain'
        recommendations.append(Recommendation(
            type='outliers',
            message=(
                f"{', '.join(affected)} {verb} significant outliers. "
                f"Consider using box plots to visualize the distribution."
            ),
        ))

    return recommendations


def profile_recommendations(dataset_info: DatasetInfo) -> List[Recommendation]:
    """Notes about the dataset's size and column mix"""
    notes = []

    if dataset_info.row_count > 1000:
        notes.append(Recommendation(
            type='data_volume',
            message=(
                f"Large dataset detected ({dataset_info.row_count:,} rows). "
                f"Consider using sampling for initial analysis."
            ),
        ))

    if not dataset_info.columns_of_type(ColumnType.NUMERIC):
        notes.append(Recommendation(
            type='data_type',
            message='No numeric columns found. Consider converting text data to numeric for statistical analysis.',
        ))

    if not dataset_info.columns_of_type(ColumnType.DATETIME):
        notes.append(Recommendation(
            type='data_type',
            message='No date columns found. Time series analysis requires date/time data.',
        ))

    return notes


class InsightAgent:
    """Agent responsible for trend, correlation and outlier analysis"""

    def __init__(self, config: Optional[AnalysisConfig] = None):
        self.config = config or get_config().analysis

    async def analyze(self, state: dict) -> dict:
        """Compose the insight aggregate for the profiled dataset"""
        logger.info("Starting insight analysis")

        try:
            dataset_info = state['dataset_info']
            insights = await asyncio.to_thread(
                compose_insights, dataset_info.records, dataset_info, config=self.config
            )

            state.update({
                'insights': insights,
                'profile_notes': profile_recommendations(dataset_info),
                'current_step': 'insight_analysis',
                'next_action': 'narrative'
            })

            state['execution_log'].append(
                f"Insight analysis completed: {len(insights.correlations)} correlations, "
                f"{len(insights.time_trends)} trends, {len(insights.outliers)} columns with outliers"
            )

            return state

        except Exception as e:
            logger.error(f"Insight analysis failed: {str(e)}")
            state['errors'].append(f"Insight analysis error: {str(e)}")
            state['next_action'] = 'error'
            return state

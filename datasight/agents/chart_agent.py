# datasight/agents/chart_agent.py
import logging
from typing import List, Optional

from datasight.schemas import ChartSuggestion, ColumnType, DatasetInfo, Insights

logger = logging.getLogger(__name__)

MAX_PER_KIND = 2


class ChartAgent:
    """Agent turning column metadata and insights into chart suggestions"""

    def suggest_charts(self, dataset_info: DatasetInfo,
                       insights: Optional[Insights] = None) -> List[ChartSuggestion]:
        """Ordered chart suggestions for the rendering layer"""
        insights = insights or Insights()
        numeric = [c.name for c in dataset_info.columns_of_type(ColumnType.NUMERIC)]
        categorical = [c.name for c in dataset_info.columns_of_type(ColumnType.CATEGORICAL)]
        dates = [c.name for c in dataset_info.columns_of_type(ColumnType.DATETIME)]
        suggestions = []

        if insights.correlations:
            top = insights.correlations[0]
            x_axis, y_axis = top.columns
            suggestions.append(ChartSuggestion(
                chart_type='scatter',
                title=f"{y_axis} vs {x_axis}",
                x_axis=x_axis,
                y_axis=y_axis,
                reason=f"{top.strength.capitalize()} {top.direction} correlation (r={top.correlation:.2f})",
            ))
        elif len(numeric) >= 2:
            suggestions.append(ChartSuggestion(
                chart_type='scatter',
                title=f"{numeric[1]} vs {numeric[0]}",
                x_axis=numeric[0],
                y_axis=numeric[1],
                reason="Compare two numeric columns",
            ))

        if insights.time_trends:
            for trend in insights.time_trends[:MAX_PER_KIND]:
                suggestions.append(ChartSuggestion(
                    chart_type='line',
                    title=f"{trend.value_column} over {trend.date_column}",
                    x_axis=trend.date_column,
                    y_axis=trend.value_column,
                    reason=f"{trend.trend_direction.capitalize()} trend ({trend.percent_change}%)",
                ))
        elif dates and numeric:
            for value_column in numeric[:MAX_PER_KIND]:
                suggestions.append(ChartSuggestion(
                    chart_type='line',
                    title=f"{value_column} over {dates[0]}",
                    x_axis=dates[0],
                    y_axis=value_column,
                    reason="Time-based view of a numeric column",
                ))

        for name in categorical[:MAX_PER_KIND]:
            suggestions.append(ChartSuggestion(
                chart_type='bar',
                title=f"Distribution of {name}",
                x_axis=name,
                reason="Category frequencies",
            ))

        for name in numeric[:MAX_PER_KIND]:
            suggestions.append(ChartSuggestion(
                chart_type='histogram',
                title=f"Distribution of {name}",
                x_axis=name,
                reason="Numeric value distribution",
            ))

        for name, info in insights.outliers.items():
            suggestions.append(ChartSuggestion(
                chart_type='boxplot',
                title=f"Outliers in {name}",
                y_axis=name,
                reason=f"{info.count} values outside [{info.lower:g}, {info.upper:g}]",
            ))

        return suggestions

    async def recommend(self, state: dict) -> dict:
        """Attach chart suggestions to the pipeline state"""
        logger.info("Starting chart recommendation")

        try:
            suggestions = self.suggest_charts(state['dataset_info'], state.get('insights'))

            state.update({
                'chart_suggestions': suggestions,
                'current_step': 'chart_recommendation',
                'next_action': 'complete'
            })

            state['execution_log'].append(f"Suggested {len(suggestions)} charts")
            return state

        except Exception as e:
            logger.error(f"Chart recommendation failed: {str(e)}")
            state['errors'].append(f"Chart recommendation error: {str(e)}")
            state['next_action'] = 'error'
            return state

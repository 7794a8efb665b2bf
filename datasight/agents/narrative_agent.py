# datasight/agents/narrative_agent.py
"""Natural-language insights and chat on top of the analysis engine.

The generative service is optional. Any failure to reach it, or a reply that
cannot be parsed, falls back to deterministic insights built from the
profiled dataset.
"""
import json
import logging
import re
from typing import List, Optional, Protocol

import httpx
from jinja2 import Template

from datasight.config import InsightServiceConfig, get_config
from datasight.schemas import (
    AIInsight,
    ChatMessage,
    ColumnType,
    DatasetInfo,
    InsightServiceError,
    Record,
)
from datasight.utils.values import to_number

logger = logging.getLogger(__name__)


class TextInsightProvider(Protocol):
    """Anything that turns a prompt into free text"""

    async def generate(self, prompt: str) -> str:
        ...


class GeminiInsightProvider:
    """Text-insight provider backed by the Gemini generateContent endpoint"""

    def __init__(self, api_key: str, model: str = "gemini-2.5-flash",
                 base_url: str = "https://generativelanguage.googleapis.com/v1beta",
                 timeout: float = 30.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self._transport = transport

    async def generate(self, prompt: str) -> str:
        url = f"{self.base_url}/models/{self.model}:generateContent"
        body = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}
        headers = {"Content-Type": "application/json", "x-goog-api-key": self.api_key}

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(url, json=body, headers=headers)
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise InsightServiceError(f"Gemini request failed: {e}") from e

        candidates = data.get("candidates") or []
        parts = candidates[0].get("content", {}).get("parts", []) if candidates else []
        text = "".join(part.get("text", "") for part in parts).strip()
        if not text:
            raise InsightServiceError("Empty response from Gemini")
        return text


def build_insight_provider(config: Optional[InsightServiceConfig] = None) -> Optional[TextInsightProvider]:
    """Provider described by ``config``, or None when none is configured"""
    config = config or get_config().insight_service
    if config.PROVIDER == 'none' or not config.API_KEY:
        return None
    return GeminiInsightProvider(
        api_key=config.API_KEY,
        model=config.MODEL,
        base_url=config.BASE_URL,
        timeout=config.TIMEOUT,
    )


DATA_SUMMARY_TEMPLATE = Template("""
Dataset Summary:
- Total Records: {{ rows }}
- Numeric Columns: {{ numeric|length }} ({{ numeric|join(', ') }})
- Categorical Columns: {{ categorical|length }} ({{ categorical|join(', ') }})
- Date Columns: {{ dates|length }} ({{ dates|join(', ') }})
- Missing Values: {{ missing }}
- Duplicate Rows: {{ duplicates }}

Numeric Statistics:
{% for line in stats %}{{ line }}
{% endfor %}""")

INSIGHT_PROMPT_TEMPLATE = Template("""
Analyze this dataset and provide exactly {{ max_insights }} insights in valid JSON format.

Dataset: {{ file_name }}
Rows: {{ rows }}
Columns: {{ columns|length }}

Column Types:
{% for column in columns %}- {{ column.name }}: {{ column.type.value }}
{% endfor %}
Data Summary:
{{ summary }}

Sample Data (first 3 rows):
{{ sample }}

Return ONLY a valid JSON array with exactly this structure:
[
  {
    "type": "trend",
    "title": "Brief insight title",
    "description": "Detailed description of the insight",
    "confidence": 0.85,
    "actionable": true,
    "relatedColumns": ["column1"]
  }
]

Focus on: data patterns, quality issues, business opportunities, visualization recommendations.
""")

CHAT_PROMPT_TEMPLATE = Template("""
You are a data analyst assistant. Answer questions about this dataset:

Dataset: {{ file_name }}
Records: {{ rows }}
Columns: {{ columns|join(', ') }}

Recent conversation:
{% for message in history %}{{ message.role }}: {{ message.content }}
{% endfor %}
Question: {{ question }}

Provide a helpful, specific answer about the dataset. Reference actual column names and data when relevant.
""")

JSON_ARRAY_PATTERN = re.compile(r'\[\s*\{[\s\S]*\}\s*\]')


def _names(dataset_info: DatasetInfo, column_type: ColumnType) -> List[str]:
    return [column.name for column in dataset_info.columns_of_type(column_type)]


def _sample_json(records: List[Record], limit: int = 3) -> str:
    return json.dumps(records[:limit], indent=2, default=str)


def prepare_data_summary(records: List[Record], dataset_info: DatasetInfo) -> str:
    """Plain-text summary of the dataset handed to the text service"""
    stats = []
    for name in _names(dataset_info, ColumnType.NUMERIC):
        values = [to_number(row.get(name)) for row in records]
        values = [value for value in values if value is not None]
        if not values:
            stats.append(f"{name}: No valid numeric data")
            continue
        average = sum(values) / len(values)
        stats.append(f"{name}: min={min(values):.2f}, max={max(values):.2f}, avg={average:.2f}")

    quality = dataset_info.data_quality
    return DATA_SUMMARY_TEMPLATE.render(
        rows=len(records),
        numeric=_names(dataset_info, ColumnType.NUMERIC),
        categorical=_names(dataset_info, ColumnType.CATEGORICAL),
        dates=_names(dataset_info, ColumnType.DATETIME),
        missing=quality.missing_values,
        duplicates=quality.duplicate_rows,
        stats=stats,
    )


def parse_ai_response(text: str) -> List[AIInsight]:
    """Extract insights from a free-text reply.

    The first JSON array of objects wins; objects missing a type, title,
    description or numeric confidence are dropped. Unstructured text becomes a
    single summary insight.
    """
    clean_text = text.strip()
    match = JSON_ARRAY_PATTERN.search(clean_text)
    if match:
        try:
            parsed = json.loads(match.group(0))
        except ValueError:
            parsed = None
        if isinstance(parsed, list):
            insights = []
            for item in parsed:
                if not isinstance(item, dict):
                    continue
                confidence = item.get('confidence')
                if not (item.get('type') and item.get('title') and item.get('description')):
                    continue
                if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
                    continue
                insights.append(AIInsight(
                    type=str(item['type']),
                    title=str(item['title']),
                    description=str(item['description']),
                    confidence=min(max(float(confidence), 0.0), 1.0),
                    actionable=bool(item.get('actionable')),
                    related_columns=list(item.get('relatedColumns') or []),
                ))
            return insights

    if clean_text:
        description = clean_text[:300] + ('...' if len(clean_text) > 300 else '')
        return [AIInsight(
            type='summary',
            title='AI Analysis Result',
            description=description,
            confidence=0.7,
            actionable=False,
        )]

    return []


def generate_fallback_insights(records: List[Record], dataset_info: DatasetInfo,
                               max_insights: int = 5) -> List[AIInsight]:
    """Deterministic insights with fixed confidence scores"""
    columns = dataset_info.columns
    numeric = _names(dataset_info, ColumnType.NUMERIC)
    categorical = _names(dataset_info, ColumnType.CATEGORICAL)
    dates = _names(dataset_info, ColumnType.DATETIME)

    insights = [AIInsight(
        type='summary',
        title='Dataset Overview',
        description=(
            f"This dataset contains {len(records):,} records across {len(columns)} columns. "
            f"The data appears to be well-structured with {len(numeric)} numeric columns for analysis."
        ),
        confidence=0.9,
        actionable=False,
    )]

    missing = dataset_info.data_quality.missing_values
    total_cells = len(records) * len(columns)
    quality = (1 - missing / total_cells) * 100 if total_cells else 100.0
    insights.append(AIInsight(
        type='pattern',
        title='Data Quality Assessment',
        description=(
            f"Data quality is {quality:.1f}% with {missing} missing values. "
            + ('Excellent data completeness!' if missing == 0 else 'Consider data cleaning for missing values.')
        ),
        confidence=0.95,
        actionable=missing > 0,
    ))

    if numeric:
        insights.append(AIInsight(
            type='recommendation',
            title='Statistical Analysis Opportunities',
            description=(
                f"Found {len(numeric)} numeric columns ({', '.join(numeric)}). These are excellent "
                f"candidates for correlation analysis, trend detection, and statistical modeling."
            ),
            confidence=0.8,
            actionable=True,
            related_columns=numeric,
        ))

    if categorical:
        insights.append(AIInsight(
            type='recommendation',
            title='Categorical Data Insights',
            description=(
                f"Identified {len(categorical)} categorical columns for segmentation analysis. "
                f"Consider creating distribution charts and cross-tabulations to understand "
                f"category relationships."
            ),
            confidence=0.75,
            actionable=True,
            related_columns=categorical,
        ))

    if dates:
        insights.append(AIInsight(
            type='trend',
            title='Time Series Analysis Potential',
            description=(
                f"Detected {len(dates)} date/time columns. This enables time series analysis, "
                f"trend detection, and seasonal pattern identification. Consider creating "
                f"time-based visualizations."
            ),
            confidence=0.85,
            actionable=True,
            related_columns=dates,
        ))

    if len(insights) < 3:
        insights.append(AIInsight(
            type='recommendation',
            title='Data Exploration Recommendation',
            description=(
                'Start with basic exploratory data analysis: create histograms for numeric columns, '
                'bar charts for categorical data, and check for outliers and correlations.'
            ),
            confidence=0.7,
            actionable=True,
        ))

    return insights[:max_insights]


def fallback_chat_response(message: str, records: List[Record], dataset_info: DatasetInfo) -> str:
    """Keyword-matched answer used when the text service is unavailable"""
    lower = message.lower()
    columns = dataset_info.columns
    numeric = _names(dataset_info, ColumnType.NUMERIC)
    categorical = _names(dataset_info, ColumnType.CATEGORICAL)
    dates = _names(dataset_info, ColumnType.DATETIME)

    if 'column' in lower or 'field' in lower:
        listing = ', '.join(f"{c.name} ({c.type.value})" for c in columns)
        return (
            f"Your dataset has {len(columns)} columns: {listing}.\n\n"
            f"The numeric columns ({', '.join(numeric)}) can be used for statistical analysis and correlations.\n\n"
            f"The categorical columns ({', '.join(categorical)}) can be used for grouping and segmentation."
        )

    if 'pattern' in lower or 'trend' in lower:
        lines = ["To identify patterns in your data:", ""]
        if numeric:
            lines.append(f"• Analyze correlations between numeric columns: {', '.join(numeric)}")
        if dates:
            lines.append(f"• Look for time-based trends using date columns: {', '.join(dates)}")
        if len(numeric) > 1:
            lines.append("• Create scatter plots to visualize relationships between variables")
        lines += ["", "Use the dashboard tools to create visualizations and generate statistical insights."]
        return "\n".join(lines)

    if 'outlier' in lower or 'anomal' in lower:
        lines = ["To identify outliers in your data:", ""]
        if numeric:
            lines.append(f"• Check numeric columns for extreme values: {', '.join(numeric)}")
        lines += [
            "• Use box plots to visualize data distribution",
            "• Generate statistical insights to get outlier analysis",
            "",
            f"Your dataset has {len(records)} records, so outliers might significantly impact your analysis.",
        ]
        return "\n".join(lines)

    if 'visual' in lower or 'chart' in lower:
        return visualization_suggestions(dataset_info)

    if 'summary' in lower or 'overview' in lower:
        total_cells = len(records) * len(columns)
        quality = (
            f"{(1 - dataset_info.data_quality.missing_values / total_cells) * 100:.1f}%"
            if total_cells else 'Good'
        )
        return (
            f'Here\'s an overview of your dataset "{dataset_info.file_name or "Unknown"}":\n\n'
            f"Dataset Summary\n"
            f"• Records: {len(records):,}\n"
            f"• Columns: {len(columns)}\n"
            f"• Data Quality: {quality}\n\n"
            f"Column Breakdown\n"
            f"• Numeric: {len(numeric)} columns\n"
            f"• Categorical: {len(categorical)} columns\n"
            f"• Date/Time: {len(dates)} columns\n\n"
            f"Recommended Next Steps\n"
            f"• Generate statistical insights for patterns\n"
            f"• Create visualizations for key metrics\n"
            f"• Explore correlations between variables"
        )

    shown = ', '.join(c.name for c in columns[:5]) + ('...' if len(columns) > 5 else '')
    return (
        f'I understand you\'re asking about "{message}". While I don\'t have AI capabilities '
        f"enabled, I can help you explore your dataset:\n\n"
        f"Your Data:\n"
        f"• File: {dataset_info.file_name or 'Unknown'}\n"
        f"• {len(records):,} records across {len(columns)} columns\n"
        f"• Columns: {shown}\n\n"
        f"Try asking:\n"
        f'• "What columns do I have?"\n'
        f'• "Show me patterns in the data"\n'
        f'• "What visualizations should I create?"\n'
        f'• "Give me a summary of this dataset"'
    )


def visualization_suggestions(dataset_info: DatasetInfo) -> str:
    numeric = _names(dataset_info, ColumnType.NUMERIC)
    categorical = _names(dataset_info, ColumnType.CATEGORICAL)
    dates = _names(dataset_info, ColumnType.DATETIME)

    sections = ["Here are visualization recommendations for your data:"]
    if len(numeric) >= 2:
        sections.append(
            f"Correlation Analysis\n• Scatter plots: {' vs '.join(numeric[:2])}\n• Correlation matrix heatmap"
        )
    if dates and numeric:
        sections.append(f"Time Series\n• Line charts: {', '.join(numeric[:2])} over time")
    if categorical:
        sections.append(
            f"Categorical Analysis\n• Bar charts: {', '.join(categorical[:2])} distributions\n"
            f"• Pie charts for proportions"
        )
    if numeric:
        sections.append(
            f"Distribution Analysis\n• Histograms: {', '.join(numeric[:2])}\n• Box plots for outlier detection"
        )
    return "\n\n".join(sections)


class NarrativeAgent:
    """Agent producing natural-language insights and chat answers"""

    def __init__(self, provider: Optional[TextInsightProvider] = None,
                 config: Optional[InsightServiceConfig] = None):
        self.config = config or get_config().insight_service
        self.provider = provider
        self._history: List[ChatMessage] = []

    @property
    def history(self) -> List[ChatMessage]:
        return list(self._history)

    def clear_history(self):
        self._history = []

    def build_insight_prompt(self, records: List[Record], dataset_info: DatasetInfo) -> str:
        return INSIGHT_PROMPT_TEMPLATE.render(
            max_insights=self.config.MAX_INSIGHTS,
            file_name=dataset_info.file_name or 'Unknown',
            rows=len(records),
            columns=dataset_info.columns,
            summary=prepare_data_summary(records, dataset_info),
            sample=_sample_json(records),
        )

    async def generate_insights(self, records: List[Record], dataset_info: DatasetInfo) -> List[AIInsight]:
        """Insights from the text service, or the fallback set"""
        if self.provider is None:
            logger.info("Text insight service not configured, using fallback insights")
            return generate_fallback_insights(records, dataset_info, self.config.MAX_INSIGHTS)

        if not records or not dataset_info.columns:
            logger.warning("Empty dataset, using fallback insights")
            return generate_fallback_insights(records, dataset_info, self.config.MAX_INSIGHTS)

        try:
            text = await self.provider.generate(self.build_insight_prompt(records, dataset_info))
            insights = parse_ai_response(text)
        except Exception as e:
            logger.error(f"Error generating AI insights: {str(e)}")
            return generate_fallback_insights(records, dataset_info, self.config.MAX_INSIGHTS)

        if not insights:
            logger.warning("No insights parsed from AI response, using fallback")
            return generate_fallback_insights(records, dataset_info, self.config.MAX_INSIGHTS)

        return insights[:self.config.MAX_INSIGHTS]

    async def chat(self, message: str, records: List[Record], dataset_info: DatasetInfo) -> str:
        """Answer a question about the dataset"""
        answer = None
        if self.provider is not None:
            # earlier turns only; the question is rendered on its own
            prompt = CHAT_PROMPT_TEMPLATE.render(
                file_name=dataset_info.file_name or 'Unknown',
                rows=len(records),
                columns=[f"{c.name}({c.type.value})" for c in dataset_info.columns],
                history=self._history[-self.config.CHAT_HISTORY_LIMIT:],
                question=message,
            )
            try:
                answer = (await self.provider.generate(prompt)).strip() or None
            except Exception as e:
                logger.error(f"Error chatting with AI: {str(e)}")

        if answer is None:
            answer = fallback_chat_response(message, records, dataset_info)

        self._history.append(ChatMessage(role='user', content=message))
        self._history.append(ChatMessage(role='assistant', content=answer))
        return answer

    async def narrate(self, state: dict) -> dict:
        """Attach AI (or fallback) insights to the pipeline state"""
        logger.info("Starting narrative generation")

        try:
            dataset_info = state['dataset_info']
            ai_insights = await self.generate_insights(dataset_info.records, dataset_info)

            state.update({
                'ai_insights': ai_insights,
                'current_step': 'narrative',
                'next_action': 'chart_recommendation'
            })

            state['execution_log'].append(f"Generated {len(ai_insights)} narrative insights")
            return state

        except Exception as e:
            logger.error(f"Narrative generation failed: {str(e)}")
            state['errors'].append(f"Narrative generation error: {str(e)}")
            state['next_action'] = 'error'
            return state

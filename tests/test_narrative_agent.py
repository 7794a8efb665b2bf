# tests/test_narrative_agent.py
import json

import httpx
import pytest

from datasight.agents.narrative_agent import (
    GeminiInsightProvider,
    NarrativeAgent,
    build_insight_provider,
    fallback_chat_response,
    generate_fallback_insights,
    parse_ai_response,
    prepare_data_summary,
)
from datasight.schemas import DatasetInfo, InsightServiceError


@pytest.fixture
def sales_info(sales_records):
    return DatasetInfo.from_records(sales_records, file_name='sales.csv')


AI_REPLY = """Here you go:
[
  {"type": "trend", "title": "Sales grow", "description": "Sales rise daily",
   "confidence": 0.9, "actionable": true, "relatedColumns": ["sales"]},
  {"type": "pattern", "title": "Spike", "description": "Units spike once",
   "confidence": 1.7, "actionable": false},
  {"type": "pattern", "title": "No confidence", "description": "Dropped"},
  {"type": "pattern", "title": "Bool confidence", "description": "Dropped", "confidence": true}
]
Thanks!"""


class TestParseAIResponse:

    def test_json_array_inside_prose(self):
        insights = parse_ai_response(AI_REPLY)

        assert [i.title for i in insights] == ['Sales grow', 'Spike']
        assert insights[0].related_columns == ['sales']
        assert insights[0].actionable is True
        # confidence is clamped into [0, 1]
        assert insights[1].confidence == 1.0

    def test_unstructured_text_becomes_summary(self):
        insights = parse_ai_response("x" * 400)

        assert len(insights) == 1
        assert insights[0].type == 'summary'
        assert insights[0].confidence == 0.7
        assert insights[0].description == "x" * 300 + "..."

    def test_short_text_is_not_truncated(self):
        insights = parse_ai_response("Sales look healthy.")
        assert insights[0].description == "Sales look healthy."

    def test_empty_text(self):
        assert parse_ai_response("   ") == []

    def test_invalid_json_falls_back_to_summary(self):
        insights = parse_ai_response('[{"type": "trend",}]')
        assert insights[0].type == 'summary'


class TestFallbackInsights:

    def test_sales_dataset(self, sales_records, sales_info):
        insights = generate_fallback_insights(sales_records, sales_info)

        assert [i.title for i in insights] == [
            'Dataset Overview',
            'Data Quality Assessment',
            'Statistical Analysis Opportunities',
            'Categorical Data Insights',
            'Time Series Analysis Potential',
        ]
        assert [i.confidence for i in insights] == [0.9, 0.95, 0.8, 0.75, 0.85]
        assert 'Excellent data completeness!' in insights[1].description
        assert insights[2].related_columns == ['sales', 'cost', 'units']

    def test_exploration_tip_for_sparse_datasets(self):
        records = [{'name': f"person {i}"} for i in range(5)]
        info = DatasetInfo.from_records(records)

        insights = generate_fallback_insights(records, info)

        assert [i.title for i in insights] == [
            'Dataset Overview',
            'Data Quality Assessment',
            'Data Exploration Recommendation',
        ]

    def test_capped_to_max_insights(self, sales_records, sales_info):
        assert len(generate_fallback_insights(sales_records, sales_info, max_insights=2)) == 2

    def test_missing_values_flagged(self):
        records = [{'v': i if i % 2 else None} for i in range(10)]
        info = DatasetInfo.from_records(records)

        quality = generate_fallback_insights(records, info)[1]

        assert quality.actionable is True
        assert 'Data quality is 50.0% with 5 missing values' in quality.description


class TestDataSummary:

    def test_summary_lists_columns_and_stats(self, sales_records, sales_info):
        summary = prepare_data_summary(sales_records, sales_info)

        assert '- Total Records: 20' in summary
        assert 'Numeric Columns: 3 (sales, cost, units)' in summary
        assert 'Date Columns: 1 (date)' in summary
        assert 'sales: min=100.00, max=290.00, avg=195.00' in summary


class TestFallbackChat:

    @pytest.mark.parametrize('question, expected', [
        ('What columns do I have?', 'Your dataset has 5 columns'),
        ('Show me a trend', 'To identify patterns in your data:'),
        ('Any outliers?', 'To identify outliers in your data:'),
        ('Which chart should I draw?', 'Here are visualization recommendations'),
        ('Give me an overview', 'Here\'s an overview of your dataset "sales.csv"'),
        ('Hello', 'I understand you\'re asking about "Hello"'),
    ])
    def test_keyword_routing(self, sales_records, sales_info, question, expected):
        answer = fallback_chat_response(question, sales_records, sales_info)
        assert answer.startswith(expected)


class TestNarrativeAgent:

    @pytest.mark.asyncio
    async def test_without_provider_uses_fallback(self, sales_records, sales_info, offline_config):
        agent = NarrativeAgent(None, offline_config.insight_service)

        insights = await agent.generate_insights(sales_records, sales_info)

        assert insights[0].title == 'Dataset Overview'

    @pytest.mark.asyncio
    async def test_provider_reply_is_parsed(self, sales_records, sales_info, offline_config, fake_provider):
        provider = fake_provider(reply=AI_REPLY)
        agent = NarrativeAgent(provider, offline_config.insight_service)

        insights = await agent.generate_insights(sales_records, sales_info)

        assert [i.title for i in insights] == ['Sales grow', 'Spike']
        prompt = provider.prompts[0]
        assert 'Dataset: sales.csv' in prompt
        assert '- region: categorical' in prompt
        assert 'exactly 5 insights' in prompt

    @pytest.mark.asyncio
    async def test_provider_failure_falls_back(self, sales_records, sales_info, offline_config, fake_provider):
        provider = fake_provider(error=InsightServiceError("quota exceeded"))
        agent = NarrativeAgent(provider, offline_config.insight_service)

        insights = await agent.generate_insights(sales_records, sales_info)

        assert insights[0].title == 'Dataset Overview'
        assert len(insights) == 5

    @pytest.mark.asyncio
    async def test_empty_dataset_skips_provider(self, offline_config, fake_provider):
        provider = fake_provider(reply=AI_REPLY)
        agent = NarrativeAgent(provider, offline_config.insight_service)
        info = DatasetInfo.from_records([])

        insights = await agent.generate_insights([], info)

        assert provider.prompts == []
        assert insights[0].title == 'Dataset Overview'

    @pytest.mark.asyncio
    async def test_chat_keeps_history(self, sales_records, sales_info, offline_config, fake_provider):
        provider = fake_provider(reply="Sales doubled over the month.")
        agent = NarrativeAgent(provider, offline_config.insight_service)

        await agent.chat("How did sales do?", sales_records, sales_info)
        answer = await agent.chat("And cost?", sales_records, sales_info)

        assert answer == "Sales doubled over the month."
        assert [m.role for m in agent.history] == ['user', 'assistant', 'user', 'assistant']
        assert 'user: How did sales do?' in provider.prompts[1]
        assert 'Question: And cost?' in provider.prompts[1]
        assert provider.prompts[1].count('And cost?') == 1
        assert 'user: And cost?' not in provider.prompts[1]

        agent.clear_history()
        assert agent.history == []

    @pytest.mark.asyncio
    async def test_chat_falls_back_on_error(self, sales_records, sales_info, offline_config, fake_provider):
        agent = NarrativeAgent(fake_provider(error=RuntimeError("boom")), offline_config.insight_service)

        answer = await agent.chat("What columns are there?", sales_records, sales_info)

        assert answer.startswith('Your dataset has 5 columns')

    @pytest.mark.asyncio
    async def test_narrate_updates_state(self, sales_info, offline_config):
        agent = NarrativeAgent(None, offline_config.insight_service)
        state = {'dataset_info': sales_info, 'errors': [], 'execution_log': []}

        result = await agent.narrate(state)

        assert result['next_action'] == 'chart_recommendation'
        assert len(result['ai_insights']) == 5


class TestGeminiProvider:

    @pytest.mark.asyncio
    async def test_generate_posts_prompt(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen['url'] = str(request.url)
            seen['key'] = request.headers['x-goog-api-key']
            seen['body'] = json.loads(request.content)
            return httpx.Response(200, json={
                'candidates': [{'content': {'parts': [{'text': 'Hello '}, {'text': 'world'}]}}]
            })

        provider = GeminiInsightProvider(
            api_key='secret', model='test-model',
            base_url='https://example.test/v1beta/',
            transport=httpx.MockTransport(handler),
        )

        text = await provider.generate('Describe the data')

        assert text == 'Hello world'
        assert seen['url'] == 'https://example.test/v1beta/models/test-model:generateContent'
        assert seen['key'] == 'secret'
        assert seen['body']['contents'][0]['parts'][0]['text'] == 'Describe the data'

    @pytest.mark.asyncio
    async def test_http_error_raises_service_error(self):
        provider = GeminiInsightProvider(
            api_key='secret',
            transport=httpx.MockTransport(lambda request: httpx.Response(429, json={})),
        )

        with pytest.raises(InsightServiceError):
            await provider.generate('Describe the data')

    @pytest.mark.asyncio
    async def test_empty_candidates_raise_service_error(self):
        provider = GeminiInsightProvider(
            api_key='secret',
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json={'candidates': []})),
        )

        with pytest.raises(InsightServiceError):
            await provider.generate('Describe the data')

    def test_build_provider_requires_key(self, offline_config):
        assert build_insight_provider(offline_config.insight_service) is None

        offline_config.insight_service.PROVIDER = 'gemini'
        offline_config.insight_service.API_KEY = 'secret'
        provider = build_insight_provider(offline_config.insight_service)

        assert isinstance(provider, GeminiInsightProvider)
        assert provider.model == offline_config.insight_service.MODEL

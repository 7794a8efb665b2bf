# tests/test_pipeline.py
import json

import pandas as pd
import pytest

from datasight.pipeline import AnalysisPipeline, build_report
from datasight.schemas import ColumnType


class TestAnalysisPipeline:

    @pytest.fixture
    def pipeline(self, offline_config):
        return AnalysisPipeline(offline_config)

    @pytest.fixture
    def sales_csv(self, sales_records, tmp_path):
        path = tmp_path / 'sales.csv'
        pd.DataFrame(sales_records).to_csv(path, index=False)
        return path

    @pytest.mark.asyncio
    async def test_analyze_records(self, pipeline, sales_records):
        result = await pipeline.analyze_records(sales_records, file_name='sales.csv', file_size=2048)

        assert result['status'] == 'completed'
        assert result['dataset_info'].row_count == 20
        assert [r.type for r in result['insights'].recommendations] == ['correlation', 'trend', 'outliers']
        assert result['ai_insights'][0].title == 'Dataset Overview'
        assert result['chart_suggestions']
        assert result['execution_log'][-1].startswith('Pipeline completed')

    @pytest.mark.asyncio
    async def test_run_pipeline_from_file(self, pipeline, sales_csv):
        result = await pipeline.run_pipeline(str(sales_csv))

        assert result['status'] == 'completed'
        info = result['dataset_info']
        assert info.file_name == 'sales.csv'
        assert info.file_size == sales_csv.stat().st_size
        assert info.column_map()['date'].type == ColumnType.DATETIME
        assert info.data_quality.outliers == 1

    @pytest.mark.asyncio
    async def test_full_sample_changes_inference(self, pipeline, tmp_path):
        rows = [{'code': str(i)} for i in range(100)] + [{'code': 'x'} for _ in range(20)]
        path = tmp_path / 'codes.csv'
        pd.DataFrame(rows).to_csv(path, index=False)

        sampled = await pipeline.run_pipeline(str(path))
        full = await pipeline.run_pipeline(str(path), full_sample=True)

        assert sampled['dataset_info'].columns[0].type == ColumnType.NUMERIC
        assert full['dataset_info'].columns[0].type == ColumnType.TEXT

    @pytest.mark.asyncio
    async def test_missing_file_fails(self, pipeline):
        result = await pipeline.run_pipeline('does_not_exist.csv')

        assert result['status'] == 'failed'
        assert 'Data ingestion error' in result['error']

    @pytest.mark.asyncio
    async def test_empty_records_stop_after_profiling(self, pipeline):
        result = await pipeline.analyze_records([], file_name='empty.csv')

        assert result['status'] == 'completed'
        assert result['dataset_info'].row_count == 0
        assert result.get('insights') is None

        report = build_report(result)
        assert report['insights']['recommendations'] == []
        assert report['aiInsights'] == []

    @pytest.mark.asyncio
    async def test_analyze_records_ignores_empty_rows(self, pipeline):
        records = [{'a': i, 'b': f'item-{i}'} for i in range(6)]
        records += [{'a': '', 'b': None}, {'a': '', 'b': None}]

        result = await pipeline.analyze_records(records)

        info = result['dataset_info']
        assert result['status'] == 'completed'
        assert info.row_count == 6
        assert info.data_quality.duplicate_rows == 0
        assert info.data_quality.missing_values == 0

    @pytest.mark.asyncio
    async def test_provider_insights_flow_into_report(self, offline_config, sales_records, fake_provider):
        reply = '[{"type": "trend", "title": "Up", "description": "Sales rise", "confidence": 0.8}]'
        pipeline = AnalysisPipeline(offline_config, provider=fake_provider(reply=reply))

        report = build_report(await pipeline.analyze_records(sales_records))

        assert [i['title'] for i in report['aiInsights']] == ['Up']


class TestBuildReport:

    @pytest.mark.asyncio
    async def test_report_is_json_serializable(self, offline_config, sales_records):
        result = await AnalysisPipeline(offline_config).analyze_records(sales_records, file_name='sales.csv')

        report = build_report(result)

        assert set(report) == {
            'status', 'datasetInfo', 'insights', 'profileNotes',
            'aiInsights', 'chartSuggestions', 'timestamp'
        }
        assert report['datasetInfo']['fileName'] == 'sales.csv'
        assert 'records' not in report['datasetInfo']
        assert report['insights']['outliers']['units']['count'] == 1
        json.dumps(report)

# tests/conftest.py
import pytest

from datasight.config import Config


class FakeProvider:
    """Text-insight provider returning canned replies"""

    def __init__(self, reply="", error=None):
        self.reply = reply
        self.error = error
        self.prompts = []

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def offline_config():
    """Configuration with the generative service switched off"""
    config = Config()
    config.insight_service.PROVIDER = 'none'
    config.insight_service.API_KEY = ''
    return config


@pytest.fixture
def sales_records():
    """Twenty daily rows: linear sales/cost, a constant units column with one spike"""
    records = []
    for i in range(20):
        records.append({
            'date': f"2023-01-{i + 1:02d}",
            'sales': 100 + 10 * i,
            'cost': 50 + 5 * i,
            'units': 500 if i == 10 else 5,
            'region': ['North', 'South'][i % 2],
        })
    return records


@pytest.fixture
def fake_provider():
    """Factory for canned text-insight providers"""
    return FakeProvider

# datasight/agents/profiling_agent.py
import asyncio
import json
import logging
import math
from typing import Dict, List, Optional

import numpy as np

from datasight.config import AnalysisConfig, get_config
from datasight.schemas import Column, ColumnType, DataQuality, DatasetInfo, Record
from datasight.utils.logging_config import log_execution_time
from datasight.utils.values import (
    distinct_key,
    drop_empty_records,
    is_boolean_like,
    is_missing,
    to_number,
    to_timestamp,
)

logger = logging.getLogger(__name__)


def infer_columns(records: List[Record], sample_size: Optional[int] = 100,
                  config: Optional[AnalysisConfig] = None) -> Dict[str, Column]:
    """Classify every column of ``records`` and attach its statistics.

    Column names come from the first record. Inference and statistics look at
    the first ``sample_size`` records only; pass ``sample_size=None`` to use
    the whole dataset.

    Type precedence: numeric, boolean, datetime, categorical, text.
    """
    if not records:
        return {}

    config = config or get_config().analysis
    sample = records if sample_size is None else records[:sample_size]
    columns: Dict[str, Column] = {}

    for name in records[0].keys():
        values = [row.get(name) for row in sample]
        present = [value for value in values if not is_missing(value)]

        unique_values = len({distinct_key(value) for value in present})
        missing_count = len(sample) - len(present)

        column_type = _classify(present, unique_values, len(sample), config)
        column = Column(
            name=name,
            type=column_type,
            unique_values=unique_values,
            missing_values=missing_count,
            missing_percentage=missing_count / len(sample) * 100,
        )

        if column_type == ColumnType.NUMERIC and present:
            stats = compute_numeric_statistics([to_number(value) for value in present])
            column.min = stats['min']
            column.max = stats['max']
            column.mean = stats['mean']
            column.median = stats['median']
            column.std_dev = stats['std_dev']
            column.quartiles = stats['quartiles']

        columns[name] = column

    return columns


def _classify(present: list, unique_values: int, sample_len: int,
              config: AnalysisConfig) -> ColumnType:
    if not present:
        return ColumnType.TEXT
    if all(to_number(value) is not None for value in present):
        return ColumnType.NUMERIC
    if all(is_boolean_like(value) for value in present):
        return ColumnType.BOOLEAN
    if all(to_timestamp(value) is not None for value in present):
        return ColumnType.DATETIME
    if unique_values < sample_len * config.CATEGORICAL_RATIO:
        return ColumnType.CATEGORICAL
    return ColumnType.TEXT


def compute_numeric_statistics(values: List[float]) -> dict:
    """Summary statistics for a non-empty list of numbers.

    Standard deviation is the population one (divide by N). Quartiles are
    nearest-rank: the sorted value at floor(N * p), no interpolation.
    """
    array = np.sort(np.asarray(values, dtype=float))
    count = len(array)
    middle = count // 2

    if count % 2 == 0:
        median = (array[middle - 1] + array[middle]) / 2
    else:
        median = array[middle]

    return {
        'min': float(array[0]),
        'max': float(array[-1]),
        'mean': float(array.mean()),
        'median': float(median),
        'std_dev': float(array.std(ddof=0)),
        'quartiles': (
            float(array[math.floor(count * 0.25)]),
            float(array[math.floor(count * 0.5)]),
            float(array[math.floor(count * 0.75)]),
        ),
    }


def count_missing_values(records: List[Record]) -> int:
    return sum(1 for row in records for value in row.values() if is_missing(value))


def count_duplicate_rows(records: List[Record]) -> int:
    """Rows beyond the first occurrence of each serialized row"""
    serialized = {json.dumps(row, sort_keys=True, default=str) for row in records}
    return len(records) - len(serialized)


@log_execution_time
def compute_data_quality(records: List[Record],
                         config: Optional[AnalysisConfig] = None) -> DataQuality:
    """Missing cells, duplicate rows and outliers over the full dataset.

    Outliers are counted with a second type-inference pass over every record,
    independent of the sampled column metadata.
    """
    if not records:
        return DataQuality()

    from datasight.agents.insight_agent import find_outliers

    config = config or get_config().analysis
    full_columns = infer_columns(records, sample_size=None, config=config)
    outliers = find_outliers(records, full_columns, config=config)

    return DataQuality(
        missing_values=count_missing_values(records),
        duplicate_rows=count_duplicate_rows(records),
        outliers=sum(info.count for info in outliers.values()),
    )


class ProfilingAgent:
    """Agent responsible for column profiling and data quality scoring"""

    def __init__(self, config: Optional[AnalysisConfig] = None):
        self.config = config or get_config().analysis

    async def profile(self, state: dict) -> dict:
        """Build the DatasetInfo aggregate for the loaded records"""
        logger.info("Starting dataset profiling")

        try:
            records = drop_empty_records(state['records'])
            sample_size = state.get('sample_size', self.config.SAMPLE_SIZE)

            if len(records) > self.config.LARGE_DATASET_ROWS:
                logger.warning(
                    f"Large dataset ({len(records)} rows); correlation analysis may be slow"
                )

            # CPU-bound passes run in a worker thread to keep the event loop free
            columns = await asyncio.to_thread(
                infer_columns, records, sample_size=sample_size, config=self.config
            )
            data_quality = await asyncio.to_thread(compute_data_quality, records, config=self.config)
            dataset_info = DatasetInfo(
                file_name=state.get('file_name', ''),
                file_size=state.get('file_size', 0),
                row_count=len(records),
                column_count=len(columns),
                columns=list(columns.values()),
                records=records,
                data_quality=data_quality,
            )

            state.update({
                'records': records,
                'dataset_info': dataset_info,
                'current_step': 'data_profiling',
                'next_action': 'insight_analysis' if records else 'complete'
            })

            state['execution_log'].append(
                f"Profiled {dataset_info.column_count} columns: "
                f"{self._describe_types(dataset_info.columns)}"
            )

            return state

        except Exception as e:
            logger.error(f"Dataset profiling failed: {str(e)}")
            state['errors'].append(f"Dataset profiling error: {str(e)}")
            state['next_action'] = 'error'
            return state

    @staticmethod
    def _describe_types(columns: List[Column]) -> str:
        counts: Dict[str, int] = {}
        for column in columns:
            counts[column.type.value] = counts.get(column.type.value, 0) + 1
        if not counts:
            return "no columns"
        return ", ".join(f"{count} {kind}" for kind, count in counts.items())

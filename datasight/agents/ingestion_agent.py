# datasight/agents/ingestion_agent.py
import asyncio
import pandas as pd
from typing import List, Optional
import logging
from pathlib import Path

from datasight.config import IngestionConfig, get_config
from datasight.schemas import FileTooLargeError, Record, UnsupportedFormatError
from datasight.utils.values import drop_empty_records, to_python

logger = logging.getLogger(__name__)

def frame_to_records(data: pd.DataFrame) -> List[Record]:
    """Convert a DataFrame into plain row dicts (NaN -> None, numpy -> Python)"""
    columns = [str(col) for col in data.columns]
    records = []
    for row in data.itertuples(index=False, name=None):
        records.append({col: to_python(value) for col, value in zip(columns, row)})
    return records

class DataIngestionAgent:
    """Agent responsible for turning an uploaded file into records"""

    def __init__(self, config: Optional[IngestionConfig] = None):
        self.config = config or get_config().ingestion
        self.supported_formats = self.config.SUPPORTED_FILE_FORMATS
        self.max_file_size_mb = self.config.MAX_FILE_SIZE_MB

    async def process(self, state: dict) -> dict:
        """Main processing function for data ingestion"""
        logger.info(f"Starting data ingestion for: {state['data_path']}")

        try:
            path = Path(state['data_path'])
            records = await asyncio.to_thread(self.load_records, path)

            state.update({
                'records': records,
                'file_name': path.name,
                'file_size': path.stat().st_size,
                'current_step': 'data_ingestion',
                'next_action': 'data_profiling'
            })

            state['execution_log'].append(
                f"Data loaded successfully: {len(records)} rows from {path.name}"
            )

            return state

        except Exception as e:
            logger.error(f"Data ingestion failed: {str(e)}")
            state['errors'].append(f"Data ingestion error: {str(e)}")
            state['next_action'] = 'error'
            return state

    def load_records(self, data_path) -> List[Record]:
        """Parse a CSV/Excel/JSON file into records without empty rows"""
        data = self._load_data(Path(data_path))
        records = drop_empty_records(frame_to_records(data))
        logger.info(f"Parsed {len(records)} non-empty rows from {Path(data_path).name}")
        return records

    def _load_data(self, path: Path) -> pd.DataFrame:
        """Load data from the supported file formats"""

        # Validate file exists
        if not path.exists():
            raise FileNotFoundError(f"Data file not found: {path}")

        extension = path.suffix.lower()
        if extension not in self.supported_formats:
            raise UnsupportedFormatError(
                f"Unsupported file format: {extension}. Please upload a CSV or Excel file."
            )

        # Check file size
        file_size_mb = path.stat().st_size / (1024 * 1024)
        if file_size_mb > self.max_file_size_mb:
            raise FileTooLargeError(f"File too large: {file_size_mb:.1f}MB > {self.max_file_size_mb}MB")

        if extension == '.csv':
            return self._read_csv(path)

        elif extension in ('.xlsx', '.xls'):
            # only blank cells are missing; "NA" or "None" in a cell is data
            return pd.read_excel(path, sheet_name=0, keep_default_na=False, na_values=[''])

        elif extension == '.json':
            return pd.read_json(path, orient='records')

        raise UnsupportedFormatError(f"Unsupported file format: {extension}")

    def _read_csv(self, path: Path) -> pd.DataFrame:
        """Try the configured encodings and separators until columns split"""
        fallback = None
        for encoding in self.config.CSV_ENCODINGS:
            for sep in self.config.CSV_SEPARATORS:
                try:
                    data = pd.read_csv(
                        path, encoding=encoding, sep=sep, keep_default_na=False, na_values=['']
                    )
                except pd.errors.EmptyDataError:
                    return pd.DataFrame()
                except (UnicodeDecodeError, pd.errors.ParserError):
                    continue
                if data.shape[1] > 1:  # Successfully parsed multiple columns
                    return data
                if fallback is None:
                    fallback = data
        if fallback is not None:
            # Single-column file
            return fallback
        raise ValueError("Could not parse CSV file with any encoding/separator combination")

from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from typing import Dict, Any, Optional, List
import asyncio
import logging
import tempfile
import uvicorn
from datetime import datetime
from pathlib import Path

from datasight.config import get_config
from datasight.pipeline import AnalysisPipeline, build_report
from datasight.agents.ingestion_agent import DataIngestionAgent
from datasight.utils.values import drop_empty_records
from datasight.agents.narrative_agent import NarrativeAgent, build_insight_provider
from datasight.schemas import DatasetInfo, DatasightError, FileTooLargeError

logger = logging.getLogger(__name__)

config = get_config()

app = FastAPI(
    title="Datasight API",
    description="Dataset profiling, insights and chart recommendations",
    version="1.0.0",
    docs_url="/docs" if config.api.ENABLE_DOCS else None
)

if config.api.ENABLE_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

_pipeline: Optional[AnalysisPipeline] = None

def get_pipeline() -> AnalysisPipeline:
    """Lazily build the shared analysis pipeline"""
    global _pipeline
    if _pipeline is None:
        _pipeline = AnalysisPipeline(config)
    return _pipeline

class RecordsRequest(BaseModel):
    records: List[Dict[str, Any]]
    file_name: str = "records"
    file_size: int = 0

class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1)
    records: List[Dict[str, Any]]
    file_name: str = "records"

class ChatResponse(BaseModel):
    answer: str
    timestamp: str

class AnalysisResponse(BaseModel):
    status: str
    datasetInfo: Optional[Dict[str, Any]] = None
    insights: Dict[str, Any]
    profileNotes: List[Dict[str, Any]]
    aiInsights: List[Dict[str, Any]]
    chartSuggestions: List[Dict[str, Any]]
    timestamp: str

def _report_or_error(result: Dict[str, Any]) -> AnalysisResponse:
    if result.get("status") == "failed":
        raise HTTPException(status_code=400, detail=result.get("error", "Analysis failed"))
    return AnalysisResponse(**build_report(result))

@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "insight_service": config.insight_service_enabled,
        "timestamp": datetime.now().isoformat()
    }

@app.post("/analyze", response_model=AnalysisResponse)
async def analyze_file(file: UploadFile = File(...)):
    """Analyze an uploaded CSV or Excel file"""
    suffix = Path(file.filename or "").suffix.lower()
    if suffix not in config.ingestion.SUPPORTED_FILE_FORMATS:
        raise HTTPException(status_code=400, detail=f"Unsupported file format: {suffix or 'unknown'}")

    content = await file.read()
    if len(content) > config.api.MAX_REQUEST_SIZE:
        raise HTTPException(status_code=413, detail="File too large")

    with tempfile.TemporaryDirectory() as tmp_dir:
        path = Path(tmp_dir) / Path(file.filename).name
        path.write_bytes(content)

        try:
            records = await asyncio.to_thread(DataIngestionAgent(config.ingestion).load_records, path)
        except FileTooLargeError as e:
            raise HTTPException(status_code=413, detail=str(e))
        except (DatasightError, ValueError) as e:
            raise HTTPException(status_code=400, detail=str(e))

    result = await get_pipeline().analyze_records(records, file_name=file.filename, file_size=len(content))
    return _report_or_error(result)

@app.post("/analyze/records", response_model=AnalysisResponse)
async def analyze_records(request: RecordsRequest):
    """Analyze records posted as JSON"""
    records = drop_empty_records(request.records)
    result = await get_pipeline().analyze_records(
        records, file_name=request.file_name, file_size=request.file_size
    )
    return _report_or_error(result)

@app.post("/chat", response_model=ChatResponse)
async def chat(request: ChatRequest):
    """Answer a question about the posted records"""
    try:
        records = drop_empty_records(request.records)
        dataset_info = await asyncio.to_thread(
            DatasetInfo.from_records,
            records, file_name=request.file_name, sample_size=config.analysis.SAMPLE_SIZE
        )
        agent = NarrativeAgent(build_insight_provider(config.insight_service), config.insight_service)
        answer = await agent.chat(request.message, records, dataset_info)
        return ChatResponse(answer=answer, timestamp=datetime.now().isoformat())
    except Exception as e:
        logger.error(f"Chat failed: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))

@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Datasight API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health"
    }

if __name__ == "__main__":
    uvicorn.run(
        "datasight.api.main:app",
        host=config.api.DEFAULT_HOST,
        port=config.api.DEFAULT_PORT,
        log_level=config.logging_level.lower()
    )

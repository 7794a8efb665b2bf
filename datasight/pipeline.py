# datasight/pipeline.py
from langgraph.graph import StateGraph, END
from typing import TypedDict, Optional, List, Dict, Any
from datetime import datetime
import logging

from datasight.config import Config, get_config
from datasight.schemas import AIInsight, ChartSuggestion, DatasetInfo, Insights, Record, Recommendation
from datasight.agents.narrative_agent import TextInsightProvider, build_insight_provider
from datasight.utils.logging_config import PipelineLogger, log_async_execution_time

logger = logging.getLogger(__name__)

class PipelineState(TypedDict, total=False):
    """State shared across all agents"""
    # Input
    data_path: str
    records: List[Record]
    file_name: str
    file_size: int
    sample_size: Optional[int]

    # Analysis
    dataset_info: Optional[DatasetInfo]
    insights: Optional[Insights]
    profile_notes: List[Recommendation]
    ai_insights: List[AIInsight]
    chart_suggestions: List[ChartSuggestion]

    # Workflow
    current_step: str
    next_action: str
    errors: List[str]
    execution_log: List[str]

class AnalysisPipeline:
    def __init__(self, config: Optional[Config] = None,
                 provider: Optional[TextInsightProvider] = None):
        """Initialize the dataset analysis pipeline

        Args:
            config: Configuration; the global one when omitted
            provider: Text-insight provider; built from config when omitted
        """
        self.config = config or get_config()
        self.provider = provider if provider is not None else build_insight_provider(self.config.insight_service)

        self.file_graph = self._build_graph(from_file=True).compile()
        self.records_graph = self._build_graph(from_file=False).compile()

        logger.info("Analysis pipeline initialized successfully")

    def _build_graph(self, from_file: bool) -> StateGraph:
        """Build the LangGraph workflow"""
        from datasight.agents.ingestion_agent import DataIngestionAgent
        from datasight.agents.profiling_agent import ProfilingAgent
        from datasight.agents.insight_agent import InsightAgent
        from datasight.agents.narrative_agent import NarrativeAgent
        from datasight.agents.chart_agent import ChartAgent

        profiling_agent = ProfilingAgent(self.config.analysis)
        insight_agent = InsightAgent(self.config.analysis)
        narrative_agent = NarrativeAgent(self.provider, self.config.insight_service)
        chart_agent = ChartAgent()

        workflow = StateGraph(PipelineState)

        workflow.add_node("data_profiling", profiling_agent.profile)
        workflow.add_node("insight_analysis", insight_agent.analyze)
        workflow.add_node("narrative", narrative_agent.narrate)
        workflow.add_node("chart_recommendation", chart_agent.recommend)

        if from_file:
            ingestion_agent = DataIngestionAgent(self.config.ingestion)
            workflow.add_node("data_ingestion", ingestion_agent.process)
            workflow.set_entry_point("data_ingestion")
            workflow.add_conditional_edges(
                "data_ingestion",
                self._route_on_error,
                {"continue": "data_profiling", "error": END}
            )
        else:
            workflow.set_entry_point("data_profiling")

        # Empty datasets stop after profiling
        workflow.add_conditional_edges(
            "data_profiling",
            self._route_after_profiling,
            {"analyze": "insight_analysis", "complete": END, "error": END}
        )
        workflow.add_conditional_edges(
            "insight_analysis",
            self._route_on_error,
            {"continue": "narrative", "error": END}
        )
        workflow.add_edge("narrative", "chart_recommendation")
        workflow.add_edge("chart_recommendation", END)

        return workflow

    def _route_on_error(self, state: PipelineState) -> str:
        return "error" if state.get("next_action") == "error" else "continue"

    def _route_after_profiling(self, state: PipelineState) -> str:
        """Route based on profiling results"""
        if state.get("next_action") == "error":
            return "error"
        dataset_info = state.get("dataset_info")
        if dataset_info is None or dataset_info.row_count == 0:
            return "complete"
        return "analyze"

    def _initial_state(self, **inputs) -> PipelineState:
        state = PipelineState(
            sample_size=self.config.analysis.SAMPLE_SIZE,
            current_step="initialization",
            errors=[],
            execution_log=[f"Pipeline started at {datetime.now()}"]
        )
        state.update(inputs)
        return state

    @log_async_execution_time
    async def run_pipeline(self, data_path: str, sample_size: Optional[int] = None,
                           full_sample: bool = False) -> Dict[str, Any]:
        """Load a file and run the complete analysis"""
        initial_state = self._initial_state(data_path=data_path, next_action="data_ingestion")
        if full_sample:
            initial_state['sample_size'] = None
        elif sample_size is not None:
            initial_state['sample_size'] = sample_size

        logger.info(f"Starting analysis of file: {data_path}")
        return await self._invoke(self.file_graph, initial_state, data_path)

    @log_async_execution_time
    async def analyze_records(self, records: List[Record], file_name: str = "",
                              file_size: int = 0) -> Dict[str, Any]:
        """Run the analysis on records that are already in memory"""
        initial_state = self._initial_state(
            records=records,
            file_name=file_name,
            file_size=file_size,
            next_action="data_profiling"
        )

        logger.info(f"Starting analysis of {len(records)} records ({file_name or 'in-memory'})")
        return await self._invoke(self.records_graph, initial_state, file_name or "records")

    async def _invoke(self, graph, initial_state: PipelineState, label: str) -> Dict[str, Any]:
        try:
            with PipelineLogger(f"analysis of {label}") as step:
                final_state = await graph.ainvoke(initial_state)

                final_state["execution_log"].append(
                    f"Pipeline completed at {datetime.now()}"
                )

                if final_state.get("errors"):
                    logger.error(f"Analysis failed for {label}: {final_state['errors'][-1]}")
                    return {
                        "status": "failed",
                        "error": final_state["errors"][-1],
                        "execution_log": final_state["execution_log"]
                    }

                dataset_info = final_state.get("dataset_info")
                if dataset_info is not None:
                    step.log_metric("rows", dataset_info.row_count)
                    step.log_metric("columns", dataset_info.column_count)

                final_state["status"] = "completed"
                logger.info(f"Analysis completed successfully for {label}")
                return final_state

        except Exception as e:
            logger.error(f"Pipeline failed for {label}: {str(e)}")
            return {
                "status": "failed",
                "error": str(e)
            }

def build_report(result: Dict[str, Any]) -> Dict[str, Any]:
    """JSON-ready view of a completed pipeline result"""
    dataset_info = result.get("dataset_info")
    insights = result.get("insights") or Insights()
    return {
        "status": result.get("status"),
        "datasetInfo": dataset_info.to_dict() if dataset_info is not None else None,
        "insights": insights.to_dict(),
        "profileNotes": [note.to_dict() for note in result.get("profile_notes") or []],
        "aiInsights": [insight.to_dict() for insight in result.get("ai_insights") or []],
        "chartSuggestions": [chart.to_dict() for chart in result.get("chart_suggestions") or []],
        "timestamp": datetime.now().isoformat(),
    }

import asyncio
import argparse
import json
import sys
from pathlib import Path
from datasight.pipeline import AnalysisPipeline, build_report
from datasight.utils.logging_config import setup_logging
from datasight.config import get_config

def print_summary(report: dict):
    """Print a short human-readable summary of a report"""
    info = report["datasetInfo"]
    quality = info["dataQuality"]
    print(f"📊 {info['fileName']}: {info['rowCount']} rows, {info['columnCount']} columns")
    for column in info["columns"]:
        print(f"   - {column['name']}: {column['type']} ({column['missingPercentage']:.1f}% missing)")
    print(f"Data quality: {quality['missingValues']} missing cells, "
          f"{quality['duplicateRows']} duplicate rows, {quality['outliers']} outliers")

    insights = report["insights"]
    for correlation in insights["correlations"]:
        first, second = correlation["columns"]
        print(f"🔗 {first} ~ {second}: r={correlation['correlation']:.2f} "
              f"({correlation['strength']}, {correlation['direction']})")
    for trend in insights["timeTrends"]:
        print(f"📈 {trend['valueColumn']} by {trend['dateColumn']}: "
              f"{trend['trendDirection']} ({trend['percentChange']}%)")
    for recommendation in insights["recommendations"] + report["profileNotes"]:
        print(f"💡 {recommendation['message']}")

def main():
    """Main entry point for datasight"""
    parser = argparse.ArgumentParser(description="Dataset profiling and insight engine")
    parser.add_argument("--data-path", required=True, help="Path to the CSV/Excel dataset")
    parser.add_argument("--config", help="Path to configuration file")
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    parser.add_argument("--output", help="Write the JSON report to this file")
    parser.add_argument("--log-file", action="store_true",
                        help="Also write logs to the configured logs directory")
    parser.add_argument("--full-sample", action="store_true",
                        help="Infer column types over every row instead of the first rows")

    args = parser.parse_args()

    # Load configuration
    config = get_config(args.config)

    # Setup logging
    setup_logging(
        log_level=args.log_level,
        log_dir=str(config.paths.LOGS_DIR),
        log_to_file=args.log_file
    )

    # Validate data path exists
    if not Path(args.data_path).exists():
        print(f"Error: Data file not found at {args.data_path}")
        sys.exit(1)

    async def run_pipeline():
        """Run the analysis pipeline"""
        pipeline = AnalysisPipeline(config)
        return await pipeline.run_pipeline(args.data_path, full_sample=args.full_sample)

    result = asyncio.run(run_pipeline())

    if result.get('status') == 'failed':
        print(f"❌ Analysis failed: {result.get('error')}")
        sys.exit(1)

    report = build_report(result)
    print_summary(report)

    if args.output:
        with open(args.output, 'w') as f:
            json.dump(report, f, indent=2, default=str)
        print(f"Report written to {args.output}")

if __name__ == "__main__":
    main()

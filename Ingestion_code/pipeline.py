# pipeline.py
import csv
import logging
import mimetypes
import sys
from pathlib import Path

from openai import OpenAI

from config import Settings, load_settings
from db import StartupRepository, connect
from feature_gate import FeatureGate
from kpi import fetch_kpi_data, metric_insight
from llm_extractor import StartupAnalyzer
from processor import UploadPipeline
from schema import RawFile, UploadOutcome, UploadStatus
from storage import SupabaseStorage, create_supabase

logger = logging.getLogger(__name__)

INPUT_DIR = Path("input_files")
OUTPUT_DIR = Path("output")
OUTPUT_FILE = OUTPUT_DIR / "output.csv"

OUTPUT_FIELDS = [
    "file_name",
    "status",
    "company_id",
    "file_url",
    "message",
]


def build_pipeline(settings: Settings):
    """Construct every external client once and wire them into the pipeline."""
    from ocr import OcrEngine

    conn = connect(settings.database_url)
    supabase = create_supabase(settings.supabase_url, settings.supabase_service_key)

    analyzer = None
    if settings.openai_api_key:
        analyzer = StartupAnalyzer(
            OpenAI(api_key=settings.openai_api_key),
            model=settings.openai_model,
            temperature=settings.openai_temperature,
            max_tokens=settings.openai_max_tokens,
            max_attempts=settings.openai_max_attempts,
        )
    else:
        logger.warning("OPENAI_API_KEY not set; every upload will use the fallback analysis.")

    pipeline = UploadPipeline(
        storage=SupabaseStorage(supabase, settings.storage_bucket),
        repository=StartupRepository(conn),
        analyzer=analyzer,
        ocr=OcrEngine(settings.ocr_languages, gpu=settings.ocr_gpu),
        feature_gate=FeatureGate(supabase),
        feature_name=settings.upload_feature_name,
        on_status=lambda status, outcome: print(f"  [{status.value}] {outcome.file_name}"),
    )
    return pipeline, conn


def read_raw_file(path: Path) -> RawFile:
    content_type, _ = mimetypes.guess_type(path.name)
    return RawFile(
        name=path.name,
        content_type=content_type or "",
        data=path.read_bytes(),
        last_modified=path.stat().st_mtime,
    )


def load_processed_files(output_file: Path) -> set[str]:
    """Load already-processed file names for resume support."""
    if not output_file.exists():
        return set()
    with open(output_file, newline="", encoding="utf-8") as f:
        return {
            row["file_name"].strip()
            for row in csv.DictReader(f)
            if (row.get("file_name") or "").strip()
        }


def print_kpis(conn, company_id: str) -> None:
    data = fetch_kpi_data(conn, company_id)
    if not data.metrics:
        print("KPIs       : none stored")
        return
    for kpi in data.metrics:
        print(f"  {kpi.name}: {kpi.value:g} {kpi.unit} - {metric_insight(kpi.name, kpi.value)}")


def outcome_row(outcome: UploadOutcome) -> dict:
    return {
        "file_name": outcome.file_name,
        "status": outcome.status.value,
        "company_id": outcome.db_result.company_id if outcome.db_result else "",
        "file_url": outcome.file_url or "",
        "message": outcome.message,
    }


def run_pipeline(input_dir: Path = INPUT_DIR) -> None:
    if not input_dir.exists():
        raise FileNotFoundError(f"{input_dir} not found")

    OUTPUT_DIR.mkdir(exist_ok=True)

    # 1. Collect input files
    input_files = sorted(p for p in input_dir.iterdir() if p.is_file())
    if not input_files:
        print("No files found in input directory")
        return

    # 2. Resume logic
    processed = load_processed_files(OUTPUT_FILE)
    to_process = [p for p in input_files if p.name not in processed]

    print(f"Files in input dir : {len(input_files)}")
    print(f"Already processed  : {len(processed)}")
    print(f"Files to process   : {len(to_process)}")

    if not to_process:
        print("Nothing to process.")
        return

    settings = load_settings()
    pipeline, conn = build_pipeline(settings)

    # 3. Run each file through the upload pipeline
    file_exists = OUTPUT_FILE.exists()
    try:
        with open(OUTPUT_FILE, "a", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=OUTPUT_FIELDS)
            if not file_exists:
                writer.writeheader()

            for path in to_process:
                print(f"\nProcessing : {path.name}")
                outcome = pipeline.run(read_raw_file(path), settings.user_id)
                writer.writerow(outcome_row(outcome))

                print(f"Status     : {outcome.status.value}")
                print(f"Message    : {outcome.message}")
                for notice in outcome.notices:
                    print(f"Notice     : {notice}")

                company_id = outcome.db_result.company_id if outcome.db_result else None
                if outcome.status is UploadStatus.SUCCESS and company_id:
                    print_kpis(conn, company_id)
    finally:
        conn.close()

    print(f"\nDone. Output written to {OUTPUT_FILE}")


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    run_pipeline(Path(sys.argv[1]) if len(sys.argv) > 1 else INPUT_DIR)

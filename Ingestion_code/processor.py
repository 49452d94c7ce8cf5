# processor.py
import logging
from typing import Any, Callable, Optional

from pydantic import BaseModel

from db import queue_payload
from errors import (
    AnalysisRequestFailed,
    ContentExtractionError,
    FeatureLimitExceeded,
    QueueRecordError,
    StorageError,
)
from extractor import extract_content, is_allowed_file
from fallback import build_fallback_analysis
from schema import (
    ExtractedContent,
    IngestionQueueRecord,
    PersistenceResult,
    RawFile,
    StartupAnalysis,
    UploadOutcome,
    UploadStatus,
    is_empty_analysis,
)
from storage import bucket_setup_message, is_missing_bucket_error
from utils.file_names import random_object_name

logger = logging.getLogger(__name__)

GENERIC_ERROR = "An unknown error occurred during upload."
UNSUPPORTED_MESSAGE = "Unsupported file type. Please upload a CSV, TXT, or image file."
AI_UNAVAILABLE_NOTICE = (
    "AI analysis was unavailable, so a basic analysis was generated from the file content."
)
MAX_REPORTED_DB_ERRORS = 3


class StageResult(BaseModel):
    """Outcome of one fatal pipeline stage."""
    ok: bool
    value: Any = None
    error: Optional[str] = None
    status: UploadStatus = UploadStatus.ERROR


class UploadPipeline:
    """
    Runs one uploaded file through
    extract -> analyze (or fallback) -> persist -> upload -> record.

    Extraction, upload and record are fatal stages and stop the run.
    Analysis and persistence failures are absorbed and reported as notices.
    """

    def __init__(
        self,
        storage,
        repository,
        analyzer=None,
        ocr=None,
        feature_gate=None,
        feature_name: str = "validations",
        on_status: Optional[Callable[[UploadStatus, UploadOutcome], None]] = None,
    ):
        self.storage = storage
        self.repository = repository
        self.analyzer = analyzer
        self.ocr = ocr
        self.feature_gate = feature_gate
        self.feature_name = feature_name
        self.on_status = on_status

    # --------------------------------------------------
    # state handling
    # --------------------------------------------------
    def _set(self, outcome: UploadOutcome, status: UploadStatus) -> None:
        outcome.status = status
        outcome.history.append(status)
        logger.info("Upload %s -> %s", outcome.file_name, status.value)
        if self.on_status:
            self.on_status(status, outcome)

    def _finish(self, outcome: UploadOutcome, status: UploadStatus, message: str) -> UploadOutcome:
        outcome.message = message
        self._set(outcome, status)
        return outcome

    # --------------------------------------------------
    # stages
    # --------------------------------------------------
    def _extract(self, raw: RawFile) -> StageResult:
        try:
            return StageResult(ok=True, value=extract_content(raw, self.ocr))
        except ContentExtractionError as e:
            logger.error("Extraction failed for %s: %s", raw.name, e)
            return StageResult(ok=False, error=f"Failed to process file content: {e}")

    def _analyze(self, extracted: ExtractedContent) -> tuple[StartupAnalysis, Optional[str]]:
        """Never fails: returns (analysis, ai_error) with ai_error set when the fallback was used."""
        if self.analyzer is None:
            ai_error = "AI analysis is not configured"
        else:
            try:
                analysis = self.analyzer.analyze(extracted)
            except AnalysisRequestFailed as e:
                ai_error = str(e)
            except Exception as e:
                logger.error("Analysis of %s content crashed: %s", extracted.type.value, e, exc_info=True)
                ai_error = f"AI analysis failed: {e}"
            else:
                if not is_empty_analysis(analysis):
                    return analysis, None
                ai_error = "AI analysis returned no usable data"

        logger.warning("Using fallback analysis: %s", ai_error)
        return build_fallback_analysis(extracted), ai_error

    def _persist(self, analysis: StartupAnalysis, user_id: Optional[str]) -> PersistenceResult:
        try:
            return self.repository.insert_startup_data(analysis, user_id)
        except Exception as e:
            logger.error("Persistence failed (user_id=%s): %s", user_id, e, exc_info=True)
            return PersistenceResult(errors=[f"Database operation failed: {e}"])

    def _upload(self, raw: RawFile) -> StageResult:
        object_name = random_object_name(raw.name)
        try:
            self.storage.upload(object_name, raw.data, raw.content_type)
        except StorageError as e:
            if is_missing_bucket_error(e):
                logger.error("Storage bucket missing (object=%s): %s", object_name, e)
                return StageResult(
                    ok=False,
                    error=bucket_setup_message(getattr(self.storage, "bucket", "uploads")),
                    status=UploadStatus.BUCKET_ERROR,
                )
            return StageResult(ok=False, error=f"Upload failed: {e}")
        return StageResult(ok=True, value=self.storage.get_public_url(object_name))

    def _record(self, file_url: str, outcome: UploadOutcome) -> StageResult:
        extracted = outcome.extracted
        db_result = outcome.db_result
        parsed = dict(extracted.metadata)
        parsed.update(queue_payload({
            "ai_analysis": outcome.analysis.model_dump(mode="json", exclude_none=True),
            "db_result": db_result.model_dump(mode="json") if db_result else None,
            "ai_error": outcome.ai_error,
        }))
        record = IngestionQueueRecord(
            file_url=file_url,
            input_type=extracted.type.value,
            company_id=db_result.company_id if db_result else None,
            status="processed",
            parsed_json=parsed,
            raw_text=extracted.content,
        )
        try:
            self.repository.insert_ingestion_record(record)
        except QueueRecordError as e:
            return StageResult(ok=False, error=str(e))
        return StageResult(ok=True, value=record)

    # --------------------------------------------------
    # main
    # --------------------------------------------------
    def run(self, raw: RawFile, user_id: Optional[str] = None) -> UploadOutcome:
        outcome = UploadOutcome(file_name=raw.name)
        try:
            return self._run(raw, user_id, outcome)
        except Exception as e:
            logger.exception("Upload of %s failed (user_id=%s)", raw.name, user_id)
            return self._finish(outcome, UploadStatus.ERROR, str(e) or GENERIC_ERROR)

    def _run(self, raw: RawFile, user_id: Optional[str], outcome: UploadOutcome) -> UploadOutcome:
        # 1. Allow-list and plan limit
        if not is_allowed_file(raw):
            logger.warning("Rejected %s (%s)", raw.name, raw.content_type)
            return self._finish(outcome, UploadStatus.ERROR, UNSUPPORTED_MESSAGE)

        if user_id and self.feature_gate is not None:
            limit = self.feature_gate.check_limit(user_id, self.feature_name)
            if not (limit.allowed or limit.unlimited):
                err = FeatureLimitExceeded(self.feature_name, limit)
                logger.warning("Feature limit reached for user %s: %s", user_id, err)
                return self._finish(outcome, UploadStatus.ERROR, str(err))

        # 2. Extract
        self._set(outcome, UploadStatus.PROCESSING)
        extracted = self._extract(raw)
        if not extracted.ok:
            return self._finish(outcome, extracted.status, extracted.error)
        outcome.extracted = extracted.value

        # 3. Analyze, falling back when the model gives nothing
        self._set(outcome, UploadStatus.ANALYZING)
        outcome.analysis, outcome.ai_error = self._analyze(outcome.extracted)
        if outcome.ai_error:
            outcome.used_fallback = True
            outcome.notices.append(AI_UNAVAILABLE_NOTICE)

        # 4. Persist what we can
        self._set(outcome, UploadStatus.SAVING)
        outcome.db_result = self._persist(outcome.analysis, user_id)
        if outcome.db_result.errors:
            shown = "; ".join(outcome.db_result.errors[:MAX_REPORTED_DB_ERRORS])
            saved = ", ".join(outcome.db_result.inserted_tables) or "nothing"
            outcome.notices.append(f"Partial save (saved: {saved}). Errors: {shown}")

        # 5. Upload raw file and record the run
        self._set(outcome, UploadStatus.UPLOADING)
        uploaded = self._upload(raw)
        if not uploaded.ok:
            return self._finish(outcome, uploaded.status, uploaded.error)
        outcome.file_url = uploaded.value

        recorded = self._record(outcome.file_url, outcome)
        if not recorded.ok:
            return self._finish(outcome, recorded.status, recorded.error)

        if user_id and self.feature_gate is not None:
            outcome.usage_tracked = self.feature_gate.track_usage(user_id, self.feature_name, 1)

        return self._finish(
            outcome, UploadStatus.SUCCESS,
            f"File {raw.name!r} has been uploaded and processed successfully.",
        )

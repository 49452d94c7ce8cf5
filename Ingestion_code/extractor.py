"""
Content Extractor

Turns an uploaded CSV, plain-text or image file into a text rendering
the analysis model can read, plus per-type metadata.
"""
import csv
import logging
import re
from typing import Dict, List

from errors import FileReadError, OcrFailure, UnsupportedFileType
from schema import ContentType, ExtractedContent, RawFile
from utils.file_names import (
    ALLOWED_EXTENSIONS,
    ALLOWED_MIME_TYPES,
    IMAGE_EXTENSIONS,
    file_extension,
)

logger = logging.getLogger(__name__)

CSV_SAMPLE_ROWS = 3
CSV_METADATA_ROWS = 5
NO_TEXT_PLACEHOLDER = "[No text detected in image]"

PARAGRAPH_BREAK = re.compile(r"\n\s*\n")


def is_allowed_file(raw: RawFile) -> bool:
    """Upload allow-list: known extension, text MIME type, or any image/*."""
    content_type = (raw.content_type or "").lower()
    if content_type in ALLOWED_MIME_TYPES or content_type.startswith("image/"):
        return True
    return file_extension(raw.name) in ALLOWED_EXTENSIONS


def detect_content_type(raw: RawFile) -> ContentType:
    content_type = (raw.content_type or "").lower()
    ext = file_extension(raw.name)

    if content_type == "text/csv" or ext == "csv":
        return ContentType.CSV
    if content_type.startswith("image/") or ext in IMAGE_EXTENSIONS:
        return ContentType.IMAGE
    if content_type == "text/plain" or ext == "txt":
        return ContentType.TXT
    raise UnsupportedFileType(
        f"Unsupported file type for {raw.name!r}. "
        "Please upload a CSV, TXT or image file."
    )


def _decode(raw: RawFile) -> str:
    """UTF-8 text; bytes that are not UTF-8 become U+FFFD instead of failing."""
    try:
        return raw.data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        logger.warning("%s is not valid UTF-8, replacing undecodable bytes: %s", raw.name, e)
        return raw.data.decode("utf-8-sig", errors="replace")


# --------------------------------------------------
# CSV
# --------------------------------------------------
def parse_csv_rows(text: str) -> tuple[List[str], List[Dict[str, str]]]:
    """
    Parse CSV text into (headers, rows). Blank lines are skipped and
    short rows are padded with empty strings.
    """
    lines = [line for line in text.splitlines() if line.strip()]
    if not lines:
        return [], []

    reader = csv.reader(lines)
    headers = [h.strip() for h in next(reader)]

    rows: List[Dict[str, str]] = []
    for values in reader:
        rows.append({
            header: (values[i].strip() if i < len(values) else "")
            for i, header in enumerate(headers)
        })
    return headers, rows


def extract_csv(raw: RawFile) -> ExtractedContent:
    text = _decode(raw)
    try:
        headers, rows = parse_csv_rows(text)
    except csv.Error as e:
        raise FileReadError(f"Could not read {raw.name} as CSV: {e}") from e

    sample_lines = []
    for i, row in enumerate(rows[:CSV_SAMPLE_ROWS], start=1):
        cells = ", ".join(f"{k}: {v}" for k, v in row.items())
        sample_lines.append(f"Row {i}: {cells}")

    content = (
        "CSV Data Analysis:\n"
        f"- Total rows: {len(rows)}\n"
        f"- Total columns: {len(headers)}\n"
        f"- Headers: {', '.join(headers)}\n\n"
        f"Sample data (first {CSV_SAMPLE_ROWS} rows):\n"
        + "\n".join(sample_lines)
        + "\n\nRaw CSV data:\n"
        + text
    )

    return ExtractedContent(
        type=ContentType.CSV,
        content=content,
        metadata={
            "headers": headers,
            "row_count": len(rows),
            "column_count": len(headers),
            "sample_rows": rows[:CSV_METADATA_ROWS],
            "rows": rows,
        },
    )


# --------------------------------------------------
# IMAGE
# --------------------------------------------------
def extract_image(raw: RawFile, ocr) -> ExtractedContent:
    if ocr is None:
        raise OcrFailure("No OCR engine configured")

    try:
        result = ocr.recognize(raw.data)
    except OcrFailure:
        raise
    except Exception as e:
        raise OcrFailure(f"Failed to process image with OCR: {e}") from e

    text = (result.text or "").strip()
    word_count = len(text.split())

    content = (
        "Image OCR Analysis:\n"
        f"- OCR confidence: {result.confidence:.1f}%\n"
        f"- Words detected: {word_count}\n"
        f"- Characters detected: {len(text)}\n\n"
        "Extracted text:\n"
        + (text or NO_TEXT_PLACEHOLDER)
    )

    return ExtractedContent(
        type=ContentType.IMAGE,
        content=content,
        metadata={
            "size": raw.size,
            "char_count": len(text),
            "word_count": word_count,
            "confidence": result.confidence,
            "raw_text": text,
        },
    )


# --------------------------------------------------
# TEXT
# --------------------------------------------------
def extract_text(raw: RawFile) -> ExtractedContent:
    text = _decode(raw)

    line_count = len(text.split("\n"))
    paragraph_count = len([p for p in PARAGRAPH_BREAK.split(text) if p.strip()])
    word_count = len(text.split())

    content = (
        "Text Document Analysis:\n"
        f"- Lines: {line_count}\n"
        f"- Paragraphs: {paragraph_count}\n"
        f"- Words: {word_count}\n"
        f"- Characters: {len(text)}\n\n"
        "Full text:\n"
        + text
    )

    return ExtractedContent(
        type=ContentType.TXT,
        content=content,
        metadata={
            "line_count": line_count,
            "paragraph_count": paragraph_count,
            "word_count": word_count,
            "char_count": len(text),
            "full_text": text,
        },
    )


def extract_content(raw: RawFile, ocr=None) -> ExtractedContent:
    """Dispatch on MIME type / extension to the matching strategy."""
    content_type = detect_content_type(raw)
    logger.info("Extracting %s content from %s (%d bytes)", content_type.value, raw.name, raw.size)

    if content_type is ContentType.CSV:
        return extract_csv(raw)
    if content_type is ContentType.IMAGE:
        return extract_image(raw, ocr)
    return extract_text(raw)

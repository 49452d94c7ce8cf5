# ocr.py
import logging
from typing import List, Optional

import cv2
import easyocr
import numpy as np

from errors import OcrFailure
from schema import OcrResult

logger = logging.getLogger(__name__)


def _preprocess(data: bytes):
    """
    Image preprocessing for better OCR accuracy.
    """
    buf = np.frombuffer(data, dtype=np.uint8)
    img = cv2.imdecode(buf, cv2.IMREAD_COLOR)
    if img is None:
        return None

    gray = cv2.cvtColor(img, cv2.COLOR_BGR2GRAY)
    gray = cv2.resize(gray, None, fx=2.0, fy=2.0, interpolation=cv2.INTER_CUBIC)
    gray = cv2.GaussianBlur(gray, (3, 3), 0)

    return gray


class OcrEngine:
    """EasyOCR reader, built on first use (model load is slow)."""

    def __init__(self, languages: Optional[List[str]] = None, gpu: bool = False):
        self.languages = languages or ["en"]
        self.gpu = gpu
        self._reader = None

    @property
    def reader(self):
        if self._reader is None:
            logger.info("Loading OCR model for languages %s", self.languages)
            self._reader = easyocr.Reader(self.languages, gpu=self.gpu)
        return self._reader

    def recognize(self, data: bytes) -> OcrResult:
        """
        Runs OCR over image bytes.

        Returns:
            OcrResult with all detected lines joined in reading order and
            the mean confidence as a percentage.
        """
        img = _preprocess(data)
        if img is None:
            raise OcrFailure("Could not decode image data")

        try:
            results = self.reader.readtext(img)
        except Exception as e:
            logger.error("OCR failed: %s", e, exc_info=True)
            raise OcrFailure(str(e)) from e

        if not results:
            return OcrResult(text="", confidence=0.0)

        lines = [r[1].strip() for r in results if r[1].strip()]
        confidence = sum(float(r[2]) for r in results) / len(results)

        return OcrResult(text="\n".join(lines), confidence=round(confidence * 100, 1))

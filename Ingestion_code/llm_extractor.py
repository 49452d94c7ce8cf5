# llm_extractor.py
import json
import logging
from typing import Any, Dict

from openai import APIConnectionError, APITimeoutError, OpenAIError, RateLimitError
from pydantic import ValidationError
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from errors import AnalysisRequestFailed
from schema import ExtractedContent, StartupAnalysis
from utils.json_repair import repair_json

logger = logging.getLogger(__name__)

MODEL = "gpt-4-turbo"

# Metadata keys that repeat the content itself
BULKY_METADATA_KEYS = {"rows", "full_text", "raw_text"}

ANALYSIS_PROMPT = (
    "You are an AI startup analyst. Analyze the provided startup document "
    "and extract relevant information.\n\n"

    "CRITICAL: You must respond with ONLY a valid JSON object, no additional "
    "text, explanations, or commentary before or after the JSON.\n\n"

    "Return a JSON object with the following structure, only including "
    "fields where you can confidently extract data:\n\n"
    "{\n"
    "  \"company\": {\n"
    "    \"name\": \"string - company name\",\n"
    "    \"industry_name\": \"string - main industry (e.g., 'SaaS', 'FinTech', 'HealthTech')\",\n"
    "    \"sub_industry_name\": \"string - specific sub-industry\",\n"
    "    \"country\": \"string - country of incorporation/operation\",\n"
    "    \"geo_region\": \"string - geographic region (e.g., 'North America', 'Europe')\",\n"
    "    \"startup_stage\": \"string - stage (e.g., 'Pre-seed', 'Seed', 'Series A')\",\n"
    "    \"valuation_target_usd\": \"number - target valuation in USD\",\n"
    "    \"funding_goal_usd\": \"number - funding goal in USD\",\n"
    "    \"incorporation_year\": \"number - year incorporated\",\n"
    "    \"pitch_deck_summary\": \"string - brief summary of the pitch\"\n"
    "  },\n"
    "  \"founders\": [\n"
    "    {\n"
    "      \"full_name\": \"string - founder name\",\n"
    "      \"linkedin_url\": \"string - LinkedIn profile URL\",\n"
    "      \"education_history\": [\"string array of education background\"],\n"
    "      \"domain_experience_yrs\": \"number - years of domain experience\",\n"
    "      \"technical_skills\": [\"string array of technical skills\"],\n"
    "      \"notable_achievements\": \"string - key achievements\"\n"
    "    }\n"
    "  ],\n"
    "  \"pitch_deck\": {\n"
    "    \"core_problem\": \"string - main problem being solved\",\n"
    "    \"core_solution\": \"string - proposed solution\",\n"
    "    \"customer_segment\": \"string - target customer segment\",\n"
    "    \"product_summary_md\": \"string - product description in markdown\"\n"
    "  },\n"
    "  \"financial_model\": {\n"
    "    \"monthly_revenue_usd\": \"number - monthly revenue\",\n"
    "    \"burn_rate_usd\": \"number - monthly burn rate\",\n"
    "    \"ltv_cac_ratio\": \"number - LTV to CAC ratio\",\n"
    "    \"runway_months\": \"number - runway in months\",\n"
    "    \"revenue_model_notes\": \"string - revenue model description\"\n"
    "  },\n"
    "  \"go_to_market\": {\n"
    "    \"gtm_channels\": [\"string array of go-to-market channels\"],\n"
    "    \"gtm_notes_md\": \"string - GTM strategy notes in markdown\"\n"
    "  },\n"
    "  \"metrics\": [\n"
    "    {\n"
    "      \"metric_name\": \"string - metric name (e.g., 'MRR', 'CAC', 'LTV')\",\n"
    "      \"metric_value\": \"number - metric value\",\n"
    "      \"metric_unit\": \"string - unit (e.g., 'USD', '%', 'users')\"\n"
    "    }\n"
    "  ]\n"
    "}\n\n"

    "IMPORTANT GUIDELINES:\n"
    "- RESPOND WITH ONLY JSON - NO ADDITIONAL TEXT OR EXPLANATIONS\n"
    "- Only include fields where you can extract meaningful data\n"
    "- For financial figures, convert to USD if needed\n"
    "- Be conservative - if unsure, omit the field\n"
    "- Ensure all numbers are valid numeric values\n"
    "- Analyze the entire document thoroughly, including any conversation "
    "transcripts, interviews, or detailed content\n\n"
    "Document Content:"
)


def build_user_content(extracted: ExtractedContent) -> str:
    metadata: Dict[str, Any] = {
        k: v for k, v in extracted.metadata.items() if k not in BULKY_METADATA_KEYS
    }
    parts = [f"Content Type: {extracted.type.value}"]
    if metadata:
        parts.append(f"Metadata: {json.dumps(metadata, indent=2, default=str)}")
    parts.append("")
    parts.append("Content:")
    parts.append(extracted.content)
    return "\n".join(parts)


def parse_analysis(text: str) -> StartupAnalysis:
    """
    Parse model output into a StartupAnalysis.

    Output that is not JSON, or JSON that does not fit the schema, yields an
    empty analysis rather than an error.
    """
    fixed = repair_json(text)
    try:
        data = json.loads(fixed)
    except (json.JSONDecodeError, ValueError):
        logger.warning("Model output is not valid JSON (%d chars)", len(text or ""))
        logger.debug("Unparseable model output: %s", text)
        return StartupAnalysis()

    if not isinstance(data, dict):
        logger.warning("Model output is JSON but not an object: %s", type(data).__name__)
        return StartupAnalysis()

    try:
        return StartupAnalysis.model_validate(data)
    except ValidationError as e:
        logger.warning("Model output does not match the analysis schema: %s", e)
        return StartupAnalysis()


class StartupAnalyzer:
    def __init__(
        self,
        client,
        model: str = MODEL,
        temperature: float = 0.1,
        max_tokens: int = 4000,
        max_attempts: int = 1,
    ):
        self.client = client
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.max_attempts = max_attempts

    def _complete(self, system_prompt: str, user_content: str):
        return self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_content},
            ],
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )

    def _call_openai(self, system_prompt: str, user_content: str):
        retryer = Retrying(
            retry=retry_if_exception_type((RateLimitError, APIConnectionError, APITimeoutError)),
            wait=wait_exponential(multiplier=2, min=4, max=120),
            stop=stop_after_attempt(self.max_attempts),
            reraise=True,
            before_sleep=lambda retry_state: logger.warning(
                "OpenAI rate limited, retrying in %ds...", retry_state.next_action.sleep
            ),
        )
        return retryer(self._complete, system_prompt, user_content)

    def analyze(self, extracted: ExtractedContent) -> StartupAnalysis:
        """Send extracted content to the model and parse the structured answer."""
        logger.info("Requesting %s analysis from %s", extracted.type.value, self.model)

        try:
            resp = self._call_openai(ANALYSIS_PROMPT, build_user_content(extracted))
        except OpenAIError as e:
            logger.error("AI analysis request failed: %s", e)
            raise AnalysisRequestFailed(f"AI analysis failed: {e}") from e

        choices = getattr(resp, "choices", None) or []
        text = choices[0].message.content if choices else None
        if not text:
            raise AnalysisRequestFailed("AI analysis failed: No response from model")

        logger.debug("Raw model response: %s", text)
        return parse_analysis(text)

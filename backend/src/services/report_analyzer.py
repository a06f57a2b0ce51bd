"""
Report analyzer backed by a hosted vision-capable model.

Sends a stored medical report (image, PDF or plain text) to the OpenAI
Chat Completions API and returns a patient-friendly explanation, a
context-aware explanation, or a strictly parsed JSON extraction.

The OpenAI client is passed in by the caller (built once at start-up in
``main.py``) so tests can substitute a fake.
"""

import base64
import json
import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import openai
from openai import OpenAI
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from core.config import OPENAI_API_KEY, OPENAI_MODEL, OPENAI_TIMEOUT_SECONDS
from core.constants import (
    ANALYSIS_MAX_TOKENS,
    ANALYSIS_TEMPERATURE,
    CONTEXT_ANALYSIS_MAX_TOKENS,
    CONTEXT_ANALYSIS_TEMPERATURE,
    DEFAULT_EXTRACTION_TYPES,
    EXTRACTION_MAX_TOKENS,
    EXTRACTION_TEMPERATURE,
)

logger = logging.getLogger(__name__)

MIME_TYPES = {
    ".pdf": "application/pdf",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".bmp": "image/bmp",
    ".tiff": "image/tiff",
    ".webp": "image/webp",
    ".txt": "text/plain",
}
DEFAULT_MIME_TYPE = "application/octet-stream"

ANALYSIS_PROMPT = """Read this medical report carefully and provide a clear, patient-friendly explanation.
Please include:
1. A summary of the main findings
2. What each result means in simple terms
3. Any important values that are outside normal ranges
4. Recommendations or next steps if mentioned
5. Any medical terms explained in plain language

Make the explanation easy to understand for a patient who may not have medical training."""

CONTEXT_ANALYSIS_INSTRUCTIONS = """Please provide:
1. **Summary**: Key findings and overall assessment
2. **Detailed Explanation**: What each result means in simple terms
3. **Normal vs Abnormal**: Highlight any values outside normal ranges
4. **Medical Terms**: Explain any complex medical terminology
5. **Recommendations**: Next steps or follow-up actions mentioned
6. **Questions to Ask**: Suggest questions the patient might want to ask their doctor

Make the explanation compassionate and easy to understand."""

EXTRACTION_FORMAT = """{
  "vitals": {"blood_pressure": "", "heart_rate": "", "temperature": "", "weight": ""},
  "medications": ["list", "of", "medications"],
  "diagnoses": ["list", "of", "diagnoses"],
  "recommendations": ["list", "of", "recommendations"],
  "abnormal_values": ["list", "of", "abnormal", "results"],
  "summary": "brief summary"
}"""

_CODE_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


class ReportAnalysisError(Exception):
    """Base class for analysis failures."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ReportFileError(ReportAnalysisError):
    """The stored file is missing, unreadable or of an unsupported kind."""
    pass


class UpstreamModelError(ReportAnalysisError):
    """The hosted model call failed (quota, credentials, network, non-2xx)."""
    pass


class MalformedResponseError(ReportAnalysisError):
    """The model answered, but not in the shape that was asked for."""

    def __init__(self, message: str, raw_content: Optional[str] = None):
        super().__init__(message)
        self.raw_content = raw_content


@dataclass
class PatientContext:
    """Optional patient details injected into the context-aware prompt."""
    age: Optional[int] = None
    gender: Optional[str] = None
    medical_history: Optional[str] = None

    def is_empty(self) -> bool:
        return not (self.age or self.gender or self.medical_history)

    def to_payload(self) -> Dict[str, Any]:
        return {"age": self.age, "gender": self.gender, "medical_history": self.medical_history}

    @classmethod
    def from_payload(cls, payload: Optional[Dict[str, Any]]) -> Optional["PatientContext"]:
        if not payload:
            return None
        context = cls(
            age=payload.get("age"),
            gender=payload.get("gender"),
            medical_history=payload.get("medical_history"),
        )
        return None if context.is_empty() else context


class VitalSigns(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    blood_pressure: str = ""
    heart_rate: str = ""
    temperature: str = ""
    weight: str = ""


class ExtractedMedicalInformation(BaseModel):
    """Structured information extracted from a report."""
    model_config = ConfigDict(coerce_numbers_to_str=True)

    vitals: VitalSigns = Field(default_factory=VitalSigns)
    medications: List[str] = Field(default_factory=list)
    diagnoses: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    abnormal_values: List[str] = Field(default_factory=list)
    summary: str = ""


@dataclass
class AnalysisResult:
    explanation: str
    model: str
    total_tokens: Optional[int] = None
    context: Optional[PatientContext] = None


@dataclass
class ExtractionResult:
    data: ExtractedMedicalInformation
    model: str
    total_tokens: Optional[int] = None
    information_types: List[str] = field(default_factory=list)


def guess_mime_type(file_path: str) -> str:
    """MIME type from the file extension, or a generic binary type."""
    ext = os.path.splitext(file_path)[1].lower()
    return MIME_TYPES.get(ext, DEFAULT_MIME_TYPE)


def encode_file(file_path: str) -> str:
    """Read a file and return its base64 encoding."""
    if not os.path.isfile(file_path):
        raise ReportFileError("File not found")
    try:
        with open(file_path, "rb") as f:
            return base64.b64encode(f.read()).decode("ascii")
    except OSError as e:
        raise ReportFileError(f"Failed to read file: {e}") from e


def parse_extraction(content: Optional[str]) -> ExtractedMedicalInformation:
    """
    Parse the model's extraction answer.

    Accepts a bare JSON object, optionally wrapped in a single markdown
    code fence. Anything else is a ``MalformedResponseError``.
    """
    if not content or not content.strip():
        raise MalformedResponseError("Empty response from model", raw_content=content)

    text = content.strip()
    fenced = _CODE_FENCE_RE.match(text)
    if fenced:
        text = fenced.group(1)

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"Model response is not valid JSON: {e.msg}", raw_content=content) from e

    if not isinstance(data, dict):
        raise MalformedResponseError("Model response is not a JSON object", raw_content=content)

    try:
        return ExtractedMedicalInformation.model_validate(data)
    except ValidationError as e:
        raise MalformedResponseError(
            f"Model response does not match the extraction format ({e.error_count()} errors)",
            raw_content=content,
        ) from e


def build_context_prompt(context: Optional[PatientContext]) -> str:
    prompt = "Read this medical report carefully and provide a clear, patient-friendly explanation."
    if context:
        if context.age:
            prompt += f"\n\nPatient Age: {context.age}"
        if context.gender:
            prompt += f"\nPatient Gender: {context.gender}"
        if context.medical_history:
            prompt += f"\nRelevant Medical History: {context.medical_history}"
    return f"{prompt}\n\n{CONTEXT_ANALYSIS_INSTRUCTIONS}"


def build_extraction_prompt(information_types: List[str]) -> str:
    wanted = "\n".join(f"- {item.capitalize()}" for item in information_types)
    return (
        "Analyze this medical report and extract the following information in a structured format:\n\n"
        f"{wanted}\n\n"
        f"Please provide the information in this exact JSON format:\n{EXTRACTION_FORMAT}\n\n"
        "Only include the JSON response, no additional text."
    )


class ReportAnalyzer:
    """
    Explains medical reports with a hosted vision model.

    Args:
        client: OpenAI client, or None when no API key is configured.
            Every call then fails with ``UpstreamModelError``.
        model: Model name passed to the Chat Completions API.
    """

    def __init__(self, client: Optional[OpenAI], model: str = OPENAI_MODEL):
        self.client = client
        self.model = model

    @property
    def is_configured(self) -> bool:
        return self.client is not None

    def analyze(self, file_path: str) -> AnalysisResult:
        """Patient-friendly explanation of a report."""
        response = self._complete(
            self._build_content(file_path, ANALYSIS_PROMPT),
            max_tokens=ANALYSIS_MAX_TOKENS,
            temperature=ANALYSIS_TEMPERATURE,
        )
        return AnalysisResult(
            explanation=self._require_text(response),
            model=getattr(response, "model", self.model),
            total_tokens=self._total_tokens(response),
        )

    def analyze_with_context(self, file_path: str, context: Optional[PatientContext]) -> AnalysisResult:
        """Explanation that takes the patient's age, gender and history into account."""
        response = self._complete(
            self._build_content(file_path, build_context_prompt(context)),
            max_tokens=CONTEXT_ANALYSIS_MAX_TOKENS,
            temperature=CONTEXT_ANALYSIS_TEMPERATURE,
        )
        return AnalysisResult(
            explanation=self._require_text(response),
            model=getattr(response, "model", self.model),
            total_tokens=self._total_tokens(response),
            context=context,
        )

    def extract_information(
        self,
        file_path: str,
        information_types: Optional[List[str]] = None,
    ) -> ExtractionResult:
        """
        Structured extraction of vitals, medications, diagnoses and more.

        Raises:
            MalformedResponseError: If the answer is not the requested JSON.
        """
        types = information_types or list(DEFAULT_EXTRACTION_TYPES)
        response = self._complete(
            self._build_content(file_path, build_extraction_prompt(types)),
            max_tokens=EXTRACTION_MAX_TOKENS,
            temperature=EXTRACTION_TEMPERATURE,
        )
        data = parse_extraction(self._message_content(response))
        return ExtractionResult(
            data=data,
            model=getattr(response, "model", self.model),
            total_tokens=self._total_tokens(response),
            information_types=types,
        )

    def _build_content(self, file_path: str, prompt: str) -> List[Dict[str, Any]]:
        """Message parts: the prompt followed by the file in a form the model accepts."""
        mime_type = guess_mime_type(file_path)
        parts: List[Dict[str, Any]] = [{"type": "text", "text": prompt}]

        if mime_type == "text/plain":
            if not os.path.isfile(file_path):
                raise ReportFileError("File not found")
            try:
                with open(file_path, "r", encoding="utf-8", errors="replace") as f:
                    parts.append({"type": "text", "text": f"Report content:\n{f.read()}"})
            except OSError as e:
                raise ReportFileError(f"Failed to read file: {e}") from e
            return parts

        encoded = encode_file(file_path)
        data_uri = f"data:{mime_type};base64,{encoded}"
        if mime_type.startswith("image/"):
            parts.append({"type": "image_url", "image_url": {"url": data_uri}})
        elif mime_type == "application/pdf":
            parts.append({
                "type": "file",
                "file": {"filename": os.path.basename(file_path), "file_data": data_uri},
            })
        else:
            raise ReportFileError(f"Unsupported file type for analysis: {mime_type}")
        return parts

    def _complete(self, content: List[Dict[str, Any]], max_tokens: int, temperature: float) -> Any:
        if self.client is None:
            raise UpstreamModelError("AI analysis is not configured")

        try:
            return self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": content}],
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except openai.RateLimitError as e:
            if getattr(e, "code", None) == "insufficient_quota":
                raise UpstreamModelError("OpenAI API quota exceeded. Please check your billing.") from e
            raise UpstreamModelError("OpenAI API rate limit reached. Please try again later.") from e
        except openai.AuthenticationError as e:
            raise UpstreamModelError("Invalid OpenAI API key.") from e
        except openai.APITimeoutError as e:
            raise UpstreamModelError("OpenAI API request timed out.") from e
        except openai.APIConnectionError as e:
            raise UpstreamModelError("Could not reach the OpenAI API.") from e
        except openai.APIStatusError as e:
            raise UpstreamModelError(f"OpenAI API returned status {e.status_code}.") from e
        except openai.OpenAIError as e:
            raise UpstreamModelError(f"OpenAI API call failed: {e}") from e

    @staticmethod
    def _message_content(response: Any) -> Optional[str]:
        try:
            return response.choices[0].message.content
        except (AttributeError, IndexError) as e:
            raise MalformedResponseError("Model response has no message") from e

    def _require_text(self, response: Any) -> str:
        content = self._message_content(response)
        if not content or not content.strip():
            raise MalformedResponseError("Empty response from model", raw_content=content)
        return content

    @staticmethod
    def _total_tokens(response: Any) -> Optional[int]:
        usage = getattr(response, "usage", None)
        return getattr(usage, "total_tokens", None) if usage is not None else None


def build_report_analyzer(api_key: str = OPENAI_API_KEY, model: str = OPENAI_MODEL) -> ReportAnalyzer:
    """Build the analyzer used by the application; no key means no client."""
    if not api_key:
        logger.warning("OPENAI_API_KEY is not set; report analysis will fail until it is configured")
        return ReportAnalyzer(client=None, model=model)
    client = OpenAI(api_key=api_key, timeout=OPENAI_TIMEOUT_SECONDS)
    return ReportAnalyzer(client=client, model=model)

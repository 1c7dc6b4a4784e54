"""
Vision-analysis oracle backed by Google Gemini.

Each request carries the frame, a static safety-manual excerpt as grounding
context, and two function declarations. The model answers by calling exactly
one of them: report_safety_violation or report_safe_status.
"""

import base64
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Union

import httpx
from google import genai
from google.genai import errors, types

from auditor.alerts.types import Severity

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-3-flash-preview"

VIOLATION_TOOL = "report_safety_violation"
SAFE_STATUS_TOOL = "report_safe_status"

SAFE_MESSAGE = "Routine Check: All Clear"
DEFAULT_SAFE_LOCATION = "Zone 1"
DEFAULT_SAFE_REASONING = "No hazards detected."

VIOLATION_SEVERITIES = ["low", "medium", "high", "critical"]

SAFETY_MANUAL_CONTEXT = """
OFFICIAL SAFETY STANDARDS MANUAL (OSHA 1910 GENERAL INDUSTRY EXCERPT)

SECTION 4: FALL PROTECTION
4.1 General Duty (29 CFR 1910.28):
   (a) The employer shall ensure that each employee on a walking-working surface with an unprotected side or edge that is 4 feet (1.2 m) or more above a lower level is protected from falling.
4.2 Scaffolding (29 CFR 1926.451):
   (a) Each employee on a scaffold more than 10 feet (3.1 m) above a lower level shall be protected from falling to that lower level.
   (b) Cross-braces must be installed.
   (c) Hard hats are required for all personnel on or below scaffolding.

SECTION 5: PERSONAL PROTECTIVE EQUIPMENT (PPE)
5.1 Head Protection (29 CFR 1910.135):
   (a) Employees working in areas where there is a potential for injury to the head from falling objects must wear protective helmets (Hard Hats).
5.2 High Visibility (General Duty Clause):
   (a) Employees working near heavy machinery or traffic must wear high-visibility safety vests (Yellow/Orange).
5.3 Eye Protection (29 CFR 1910.133):
   (a) Required when exposed to flying particles, liquid chemicals, acids or caustic liquids, chemical gases or vapors.

SECTION 6: CONTROL OF HAZARDOUS ENERGY
6.1 Exclusion Zones:
   (a) Personnel must maintain a 3-foot clearance from operating forklifts.
   (b) Yellow marked floor zones around automated arms are "No Entry" zones while active.
"""

AUDITOR_INSTRUCTIONS = """You are an automated Industrial Safety Auditor (OSHA compliance bot).

INSTRUCTIONS:
Based strictly on the "Safety Manual" provided above (Context), analyze this video frame.

1. OBSERVE: Identify workers, equipment, and environment.
2. CROSS-REFERENCE: Compare observations against the specific Sections in the manual (e.g., Section 5.1 for Head Protection).
3. DECIDE:
   - If a worker violates a specific rule, call 'report_safety_violation'.
   - You MUST cite the specific Section Number (e.g., "Violates Section 4.2(a)") in your reasoning steps.
   - If all observed personnel and conditions are compliant with the manual, call 'report_safe_status'.

Reason carefully about spatial relationships (distances, heights) and temporal context.
"""

_DATA_URL_PREFIX = re.compile(r"^data:image/(png|jpeg|jpg);base64,")


class OracleUnavailable(Exception):
    """The oracle could not be reached (network, auth or API failure)."""


class MalformedVerdict(Exception):
    """The oracle answered with neither of the expected structured shapes."""


@dataclass(frozen=True)
class Verdict:
    """Structured oracle answer for one frame."""
    severity: Severity
    message: str
    location: str
    reasoning_steps: str


def build_tool() -> types.Tool:
    """Function declarations offered to the model."""
    violation = types.FunctionDeclaration(
        name=VIOLATION_TOOL,
        description=(
            "Report a safety violation or hazard detected in the video feed. "
            "Triggers an alert system."
        ),
        parameters=types.Schema(
            type=types.Type.OBJECT,
            properties={
                "severity": types.Schema(
                    type=types.Type.STRING,
                    enum=VIOLATION_SEVERITIES,
                    description="The severity level of the violation.",
                ),
                "message": types.Schema(
                    type=types.Type.STRING,
                    description='A concise description of the violation (e.g., "Worker not wearing hard hat").',
                ),
                "location": types.Schema(
                    type=types.Type.STRING,
                    description='The approximate location in the frame or zone (e.g., "Scaffolding Zone A").',
                ),
                "reasoning_steps": types.Schema(
                    type=types.Type.STRING,
                    description=(
                        "A detailed, step-by-step deduction trace explaining why this is a violation. "
                        'Example: "1. Worker detected. 2. Height estimated > 6ft. 3. No harness visible."'
                    ),
                ),
            },
            required=["severity", "message", "location", "reasoning_steps"],
        ),
    )
    safe_status = types.FunctionDeclaration(
        name=SAFE_STATUS_TOOL,
        description="Log a routine check when no violations are found.",
        parameters=types.Schema(
            type=types.Type.OBJECT,
            properties={
                "location": types.Schema(
                    type=types.Type.STRING,
                    description="The area monitored.",
                ),
                "reasoning_steps": types.Schema(
                    type=types.Type.STRING,
                    description="Step-by-step confirmation of safety protocols observed.",
                ),
            },
            required=["location", "reasoning_steps"],
        ),
    )
    return types.Tool(function_declarations=[violation, safe_status])


def decode_image(image: Union[bytes, str]) -> bytes:
    """Accept raw JPEG bytes or a base64 (data URL) string."""
    if isinstance(image, bytes):
        return image
    return base64.b64decode(_DATA_URL_PREFIX.sub("", image))


def _require_text(args: dict, key: str) -> str:
    value = args.get(key)
    if not isinstance(value, str) or not value.strip():
        raise MalformedVerdict(f"Missing or empty '{key}' in oracle response")
    return value


def parse_verdict(function_calls: Optional[Iterable[Any]]) -> Verdict:
    """
    Convert the model's function calls into a Verdict.

    Only the first call is considered.

    Raises:
        MalformedVerdict: If there is no call, the call is unknown, or its
            arguments do not match the declared shape
    """
    calls = list(function_calls or [])
    if not calls:
        raise MalformedVerdict("Oracle response contains no function call")

    call = calls[0]
    args = dict(call.args or {})

    if call.name == VIOLATION_TOOL:
        try:
            severity = Severity.parse(_require_text(args, "severity"))
        except ValueError as e:
            raise MalformedVerdict(str(e)) from e
        if not severity.is_alerting:
            raise MalformedVerdict("Violation reported with 'safe' severity")
        return Verdict(
            severity=severity,
            message=_require_text(args, "message"),
            location=_require_text(args, "location"),
            reasoning_steps=_require_text(args, "reasoning_steps"),
        )

    if call.name == SAFE_STATUS_TOOL:
        return Verdict(
            severity=Severity.SAFE,
            message=SAFE_MESSAGE,
            location=args.get("location") or DEFAULT_SAFE_LOCATION,
            reasoning_steps=args.get("reasoning_steps") or DEFAULT_SAFE_REASONING,
        )

    raise MalformedVerdict(f"Unknown function call: {call.name!r}")


class VisionOracle(ABC):
    """External service that classifies a frame."""

    @abstractmethod
    async def analyze(self, image: Union[bytes, str], mime_type: str = "image/jpeg") -> Verdict:
        """
        Analyze one frame.

        Raises:
            OracleUnavailable: If the service cannot be reached
            MalformedVerdict: If the answer has an unexpected shape
        """


class GeminiOracle(VisionOracle):
    """Gemini function-calling oracle."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        temperature: float = 0.2,
        thinking_budget: int = 2048,
        client: Optional[genai.Client] = None,
    ):
        """
        Args:
            api_key: Gemini API key (ignored when client is given)
            model: Model identifier
            temperature: Sampling temperature
            thinking_budget: Thinking token budget
            client: Pre-built client
        """
        self._client = client or genai.Client(api_key=api_key)
        self._model = model
        self._config = types.GenerateContentConfig(
            tools=[build_tool()],
            temperature=temperature,
            thinking_config=types.ThinkingConfig(thinking_budget=thinking_budget),
            automatic_function_calling=types.AutomaticFunctionCallingConfig(disable=True),
        )

    @property
    def model(self) -> str:
        return self._model

    def build_contents(self, image: Union[bytes, str], mime_type: str = "image/jpeg") -> list:
        """Request parts: frame, grounding document, instructions."""
        return [
            types.Part.from_bytes(data=decode_image(image), mime_type=mime_type),
            types.Part.from_text(
                text=(
                    "*** ATTACHED DOCUMENT: SAFETY_MANUAL_V2.PDF (PARSED CONTENT) ***\n"
                    f"{SAFETY_MANUAL_CONTEXT}\n"
                    "*** END OF DOCUMENT ***"
                )
            ),
            types.Part.from_text(text=AUDITOR_INSTRUCTIONS),
        ]

    async def analyze(self, image: Union[bytes, str], mime_type: str = "image/jpeg") -> Verdict:
        contents = self.build_contents(image, mime_type)
        try:
            response = await self._client.aio.models.generate_content(
                model=self._model,
                contents=contents,
                config=self._config,
            )
        except (errors.APIError, httpx.HTTPError, OSError) as e:
            raise OracleUnavailable(f"Gemini request failed: {e}") from e

        return parse_verdict(response.function_calls)

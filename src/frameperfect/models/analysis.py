"""
Analysis Response Contract
==========================

Strict schema for the vision-analysis capability's JSON response.

Wire Contract (camelCase):
    {
        "quality": "Fair" | "Good" | "Excellent",
        "qualityReason": "...",
        "people": ["Dad", "Toddler"],            # optional
        "shotType": "Pose" | "Candid" | "Unknown",
        "tags": ["Beach", "Sunset"],
        "compositionScore": 7.5,                 # 1-10
        "technicalAdvice": "Raise exposure. Straighten horizon.",
        "subjectId": "Man_In_Red_Hat"            # optional
    }

Design Rules:
    - The request schema and the parser derive from the same enums
    - Any violation raises MalformedResponseError, never a partial Analysis
"""

import json
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from frameperfect.errors import MalformedResponseError
from frameperfect.models.frame import Analysis, FrameQuality, ShotType


ANALYSIS_INSTRUCTION = (
    "Analyze this video frame as a professional curator. Be strict. "
    "Provide a composition score and technical advice."
)


class AnalysisResponse(BaseModel):
    """Validated analysis payload as sent by the capability."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    quality: Literal["Fair", "Good", "Excellent"]
    quality_reason: str = Field(..., alias="qualityReason")
    people: Optional[List[str]] = None
    shot_type: ShotType = Field(..., alias="shotType")
    tags: List[str]
    composition_score: float = Field(..., alias="compositionScore", ge=1, le=10)
    technical_advice: str = Field(..., alias="technicalAdvice")
    subject_id: Optional[str] = Field(default=None, alias="subjectId")

    def to_analysis(self) -> Analysis:
        return Analysis(
            quality=FrameQuality(self.quality),
            quality_reason=self.quality_reason,
            people=list(self.people or []),
            shot_type=self.shot_type,
            tags=list(self.tags),
            composition_score=self.composition_score,
            technical_advice=self.technical_advice,
            subject_id=self.subject_id or None,
        )


def parse_verdict(payload: Union[str, bytes, Dict[str, Any]]) -> Analysis:
    """
    Validate a raw capability response and convert it to an Analysis.

    Args:
        payload: JSON text or an already-decoded mapping

    Returns:
        Analysis built from the response

    Raises:
        MalformedResponseError: If the payload is not JSON or violates the schema
    """
    if isinstance(payload, (str, bytes)):
        if not payload:
            raise MalformedResponseError("Empty response from analysis capability")
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as e:
            raise MalformedResponseError(f"Response is not valid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise MalformedResponseError(
            f"Expected a JSON object, got {type(payload).__name__}"
        )

    try:
        return AnalysisResponse.model_validate(payload).to_analysis()
    except ValidationError as e:
        fields = ", ".join(
            ".".join(str(part) for part in err["loc"]) for err in e.errors()
        )
        raise MalformedResponseError(f"Invalid analysis response ({fields})") from e


def build_response_schema() -> Dict[str, Any]:
    """
    Response schema handed to the capability for structured output.

    Returns:
        OpenAPI-style schema dict accepted by the Gemini SDK
    """
    return {
        "type": "OBJECT",
        "properties": {
            "quality": {
                "type": "STRING",
                "enum": [q.value for q in FrameQuality.graded()],
                "description": (
                    "Grade the photo quality. Fair is blurry/poor. "
                    "Good is usable. Excellent is professional grade."
                ),
            },
            "qualityReason": {
                "type": "STRING",
                "description": "A short phrase explaining the grade.",
            },
            "people": {
                "type": "ARRAY",
                "items": {"type": "STRING"},
                "description": (
                    "Generic labels for people found (e.g. 'Dad', 'Toddler', 'Dog')."
                ),
            },
            "shotType": {
                "type": "STRING",
                "enum": [s.value for s in ShotType],
                "description": "Subject pose type.",
            },
            "tags": {
                "type": "ARRAY",
                "items": {"type": "STRING"},
                "description": "3-5 descriptive keywords about the scene.",
            },
            "compositionScore": {
                "type": "NUMBER",
                "description": "Score from 1-10 based on rule of thirds, framing, and depth.",
            },
            "technicalAdvice": {
                "type": "STRING",
                "description": (
                    "Technical photography advice. Provide 2-3 specific, "
                    "actionable points separated by periods."
                ),
            },
            "subjectId": {
                "type": "STRING",
                "description": (
                    "A consistent visual identifier for the main subject, "
                    "e.g. 'Man_In_Red_Hat'."
                ),
            },
        },
        "required": [
            "quality",
            "qualityReason",
            "shotType",
            "tags",
            "compositionScore",
            "technicalAdvice",
        ],
    }

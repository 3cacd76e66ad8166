"""
Pydantic models for peptide records and compliance results.
"""
from enum import Enum
from typing import Any, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from peptalk_review.core.error_handling import RecordValidationError


class IssueType(str, Enum):
    """Compliance issue taxonomy shared by every review stage."""
    MEDICAL_ADVICE = "medical_advice"
    DOSING = "dosing"
    VENDOR = "vendor"
    CLAIMS = "claims"
    OTHER = "other"

    def __str__(self) -> str:
        return self.value


class Severity(str, Enum):
    """Issue severity. Any critical issue fails the review."""
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"

    def __str__(self) -> str:
        return self.value


class ReviewStage(str, Enum):
    """Which validator produced a ComplianceResult."""
    FAST = "fast"
    SEMANTIC = "semantic"

    def __str__(self) -> str:
        return self.value


class Section(BaseModel):
    """One titled content block within a peptide record."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    title: str = Field(..., min_length=1, description="Section heading, e.g. 'Human Research'")
    content_html: str = Field(
        ...,
        min_length=1,
        alias="contentHtml",
        description="HTML content with inline citations ([PMID:xxx], [NCT:xxx])"
    )
    plain_language_summary: Optional[str] = Field(
        default=None,
        alias="plainLanguageSummary",
        description="Plain-language summary for non-scientists (2-3 sentences)"
    )

    def with_summary(self, summary: str) -> "Section":
        """Return a copy of this section carrying the given summary."""
        return self.model_copy(update={"plain_language_summary": summary})


class Record(BaseModel):
    """A synthesized peptide page submitted for summarization and review."""

    model_config = ConfigDict(
        populate_by_name=True,
        frozen=True,
        json_schema_extra={
            "example": {
                "name": "BPC-157",
                "summaryHtml": "<p>BPC-157 is a synthetic peptide studied in animal models.</p>",
                "sections": [
                    {
                        "title": "Animal Research",
                        "contentHtml": "<p>Rodent studies report faster tendon healing [PMID:123456].</p>"
                    }
                ]
            }
        }
    )

    name: str = Field(..., min_length=1, description="Peptide name")
    summary_html: str = Field(..., min_length=1, alias="summaryHtml", description="Overview paragraph")
    sections: List[Section] = Field(..., min_length=1, description="Ordered content sections")

    def with_sections(self, sections: List[Section]) -> "Record":
        """Return a copy of this record with its sections replaced."""
        return self.model_copy(update={"sections": list(sections)})


class ComplianceIssue(BaseModel):
    """A single detected compliance violation."""

    type: IssueType
    severity: Severity
    description: str
    location: Optional[str] = Field(default=None, description="Verbatim excerpt from the content")


class ComplianceResult(BaseModel):
    """Outcome of a compliance review.

    passed is always equivalent to "no issue has critical severity".
    """

    passed: bool
    score: int = Field(..., ge=0, le=100)
    issues: List[ComplianceIssue] = Field(default_factory=list)
    stage: Optional[ReviewStage] = None

    @model_validator(mode="after")
    def _check_passed_matches_issues(self) -> "ComplianceResult":
        has_critical = any(issue.severity == Severity.CRITICAL for issue in self.issues)
        if self.passed == has_critical:
            raise ValueError(
                f"passed={self.passed} is inconsistent with "
                f"{'a' if has_critical else 'no'} critical issue"
            )
        return self

    @property
    def critical_issues(self) -> List[ComplianceIssue]:
        return [i for i in self.issues if i.severity == Severity.CRITICAL]

    @property
    def warnings(self) -> List[ComplianceIssue]:
        return [i for i in self.issues if i.severity == Severity.WARNING]


def coerce_record(value: Union[Record, Mapping[str, Any]]) -> Record:
    """
    Validate caller input as a Record before any remote call is made.

    Args:
        value: A Record instance or a mapping in the camelCase wire shape

    Returns:
        Validated Record

    Raises:
        RecordValidationError: If required fields are missing or empty
    """
    if isinstance(value, Record):
        return value
    try:
        return Record.model_validate(value)
    except ValidationError as e:
        raise RecordValidationError(f"Malformed record: {e}") from e


def coerce_sections(values: List[Union[Section, Mapping[str, Any]]]) -> List[Section]:
    """Validate a list of sections, rejecting the whole list if any entry is malformed."""
    sections = []
    for index, value in enumerate(values):
        if isinstance(value, Section):
            sections.append(value)
            continue
        try:
            sections.append(Section.model_validate(value))
        except ValidationError as e:
            raise RecordValidationError(f"Malformed section at index {index}: {e}") from e
    return sections

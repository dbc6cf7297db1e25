"""
Positional page model produced by document extraction.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from invoice_parity.models.rules import SpecialFieldDefinition


class Token(BaseModel):
    """A single positioned text fragment from a document page."""

    model_config = ConfigDict(frozen=True)

    text: str = Field(..., description="Text content")
    x: float = Field(..., description="Left edge")
    y: float = Field(..., description="Baseline vertical position")
    width: float = Field(default=0.0, description="Fragment width")
    height: float = Field(default=0.0, description="Fragment height")


class FieldMatch(BaseModel):
    """Tokens of a special field located on one page, sorted by X."""

    model_config = ConfigDict(frozen=True)

    definition: SpecialFieldDefinition
    tokens: List[Token] = Field(default_factory=list)

    @property
    def label(self) -> str:
        return self.definition.label

    @property
    def text(self) -> str:
        return " ".join(token.text for token in self.tokens)

    @property
    def y_values(self) -> List[float]:
        return [token.y for token in self.tokens]


class Page(BaseModel):
    """
    One extracted page.

    ``tokens`` excludes whitespace-only fragments; ``field_matches`` holds the
    special fields located on this page, in definition order.
    """

    model_config = ConfigDict(frozen=True)

    number: int = Field(..., ge=1, description="1-based page number")
    tokens: List[Token] = Field(default_factory=list)
    field_matches: List[FieldMatch] = Field(default_factory=list)

    def find_match(self, label: str) -> Optional[FieldMatch]:
        for match in self.field_matches:
            if match.label == label:
                return match
        return None


class Line(BaseModel):
    """Tokens sharing approximately the same Y, read left to right."""

    model_config = ConfigDict(frozen=True)

    y: float
    text: str

"""
Special field configuration.

A special field is located on a page by a label and compared with a
dedicated policy instead of generic line diffing. Policies form a tagged
union discriminated on ``kind``.
"""

from typing import Annotated, List, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class MustDiffer(BaseModel):
    """The amount at ``index`` on the field's line must change."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["must_differ"] = "must_differ"
    index: int = Field(..., ge=0, description="Token position on the line, left to right")


class MustMatchWhole(BaseModel):
    """The whole line must be identical after whitespace collapsing."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["must_match_whole"] = "must_match_whole"


class Custom(BaseModel):
    """Comparison delegated to a named predicate."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["custom"] = "custom"
    predicate_id: str = Field(..., min_length=1)


FieldPolicy = Annotated[
    Union[MustDiffer, MustMatchWhole, Custom],
    Field(discriminator="kind"),
]


class SpecialFieldDefinition(BaseModel):
    """Static configuration for one special field."""

    model_config = ConfigDict(frozen=True)

    label: str = Field(..., min_length=1, description="Text that locates the field on a page")
    policy: FieldPolicy
    group: str = Field(..., description="Report group the verdict is listed under")


special_field_list = TypeAdapter(List[SpecialFieldDefinition])

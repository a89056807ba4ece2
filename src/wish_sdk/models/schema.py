"""Prompt discovery models for ``GET /api/prompts/schema``."""

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ContextVariable(BaseModel):
    """A named input a prompt accepts."""

    model_config = ConfigDict(extra="ignore")

    name: str
    description: str | None = None


class PromptSchema(BaseModel):
    """Published prompt and the context variables it declares."""

    model_config = ConfigDict(extra="ignore")

    slug: str
    name: str
    description: str | None = None
    required_context_variables: list[ContextVariable] = Field(default_factory=list)
    optional_context_variables: list[ContextVariable] = Field(default_factory=list)

    @field_validator(
        "required_context_variables", "optional_context_variables", mode="before"
    )
    @classmethod
    def coerce_variables(cls, v):
        """Accept bare variable names as well as objects."""
        if v is None:
            return []
        return [{"name": item} if isinstance(item, str) else item for item in v]

    @property
    def required_names(self) -> list[str]:
        return [var.name for var in self.required_context_variables]

    @property
    def optional_names(self) -> list[str]:
        return [var.name for var in self.optional_context_variables]


class SchemaResponse(BaseModel):
    """Envelope returned by the schema endpoint."""

    model_config = ConfigDict(extra="ignore")

    prompts: list[PromptSchema] = Field(default_factory=list)

    def find(self, slug: str) -> PromptSchema | None:
        """Return the prompt with the given slug, if published."""
        for prompt in self.prompts:
            if prompt.slug == slug:
                return prompt
        return None

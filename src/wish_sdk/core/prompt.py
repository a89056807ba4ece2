"""Base class for typed prompt wrappers."""

from typing import TYPE_CHECKING, Any, ClassVar

from pydantic import BaseModel, ConfigDict

if TYPE_CHECKING:
    from wish_sdk.clients.base import PromptApi
    from wish_sdk.core.task import TaskHandle


class PromptModel(BaseModel):
    """A prompt's context variables as validated fields.

    Subclasses (usually generated by ``wish-sdk gen-prompts``) set ``slug``
    and declare one field per context variable:

        class MedicalSummary(PromptModel):
            slug: ClassVar[str] = "medical-summary"

            case_id: str
            document_id: str | None = None

        text = await MedicalSummary(case_id="123").invoke(client)
    """

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    slug: ClassVar[str] = ""

    def to_context_variables(self) -> dict[str, Any]:
        """Field values to send, leaving out unset optional variables."""
        return self.model_dump(exclude_none=True, by_alias=True)

    async def invoke(self, client: "PromptApi", **opts: Any) -> str:
        """Invoke this prompt through ``client``."""
        return await client.invoke(self, **opts)

    def stream(self, client: "PromptApi", **opts: Any) -> "TaskHandle":
        """Stream this prompt through ``client``."""
        return client.stream(self, **opts)

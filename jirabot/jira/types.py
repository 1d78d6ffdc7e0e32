"""Jira types and models for API integration."""
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class JiraIssue(BaseModel):
    """Jira issue as returned by the REST API.

    Field shapes are owned by Jira; the bot only reads them.
    """

    model_config = ConfigDict(frozen=True)

    key: str = Field(..., description="Issue key (e.g., PROJ-123)")
    fields: dict[str, Any] = Field(default_factory=dict, description="Raw Jira fields")

    def field(self, name: str, default: Any = None) -> Any:
        """Get a raw field value, treating explicit nulls as missing."""
        value = self.fields.get(name)
        return default if value is None else value

    @property
    def summary(self) -> str:
        return self.field("summary", "")

    @property
    def description(self) -> Optional[str]:
        return self.field("description")

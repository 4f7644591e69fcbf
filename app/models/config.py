from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class PageOverride(BaseModel):
    """Replacement title and/or description for a single URL."""

    title: Optional[str] = None
    description: Optional[str] = None


class LlmConfig(BaseModel):
    """Contents of ``llm.config.json``.

    Keys are camelCase in the file (``siteName``) and snake_case in Python.
    """

    model_config = ConfigDict(populate_by_name=True)

    site_name: Optional[str] = Field(default=None, alias="siteName")
    site_description: Optional[str] = Field(default=None, alias="siteDescription")
    exclude: List[str] = Field(default_factory=list)
    overrides: Dict[str, PageOverride] = Field(default_factory=dict)

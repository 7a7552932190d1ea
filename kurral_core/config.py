from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from kurral_core.runtime_config import KurralRuntimeConfig


class KurralConfig(BaseModel):
    """
    Configuration for the Kurral Core Engine.
    Decouples the engine from environment variables.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    # Annotation service (LLM)
    openai_api_key: Optional[str] = Field(None, description="OpenAI API Key; absent means heuristics only")
    openai_model: str = Field("gpt-4o-mini", description="Model for text annotation tasks")
    vision_model: str = Field("gpt-4o-mini", description="Model used when the content carries an image")
    fact_check_model: str = Field("gpt-4o", description="Model used for evidence-grounded fact-checking")

    # Persistence
    firestore_project: Optional[str] = Field(None, description="Google Cloud project for the Firestore store")

    # Tunables; loaded from env when not given
    runtime: Optional[KurralRuntimeConfig] = Field(None, description="Runtime knobs (retry, thresholds, limits)")

    @property
    def annotation_enabled(self) -> bool:
        return bool((self.openai_api_key or "").strip())

    def resolved_runtime(self) -> KurralRuntimeConfig:
        return self.runtime or KurralRuntimeConfig.load_from_env()

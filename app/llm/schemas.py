from typing import Any, Dict, Optional
from pydantic import BaseModel, Field


class AugmenterReply(BaseModel):
    """
    What a response augmenter may hand back to the engine.
    Only `message` is required; every override is validated by the engine
    before it touches the merchant record.
    """
    message: str = ""
    stepUpdate: Optional[str] = None
    dataExtracted: Dict[str, Any] = Field(default_factory=dict)
    nextAction: Optional[str] = None

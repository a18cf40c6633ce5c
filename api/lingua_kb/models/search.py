from enum import Enum
from typing import List

from pydantic import BaseModel, Field


class SearchMode(str, Enum):
    VECTOR = "VECTOR"
    FUZZY = "FUZZY"


class SearchResultFields(BaseModel):
    question: str
    answer: str = ""  # Empty for fuzzy results, which only see titles
    tags: List[str] = Field(default_factory=list)
    url: str = ""
    indexed_at: str = ""


class SearchResult(BaseModel):
    """Backend-independent search hit.

    ``relevance_score`` keeps the backend's own scale and is not comparable
    across backends.
    """

    id: str
    relevance_score: float
    fields: SearchResultFields


class SearchResponse(BaseModel):
    query: str  # The keyword that actually produced the results
    results: List[SearchResult] = Field(default_factory=list)

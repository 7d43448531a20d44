# docrepo.py
# Document repositories queried by agent steps before prompting.

import re
from typing import Protocol

from pydantic import BaseModel, Field


class DocRepoQueryResponseItem(BaseModel):
    content: str
    score: float = 0.0
    metadata: dict = Field(default_factory=dict)


class DocRepo(Protocol):
    def query(self, repo_id: str, text: str) -> list[DocRepoQueryResponseItem]: ...


def render_context(items: list[DocRepoQueryResponseItem]) -> str:
    return "\n\n".join(item.content for item in items)


_WORD_RE = re.compile(r"\w+")


def _terms(text: str) -> set[str]:
    return {word.lower() for word in _WORD_RE.findall(text) if len(word) > 2}


class InMemoryDocRepo:
    """Keyword-overlap repository. Good enough for local runs and tests."""

    def __init__(self, max_results: int = 4, min_score: float = 0.1) -> None:
        self.max_results = max_results
        self.min_score = min_score
        self._documents: dict[str, list[tuple[str, dict]]] = {}

    def add_document(self, repo_id: str, content: str, **metadata) -> None:
        self._documents.setdefault(repo_id, []).append((content, metadata))

    def query(self, repo_id: str, text: str) -> list[DocRepoQueryResponseItem]:
        query_terms = _terms(text)
        if not query_terms:
            return []

        items: list[DocRepoQueryResponseItem] = []
        for content, metadata in self._documents.get(repo_id, []):
            score = len(query_terms & _terms(content)) / len(query_terms)
            if score >= self.min_score:
                items.append(DocRepoQueryResponseItem(content=content, score=score, metadata=metadata))

        items.sort(key=lambda item: item.score, reverse=True)
        return items[: self.max_results]

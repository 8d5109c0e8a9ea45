"""Request and response schemas for the HTTP API."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..core.models.chat import (
    ChatContext,
    ChatMessage,
    ChatOptions,
    ChatRequest,
    ContextExtraction,
    ContextType,
    ModelsResponse,
    Selection,
)
from ..core.models.document import IndexReport, SearchResult


class ChatMessageIn(BaseModel):
    role: str
    content: str


class ChatContextIn(BaseModel):
    type: ContextType
    content: str = ""
    path: str = ""


class ChatOptionsIn(BaseModel):
    """Sampling options; out-of-range values are accepted here and dropped later."""
    model_config = ConfigDict(populate_by_name=True)

    temperature: Optional[float] = None
    max_tokens: Optional[int] = Field(None, alias="maxTokens")
    system_prompt: str = Field("", alias="systemPrompt")


class ChatRequestIn(BaseModel):
    message: str = Field(..., description="User message")
    context: Optional[ChatContextIn] = Field(None, description="Context attached by the editor")
    history: list[ChatMessageIn] = Field(default_factory=list, description="Previous turns")
    options: Optional[ChatOptionsIn] = None

    def to_domain(self) -> ChatRequest:
        context = None
        if self.context is not None:
            context = ChatContext(
                type=self.context.type,
                content=self.context.content,
                path=self.context.path,
            )
        options = None
        if self.options is not None:
            options = ChatOptions(
                temperature=self.options.temperature,
                max_tokens=self.options.max_tokens,
                system_prompt=self.options.system_prompt,
            )
        return ChatRequest(
            message=self.message,
            context=context,
            history=[ChatMessage(role=m.role, content=m.content) for m in self.history],
            options=options,
        )


class SelectionIn(BaseModel):
    start: int
    end: int


class ContextRequest(BaseModel):
    type: str = Field(..., description="current_document|selection|knowledge_base")
    path: str = ""
    selection: Optional[SelectionIn] = None

    def domain_selection(self) -> Optional[Selection]:
        if self.selection is None:
            return None
        return Selection(start=self.selection.start, end=self.selection.end)


class SearchRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    query: str = Field(..., description="Search query")
    top_k: Optional[int] = Field(None, alias="topK", gt=0, description="Number of results")


class SearchResultOut(BaseModel):
    id: str
    content: str
    file_path: str
    chunk_index: int
    title: str
    similarity: float

    @classmethod
    def from_result(cls, result: SearchResult) -> "SearchResultOut":
        doc = result.document
        return cls(
            id=doc.id,
            content=doc.content,
            file_path=doc.metadata.file_path,
            chunk_index=doc.metadata.chunk_index,
            title=doc.metadata.title,
            similarity=result.similarity,
        )


class SearchResponse(BaseModel):
    query: str
    results: list[SearchResultOut]
    context: str


class IndexResponse(BaseModel):
    success: bool = True
    documents: int
    files: int
    model: str

    @classmethod
    def from_report(cls, report: IndexReport) -> "IndexResponse":
        return cls(documents=report.documents, files=report.files, model=report.model)


class StatusResponse(BaseModel):
    document_count: int
    indexed: bool
    model: str
    version: str


def context_extraction_to_dict(result: ContextExtraction) -> dict[str, Any]:
    data: dict[str, Any] = {"success": result.success}
    if result.success:
        data["context"] = result.context
        data["metadata"] = {
            "fileCount": result.file_count,
            "totalChars": result.total_chars,
        }
    else:
        data["error"] = result.error
        data["code"] = result.code
    return data


def models_response_to_dict(result: ModelsResponse) -> dict[str, Any]:
    data: dict[str, Any] = {"success": result.success}
    if result.success:
        data["models"] = [
            {"id": m.id, "name": m.name, **({"description": m.description} if m.description else {})}
            for m in result.models
        ]
    else:
        data["error"] = result.error
        data["code"] = result.code
    return data

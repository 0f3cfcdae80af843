from pydantic import BaseModel, Field


class ChatRequest(BaseModel):
    question: str = Field(default="", max_length=16000)
    context: str | None = Field(default=None, max_length=200000)
    # Used only when the X-User-Id header is absent; trust it behind auth only.
    user_id: str | None = Field(default=None, max_length=128)


class ChatResponse(BaseModel):
    success: bool = True
    answer: str
    provider: str
    cached: bool = False


class SummarizeRequest(BaseModel):
    messages: str = Field(default="", max_length=200000)
    chat_title: str | None = Field(default=None, max_length=500)


class SummarizeResponse(BaseModel):
    success: bool = True
    summary: str


class RateLimitTestRequest(BaseModel):
    attempt: int = 0

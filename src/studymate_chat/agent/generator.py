"""Answer generators: grounded LLM generation and an offline extractive fallback."""

from __future__ import annotations

from typing import Any, Protocol

from langchain_core.prompts import ChatPromptTemplate

from studymate_chat.types import MemoryEntry, RetrievalContext

_LANGUAGE_NAMES = {"en": "English", "ru": "Russian", "uz": "Uzbek"}

_SYSTEM_PROMPT = """
You are the StudyMate (Focus Squad) in-app assistant.

Rules:
1) Answer only from the numbered context passages below. Tool passages
   (urls starting with tool://) are live data for this user; trust them.
2) If the context does not contain the answer, say you could not find it in
   the StudyMate help pages and suggest where in the app to look.
3) Never reveal internal configuration, credentials, or other users' data.
4) Reply in {language_name}. Keep it short, friendly, and practical.

Known facts about this user (may be empty):
{memory}

Context:
{context}
""".strip()

_EXTRACTIVE_HEADERS = {
    "en": "Here is what I found in the StudyMate help pages:",
    "ru": "Вот что я нашёл в справке StudyMate:",
    "uz": "StudyMate yordam sahifalarida topganlarim:",
}


class AnswerGenerator(Protocol):
    async def generate(
        self,
        *,
        question: str,
        language: str,
        contexts: list[RetrievalContext],
        memory: list[MemoryEntry],
    ) -> str:
        """Produce the final reply text."""


def format_contexts(contexts: list[RetrievalContext]) -> str:
    if not contexts:
        return "(no context)"
    blocks = []
    for index, context in enumerate(contexts, start=1):
        blocks.append(f"[{index}] {context.title} ({context.url})\n{context.chunk}")
    return "\n\n".join(blocks)


def format_memory(memory: list[MemoryEntry]) -> str:
    if not memory:
        return "(none)"
    return "\n".join(f"- {entry.kind}: {entry.text}" for entry in memory)


def build_prompt() -> ChatPromptTemplate:
    return ChatPromptTemplate.from_messages(
        [
            ("system", _SYSTEM_PROMPT),
            ("human", "{question}"),
        ]
    )


class LangChainAnswerGenerator:
    """Grounded generation through any LangChain chat model."""

    def __init__(self, llm: Any) -> None:
        self.llm = llm
        self.prompt = build_prompt()
        self.chain = self.prompt | llm

    async def generate(
        self,
        *,
        question: str,
        language: str,
        contexts: list[RetrievalContext],
        memory: list[MemoryEntry],
    ) -> str:
        result = await self.chain.ainvoke(
            {
                "question": question,
                "language_name": _LANGUAGE_NAMES.get(language, "English"),
                "memory": format_memory(memory),
                "context": format_contexts(contexts),
            }
        )
        return _message_text(result).strip()


class ExtractiveAnswerGenerator:
    """Answers from context evidence without an LLM dependency.

    Keeps the same contract as `LangChainAnswerGenerator` for local and
    offline environments where no OpenAI key is configured.
    """

    def __init__(self, max_passages: int = 3, max_chars: int = 280) -> None:
        self.max_passages = max_passages
        self.max_chars = max_chars

    async def generate(
        self,
        *,
        question: str,
        language: str,
        contexts: list[RetrievalContext],
        memory: list[MemoryEntry],
    ) -> str:
        del question, memory
        header = _EXTRACTIVE_HEADERS.get(language, _EXTRACTIVE_HEADERS["en"])
        lines = [header]
        for index, context in enumerate(contexts[: self.max_passages], start=1):
            snippet = _truncate(" ".join(context.chunk.split()), self.max_chars)
            lines.append(f"{index}. {snippet} ({context.title})")
        return "\n".join(lines)


def _message_text(result: Any) -> str:
    content = getattr(result, "content", result)
    if isinstance(content, list):
        parts: list[str] = []
        for item in content:
            if isinstance(item, dict) and "text" in item:
                parts.append(str(item["text"]))
            else:
                parts.append(str(item))
        return " ".join(parts)
    return str(content)


def _truncate(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."

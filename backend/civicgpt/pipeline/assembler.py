from dataclasses import dataclass
from typing import Optional, Sequence

from ..models.schemas import EntityContext, PreviousMessage
from .composer import ContextBlock
from .prompts import (
    CONSTITUTIONAL_PREAMBLE,
    CONTEXT_HEADER,
    DEFAULT_PERSONA,
    ENTITY_INSTRUCTION,
    GROUNDING_RULES,
    PLATFORM_FEATURES,
    USER_CONTEXT_SUFFIX,
)


@dataclass(frozen=True)
class ChatMessage:
    role: str
    content: str

    def to_dict(self) -> dict:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class ComposedPrompt:
    preamble: str
    persona: str
    capabilities: str
    context: str
    footer: str
    messages: tuple[ChatMessage, ...]

    @property
    def system_text(self) -> str:
        parts = [self.preamble, self.persona, self.capabilities]
        if self.context:
            parts.append(f"{CONTEXT_HEADER}\n{self.context}")
        if self.footer:
            parts.append(self.footer)
        return "\n\n".join(p for p in parts if p)

    @property
    def has_context(self) -> bool:
        return bool(self.context)

    def openai_messages(self) -> list[dict]:
        return [{"role": "system", "content": self.system_text}, *(m.to_dict() for m in self.messages)]


def entity_fragment(entity: Optional[EntityContext]) -> str:
    """Render the record a turn is scoped to (bill, member or committee page)."""
    if entity is None:
        return ""
    if entity.bill:
        b = entity.bill
        return (
            "BILL INFORMATION:\n"
            f"Bill Number: {b.bill_number or 'Unknown'}\n"
            f"Title: {b.title or 'No title'}\n"
            f"Status: {b.status_desc or 'Unknown'}\n"
            f"Committee: {b.committee or 'No committee assigned'}\n"
            f"Last Action: {b.last_action or 'No recent action'}\n"
            f"Description: {b.description or 'No description'}"
        )
    if entity.member:
        m = entity.member
        return (
            "MEMBER INFORMATION:\n"
            f"Name: {m.name or 'Unknown'}\n"
            f"Party: {m.party or 'Unknown'}\n"
            f"District: {m.district or 'Unknown'}\n"
            f"Chamber: {m.chamber or 'Unknown'}\n"
            f"Role: {m.role or 'Unknown'}\n"
            f"Email: {m.email or 'Not available'}\n"
            f"Phone: {m.phone_capitol or 'Not available'}"
        )
    if entity.committee:
        c = entity.committee
        return (
            "COMMITTEE INFORMATION:\n"
            f"Name: {c.committee_name or 'Unknown'}\n"
            f"Chamber: {c.chamber or 'Unknown'}\n"
            f"Chair: {c.chair_name or 'Unknown'}\n"
            f"Description: {c.description or 'No description'}\n"
            f"Member Count: {c.member_count or 'Unknown'}"
        )
    return ""


def format_history(previous: Sequence[PreviousMessage]) -> list[ChatMessage]:
    return [
        ChatMessage(role="user" if m.role == "user" else "assistant", content=m.content)
        for m in previous
        if m.role and m.content
    ]


class PromptAssembler:
    def __init__(
        self,
        preamble: str = CONSTITUTIONAL_PREAMBLE,
        default_persona: str = DEFAULT_PERSONA,
        capabilities: str = PLATFORM_FEATURES,
        grounding_rules: str = GROUNDING_RULES,
    ):
        self.preamble = preamble
        self.default_persona = default_persona
        self.capabilities = capabilities
        self.grounding_rules = grounding_rules

    def persona_for(self, system_context: Optional[str], entity: Optional[EntityContext]) -> str:
        if system_context:
            return system_context
        fragment = entity_fragment(entity)
        if not fragment:
            return self.default_persona
        return (
            f"{self.default_persona}\n\nSPECIFIC ENTITY INFORMATION:\n{fragment}\n\n{ENTITY_INSTRUCTION}"
        )

    def assemble(
        self,
        text: str,
        context: ContextBlock,
        history: Sequence[PreviousMessage] = (),
        system_context: Optional[str] = None,
        entity: Optional[EntityContext] = None,
    ) -> ComposedPrompt:
        grounded = not context.is_empty
        user_text = f"{text}\n\n{USER_CONTEXT_SUFFIX}" if grounded else text
        messages = (*format_history(history), ChatMessage(role="user", content=user_text))

        return ComposedPrompt(
            preamble=self.preamble,
            persona=self.persona_for(system_context, entity),
            capabilities=self.capabilities,
            context=context.text if grounded else "",
            footer=self.grounding_rules if grounded else "",
            messages=messages,
        )

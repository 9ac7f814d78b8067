"""Prompt assembly for the portfolio assistant.

Assembly is a pure function of its inputs so it can be tested without
calling the model.
"""
from typing import Sequence

from models.conversation import Turn, USER
from models.document import ScoredDocument

NO_DOCUMENTS_PLACEHOLDER = "(no relevant documents found)"
NO_HISTORY_PLACEHOLDER = "(this is the start of the conversation)"


def build_instructions(owner_name: str, assistant_name: str = "Nack") -> str:
    """
    Build the fixed system instructions for the assistant persona.

    Args:
        owner_name: Full name of the site owner the assistant represents
        assistant_name: Name the assistant introduces itself with

    Returns:
        Instruction block placed at the top of every prompt
    """
    first_name = owner_name.split()[0] if owner_name.strip() else owner_name
    return f"""You are {assistant_name}, a professional AI assistant that represents {owner_name} to recruiters, hiring managers and site visitors. Your role is to give accurate, helpful information about {first_name}'s professional background, skills, projects and experience.

Instructions:
- Answer from the documents provided below; they come from {first_name}'s resume, transcripts, project write-ups and profile
- If the documents do not contain the answer, say "I don't have those details" rather than guessing
- Only answer questions about {first_name}; politely steer unrelated questions back to {first_name}'s background
- Keep responses short and conversational (2-3 sentences), with no bullet points or heavy formatting
- Start high level and offer more detail if the visitor wants it
- Refer to {owner_name} as "{first_name}" and keep a professional, friendly tone"""


def format_documents(documents: Sequence[ScoredDocument]) -> str:
    """Serialize retrieved documents in retrieval-rank order."""
    if not documents:
        return NO_DOCUMENTS_PLACEHOLDER

    blocks = []
    for rank, scored in enumerate(documents, start=1):
        doc = scored.document
        blocks.append(f"[{rank}] Source: {doc.source}\n{doc.text.strip()}")
    return "\n\n".join(blocks)


def format_history(history: Sequence[Turn]) -> str:
    """Serialize prior turns in chronological order."""
    if not history:
        return NO_HISTORY_PLACEHOLDER

    lines = []
    for turn in history:
        speaker = "User" if turn.role == USER else "Assistant"
        lines.append(f"{speaker}: {turn.content.strip()}")
    return "\n".join(lines)


def assemble_prompt(
    instructions: str,
    documents: Sequence[ScoredDocument],
    history: Sequence[Turn],
    message: str
) -> str:
    """
    Merge instructions, documents, history and the new message into one prompt.

    Sections always appear in the same order: instructions, documents (rank
    order), history (oldest first), then the new message.

    Args:
        instructions: Fixed system instructions
        documents: Retrieved documents, best match first
        history: Most recent prior turns, oldest first
        message: The new user message

    Returns:
        Complete prompt string
    """
    return f"""{instructions.strip()}

CONTEXT FROM DOCUMENTS:
{format_documents(documents)}

CONVERSATION HISTORY:
{format_history(history)}

QUESTION: {message.strip()}

Answer:"""

"""Prompt contract for grounded answers."""

from typing import List, Optional

from grounded_qa.models.response import FormattedPrompt

TRAILER_LABEL = "Primary Sources:"

SYSTEM_PROMPT = (
    "You are a helpful and professional assistant answering questions about the user's "
    "own documents. Respond concisely using clear Markdown formatting.\n"
    "Use only the provided document context to answer. If the context does not contain "
    "the answer, say so clearly. Do not invent information.\n"
    "Refer to documents by name in your answer; do not print document IDs or chunk "
    "numbers in the answer text.\n"
    "After your answer, ALWAYS end with exactly one final line of the form:\n"
    f"{TRAILER_LABEL} <comma-separated IDs of the documents you actually used>\n"
    f"If you used no document, write \"{TRAILER_LABEL}\" with nothing after it."
)


class PromptFormatter:
    """Formats the system and user messages for a grounded answer."""

    def __init__(self, system_prompt: str = SYSTEM_PROMPT) -> None:
        self.system_prompt = system_prompt

    def format(
        self,
        query: str,
        context_text: str,
        history: Optional[List[dict]] = None,
    ) -> FormattedPrompt:
        """
        Build the prompt for a query.

        Args:
            query: The user question.
            context_text: Assembled document context, possibly empty.
            history: Prior turns as {"role", "content"} dicts.

        Returns:
            Formatted system and user messages.
        """
        parts = []
        if history:
            turns = []
            for item in history:
                role = "User" if item.get("role") == "user" else "Assistant"
                turns.append(f"{role}: {item.get('content', '')}")
            parts.append("## Conversation so far:\n" + "\n\n".join(turns))

        if context_text.strip():
            parts.append(f"## Relevant Document Context:\n{context_text}")
        else:
            parts.append("## Relevant Document Context:\n(no matching documents)")

        parts.append(f"User: {query}")
        return FormattedPrompt(
            system_message=self.system_prompt,
            user_message="\n\n".join(parts),
        )

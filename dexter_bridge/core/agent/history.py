"""
Chat History
============

In-memory conversation history handed to the agent for one turn.
Seeded from the session history store, extended with the current query and answer.
"""

from typing import List, Optional, Iterable

from dexter_bridge.models.schemas import Turn


class ChatHistory:
    """Ordered turns of a conversation, the last one possibly still unanswered."""

    def __init__(self, model: Optional[str] = None) -> None:
        self.model = model
        self._turns: List[Turn] = []

    @property
    def turns(self) -> List[Turn]:
        return list(self._turns)

    def load_turns(self, turns: Iterable[Turn]) -> None:
        """Replace the history with previously stored turns."""
        self._turns = [turn.model_copy() for turn in turns]

    def save_user_query(self, query: str) -> None:
        """Start a new turn for the query; its answer stays empty until saved."""
        self._turns.append(Turn(query=query))

    def save_answer(self, answer: str, summary: Optional[str] = None) -> None:
        """
        Record the answer of the current turn.

        Args:
            answer: Final answer text
            summary: Optional compressed form of the turn for later context windows

        Raises:
            ValueError: If no query was saved first
        """
        if not self._turns or self._turns[-1].answer:
            raise ValueError("save_user_query must be called before save_answer")
        self._turns[-1] = self._turns[-1].model_copy(update={"answer": answer, "summary": summary})

    def last_turn(self) -> Optional[Turn]:
        return self._turns[-1] if self._turns else None

    def __len__(self) -> int:
        return len(self._turns)

"""Speaker tag to conversational role mapping.

Providers label speakers with opaque tags ("A", "B", ...). The mapping
from tag to role is a convention about how the dialler mixes channels,
not something the provider guarantees, so it is injectable.
"""

from __future__ import annotations

from call_processor.asr.interface import Utterance, Word

AGENT_ROLE = "Agent"
CUSTOMER_ROLE = "Customer"


class SpeakerRoleMap:
    """Maps speaker tags onto two roles.

    The primary tag maps to primary_role; every other tag, including a
    third or fourth speaker, maps to secondary_role.

    Args:
        primary_tag: Tag of the agent. When None, the first tag seen in the
            transcript is taken as the agent.
        primary_role: Role name for the primary tag.
        secondary_role: Role name for every other tag.
    """

    def __init__(
        self,
        primary_tag: str | None = "A",
        primary_role: str = AGENT_ROLE,
        secondary_role: str = CUSTOMER_ROLE,
    ) -> None:
        self.primary_tag = primary_tag
        self.primary_role = primary_role
        self.secondary_role = secondary_role

    def __call__(self, tag: str | None, primary_tag: str | None = None) -> str:
        effective = primary_tag if primary_tag is not None else self.primary_tag
        if tag is not None and tag == effective:
            return self.primary_role
        return self.secondary_role

    def apply(self, utterances: list[Utterance], words: list[Word]) -> None:
        """Set speaker_role on every utterance, its words, and loose words."""
        primary = self.primary_tag
        if primary is None:
            primary = _first_tag(utterances, words)

        for utterance in utterances:
            utterance.speaker_role = self(utterance.speaker, primary)
            for word in utterance.words:
                word.speaker_role = self(word.speaker or utterance.speaker, primary)
        for word in words:
            word.speaker_role = self(word.speaker, primary)


def _first_tag(utterances: list[Utterance], words: list[Word]) -> str | None:
    for utterance in utterances:
        if utterance.speaker:
            return utterance.speaker
    for word in words:
        if word.speaker:
            return word.speaker
    return None

"""Tests for speaker tag to role mapping."""

from call_processor.asr.interface import Utterance, Word
from call_processor.asr.roles import AGENT_ROLE, CUSTOMER_ROLE, SpeakerRoleMap


def _utterances(*tags):
    return [Utterance(speaker=tag, text=f"from {tag}") for tag in tags]


class TestSpeakerRoleMap:
    """Tests for SpeakerRoleMap."""

    def test_default_a_is_agent(self):
        role_map = SpeakerRoleMap()
        assert role_map("A") == AGENT_ROLE
        assert role_map("B") == CUSTOMER_ROLE

    def test_untagged_is_secondary(self):
        assert SpeakerRoleMap()(None) == CUSTOMER_ROLE

    def test_extra_speakers_collapse_to_customer(self):
        utterances = _utterances("A", "B", "C")
        SpeakerRoleMap().apply(utterances, [])
        assert [u.speaker_role for u in utterances] == [
            AGENT_ROLE,
            CUSTOMER_ROLE,
            CUSTOMER_ROLE,
        ]

    def test_first_speaker_is_agent_when_unset(self):
        utterances = _utterances("B", "A", "B")
        SpeakerRoleMap(primary_tag=None).apply(utterances, [])
        assert [u.speaker_role for u in utterances] == [
            AGENT_ROLE,
            CUSTOMER_ROLE,
            AGENT_ROLE,
        ]

    def test_nested_words_inherit_utterance_speaker(self):
        utterance = Utterance(
            speaker="A",
            text="Hello there",
            words=[Word(text="Hello"), Word(text="there", speaker="B")],
        )
        SpeakerRoleMap().apply([utterance], [])
        assert utterance.words[0].speaker_role == AGENT_ROLE
        assert utterance.words[1].speaker_role == CUSTOMER_ROLE

    def test_loose_words_are_mapped(self):
        words = [Word(text="hi", speaker="B"), Word(text="yo", speaker="A")]
        SpeakerRoleMap(primary_tag=None).apply([], words)
        assert [w.speaker_role for w in words] == [CUSTOMER_ROLE, AGENT_ROLE]

    def test_custom_role_names(self):
        role_map = SpeakerRoleMap(
            primary_tag="1", primary_role="Rep", secondary_role="Caller"
        )
        assert role_map("1") == "Rep"
        assert role_map("2") == "Caller"

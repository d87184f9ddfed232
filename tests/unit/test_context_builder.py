"""Unit tests for context assembly and fact extraction."""

from widget.core.context_builder import (
    PERSONA_INSTRUCTION,
    apply_user_facts,
    build_context,
    detect_language,
    extract_topics,
    extract_user_facts,
    extract_profile_facts,
    is_question,
)


class TestExtractUserFacts:

    def test_name_from_pattern(self):
        assert extract_user_facts("My name is Alex.").name == "Alex"

    def test_short_bare_reply_is_name(self):
        assert extract_user_facts("Sam!").name == "Sam"

    def test_long_reply_is_not_name(self):
        assert extract_user_facts("tell me something fun").name is None

    def test_topics(self):
        facts = extract_user_facts("Can you help with physics and music?")
        assert facts.topics == {"physics", "music"}


class TestHelpers:

    def test_extract_topics_in_vocabulary_order(self):
        assert extract_topics("music and math") == ["math", "music"]

    def test_is_question(self):
        assert is_question("Where is Paris?")
        assert is_question("how do magnets work")
        assert not is_question("I like cats")

    def test_detect_language(self):
        assert detect_language("Hola, gracias") == "es"
        assert detect_language("Bonjour") == "fr"
        assert detect_language("Hello there") is None

    def test_profile_facts(self):
        facts = extract_profile_facts("My favorite color is Blue and I live in Lisbon")
        assert facts["favorite_color"] == "blue"
        assert facts["location"] == "Lisbon"


class TestApplyUserFacts:

    def test_merges_topics_without_duplicates(self, store):
        session = store.create_session()
        store.update_user_info(session.session_id, **apply_user_facts(session, "I love math"))
        store.update_user_info(session.session_id, **apply_user_facts(session, "more math and art"))
        context = session.user_info.context
        assert context.topics == ["math", "art"]
        assert context.last_topic == "math"

    def test_logs_questions(self, store):
        session = store.create_session()
        update = apply_user_facts(session, "Why is the sky blue?")
        assert update["context"].questions == ["Why is the sky blue?"]
        assert session.user_info.context.questions == []

    def test_detects_language_only_when_unset(self, store):
        session = store.create_session()
        assert apply_user_facts(session, "hola amigo")["language"] == "es"
        store.update_user_info(session.session_id, language="en")
        assert "language" not in apply_user_facts(session, "hola amigo")


class TestBuildContext:

    def test_persona_and_open_cue(self, store):
        session = store.create_session(greeting="Hi! What's your name?")
        context = build_context(session, "Hello")
        assert context.startswith(PERSONA_INSTRUCTION)
        assert context.endswith("\n\nUser: Hello\nIntelliBuddy:")
        assert "IntelliBuddy: Hi! What's your name?" in context

    def test_no_history_section_when_empty(self, store):
        session = store.create_session()
        session.messages.clear()
        assert "Conversation history:" not in build_context(session, "Hello")

    def test_quick_reply_instruction(self, store):
        session = store.create_session()
        store.update_user_info(session.session_id, name="Sam")
        context = build_context(session, "Tell me more", is_quick_reply=True)
        assert "quick reply button" in context
        assert 'name is ONLY "Sam"' in context

    def test_first_interaction_vs_later(self, store):
        session = store.create_session()
        store.update_user_info(session.session_id, name="Sam")
        assert "FIRST conversation" in build_context(session, "hi")
        for i in range(4):
            store.add_message(session.session_id, f"m{i}", "user")
        later = build_context(session, "hi")
        assert "FIRST conversation" not in later
        assert "Address them by name occasionally" in later

    def test_language_directive(self, store):
        session = store.create_session()
        store.update_user_info(session.session_id, language="es")
        assert "Respond only in Spanish language." in build_context(session, "hola")
        store.update_user_info(session.session_id, language="en")
        assert "Respond only in" not in build_context(session, "hello")

    def test_topics_in_context(self, store):
        session = store.create_session()
        store.update_user_info(session.session_id, **apply_user_facts(session, "teach me physics"))
        context = build_context(session, "next")
        assert "previously asked about: physics" in context
        assert "most recent topic of interest was physics" in context

    def test_history_window_and_reaction_acks(self, store):
        session = store.create_session()
        for i in range(10):
            store.add_message(session.session_id, f"turn {i}", "user")
        store.add_message(session.session_id, "Glad you liked it!", "bot", is_reaction_response=True)
        context = build_context(session, "now", max_messages=3)
        assert "User: turn 9" in context
        assert "User: turn 7" in context
        assert "User: turn 6" not in context
        assert "Glad you liked it!" not in context

    def test_local_notices_excluded(self, store):
        session = store.create_session(greeting="Hi! What's your name?")
        store.add_message(session.session_id, "What time is it?", "user")
        store.add_message(session.session_id, "That doesn't seem like a name.", "bot", is_local_notice=True)
        context = build_context(session, "now")
        assert "User: What time is it?" in context
        assert "seem like a name" not in context
        assert "IntelliBuddy: Hi! What's your name?" in context

    def test_pure(self, store):
        session = store.create_session()
        before = session.model_dump()
        build_context(session, "hello", is_quick_reply=True)
        assert session.model_dump() == before

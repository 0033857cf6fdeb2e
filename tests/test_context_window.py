from timeline_chat.chat.entity.chat import WireMessage
from timeline_chat.llm.service.context_window import ContextWindowManager, estimate_tokens


def user(text):
    return WireMessage(role="user", content=text)


def assistant(text):
    return WireMessage(role="assistant", content=text)


def test_estimate_tokens_uses_four_chars_per_token():
    assert estimate_tokens("") == 0
    assert estimate_tokens(None) == 0
    assert estimate_tokens("abcd") == 1
    assert estimate_tokens("abcde") == 2


def test_estimate_counts_system_prompt_and_message_overhead():
    manager = ContextWindowManager(reserved_output_tokens=1000)
    assert manager.estimate([user("abcd")], system_prompt="abcdefgh") == 2 + 1 + 4


def test_estimate_is_monotonic_when_messages_are_added():
    manager = ContextWindowManager()
    history = []
    previous = manager.estimate(history, "system")
    for i in range(20):
        history.append(user("x" * i) if i % 2 == 0 else assistant(""))
        current = manager.estimate(history, "system")
        assert current >= previous
        previous = current


def test_budget_reserves_output_tokens_capped_at_half_window():
    assert ContextWindowManager(1000).budget("llama2") == 4096 - 1000
    assert ContextWindowManager(10000).budget("llama2") == 2048
    assert ContextWindowManager(1000).budget("claude-4-sonnet") == 199000


def test_unknown_model_uses_family_default_window():
    manager = ContextWindowManager(0)
    assert manager.context_window("gpt-5-preview") == 16385
    assert manager.context_window("some-local-model") == 4096


def test_compress_returns_input_when_it_fits():
    manager = ContextWindowManager(1000)
    messages = [user("hi"), assistant("hello"), user("how are you?")]

    result = manager.compress(messages, "llama2", "system")

    assert result == messages
    assert result is not messages


def test_compress_drops_oldest_turns_and_starts_at_user_turn():
    manager = ContextWindowManager(1000)
    big = "x" * 4000  # ~1000 tokens
    messages = [user(big), assistant(big), user(big), assistant(big), user("latest question")]

    result = manager.compress(messages, "llama2", "system prompt")

    assert manager.fits(result, "llama2", "system prompt")
    assert result[0].role == "user"
    assert result[-1] == messages[-1]
    assert result == messages[len(messages) - len(result):]
    assert len(result) == 3


def test_compress_keeps_latest_user_turn_even_when_it_alone_is_too_big():
    manager = ContextWindowManager(1000)
    huge = "y" * 40000
    messages = [user("old"), assistant("reply"), user(huge)]

    result = manager.compress(messages, "llama2", "system")

    assert result == [messages[-1]]


def test_compress_without_user_turns_keeps_fitting_tail():
    manager = ContextWindowManager(1000)
    big = "z" * 8000  # ~2000 tokens each, budget 3096
    messages = [assistant(big), assistant(big), assistant("tail")]

    result = manager.compress(messages, "llama2")

    assert result == messages[1:]


def test_compress_is_idempotent():
    manager = ContextWindowManager(1000)
    big = "x" * 4000
    cases = [
        [user(big), assistant(big), user(big), assistant(big), user("q")],
        [user("a"), assistant("b"), user("y" * 40000)],
        [assistant(big), assistant(big), assistant(big), assistant(big)],
        [],
    ]
    for messages in cases:
        once = manager.compress(messages, "llama2", "system")
        assert manager.compress(once, "llama2", "system") == once

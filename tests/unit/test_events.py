from persona_gateway.core.events import ContentEvent, DoneEvent, ErrorEvent, is_terminal, sse_frame


def test_sse_frame_shapes() -> None:
    assert sse_frame(ContentEvent("héllo")) == 'data: {"content": "héllo"}\n\n'
    assert sse_frame(ErrorEvent("boom")) == 'data: {"error": "boom"}\n\n'
    assert (
        sse_frame(DoneEvent(model="sonar", provider="perplexity", citations=()))
        == 'data: {"done": true, "model": "sonar", "provider": "perplexity", "citations": []}\n\n'
    )


def test_done_omits_citations_unless_set() -> None:
    assert DoneEvent(model="gpt-4o-mini").as_dict() == {"done": True, "model": "gpt-4o-mini"}


def test_terminal_events() -> None:
    assert not is_terminal(ContentEvent("x"))
    assert is_terminal(DoneEvent(model="m"))
    assert is_terminal(ErrorEvent("e"))

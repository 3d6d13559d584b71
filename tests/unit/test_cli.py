import io

from toolstream.cli import PROMPT, Renderer, build_parser, main
from toolstream.events import ContentEvent, MessageEvent, StatusEvent


def _render(*events):
    out = io.StringIO()
    renderer = Renderer(out)
    for event in events:
        renderer.render(event)
    return out.getvalue()


def test_streamed_answer():
    output = _render(
        StatusEvent(status="Thinking..."),
        ContentEvent(text="Two "),
        ContentEvent(text="files."),
        MessageEvent(role="assistant", content="Two files."),
        StatusEvent(status=None),
    )
    assert output == f"(Thinking...)\nTwo files.\n{PROMPT}"


def test_tool_round():
    output = _render(
        MessageEvent(role="assistant", content="", tool_calls=["list_directory"]),
        StatusEvent(status="Executing list_directory..."),
        MessageEvent(role="tool", content="output: a.txt"),
    )
    assert output == (
        "[tools: list_directory]\n"
        "(Executing list_directory...)\n"
        "output: a.txt\n"
    )


def test_error_after_partial_text():
    output = _render(
        ContentEvent(text="partial"),
        MessageEvent(role="system", content="Error: reset"),
    )
    assert output == "partial\nError: reset\n"


def test_user_echo_is_suppressed():
    assert _render(MessageEvent(role="user", content="hi")) == ""


def test_parser_options():
    args = build_parser().parse_args(["--model", "llama3", "--max-rounds", "4", "--no-tools"])
    assert args.model == "llama3"
    assert args.max_rounds == 4
    assert args.no_tools is True
    assert args.base_url is None


def test_main_without_api_key(monkeypatch, tmp_path, capsys):
    monkeypatch.delenv("OPEN_WEBUI_API_KEY", raising=False)
    monkeypatch.chdir(tmp_path)
    assert main([]) == 1
    assert "OPEN_WEBUI_API_KEY" in capsys.readouterr().err

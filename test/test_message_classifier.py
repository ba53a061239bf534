import pytest

from classification.message_classifier import (
    Command,
    CommandKind,
    NeedsExtraction,
    classify_message,
)


@pytest.mark.parametrize(
    "text, kind, argument",
    [
        ("#ping", CommandKind.PING, None),
        ("  #PING  ", CommandKind.PING, None),
        ("#tugas", CommandKind.LIST, None),
        ("#list", CommandKind.LIST, None),
        ("#todo", CommandKind.TODO, None),
        ("#today", CommandKind.TODAY, None),
        ("#week", CommandKind.WEEK, None),
        ("#minggu", CommandKind.WEEK, None),
        ("#undo", CommandKind.UNDO, None),
        ("#help", CommandKind.HELP, None),
        ("#bantuan", CommandKind.HELP, None),
        ("#3", CommandKind.EXPAND, 3),
        ("#tugas 2", CommandKind.EXPAND, 2),
        ("#detail 4", CommandKind.EXPAND, 4),
        ("#done 2", CommandKind.DONE, 2),
        ("#selesai 1", CommandKind.DONE, 1),
    ],
)
def test_commands(text, kind, argument):
    cmd = classify_message(text, "#")
    assert isinstance(cmd, Command)
    assert cmd.kind is kind
    assert cmd.argument == argument


@pytest.mark.parametrize(
    "text, raw",
    [
        ("#tugass", "#tugass"),
        ("#done", "#done"),
        ("#expand x", "#expand"),
        ("#ping 2", "#ping"),
        ("#done 1 2", "#done"),
        ("#undo 2", "#undo"),
        ("#", "#"),
    ],
)
def test_unknown_commands(text, raw):
    cmd = classify_message(text, "#")
    assert cmd.kind is CommandKind.UNKNOWN
    assert cmd.raw == raw


def test_plain_text_goes_to_extraction():
    assert classify_message("Tugas LKP 14 deadline besok", "#") == NeedsExtraction("Tugas LKP 14 deadline besok")


def test_custom_prefix():
    assert classify_message("!ping", "!").kind is CommandKind.PING
    assert isinstance(classify_message("#ping", "!"), NeedsExtraction)

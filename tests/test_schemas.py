import uuid

from pasteshare.web.app.models import Block, Paste
from pasteshare.web.app.schemas import serialize_paste, serialize_preview


def make_paste(**kwargs):
    fields = dict(id=uuid.uuid4(), title="t", content="", is_jupyter_style=False, views=0)
    fields.update(kwargs)
    return Paste(**fields)


def test_preview_of_paste_with_blocks_is_jupyter_style():
    paste = make_paste()
    paste.blocks.append(Block(content="first cell", language="python", order=0))

    preview = serialize_preview(paste)

    assert preview["isJupyterStyle"] is True
    assert preview["content"] == "first cell"
    assert preview["isJupyterStyle"] == serialize_paste(paste, include_files=False)["isJupyterStyle"]


def test_preview_of_flat_paste():
    preview = serialize_preview(make_paste(content="plain text"))

    assert preview["isJupyterStyle"] is False
    assert preview["content"] == "plain text"


def test_preview_hides_protected_content():
    paste = make_paste(password_hash="hash")
    paste.blocks.append(Block(content="secret", order=0))

    preview = serialize_preview(paste)

    assert preview["content"] == ""
    assert preview["isPasswordProtected"] is True

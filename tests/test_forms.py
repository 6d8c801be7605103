"""Test form negotiation helpers."""
from hub.forms import ActionForm, FieldType, FormField, FormOption
from hub.models import ActionState


def _form():
    return ActionForm(fields=[
        FormField(name="address", required=True),
        FormField(
            name="drive",
            type=FieldType.SELECT,
            interactive=True,
            options=[FormOption(name="mydrive", label="My Drive")],
        ),
        FormField(name="filename"),
    ])


def test_missing_required():
    form = _form()
    assert form.missing_required({}) == ["address"]
    assert form.missing_required({"address": ""}) == ["address"]
    assert form.missing_required({"address": "https://x.test/"}) == []


def test_interactive_pending_without_value():
    form = _form()
    assert form.interactive_pending({}) == ["drive"]
    assert form.interactive_pending({"drive": "mydrive"}) == []


def test_get_field_and_add():
    form = ActionForm()
    form.add(FormField(name="a")).add(FormField(name="b"))
    assert [f.name for f in form.fields] == ["a", "b"]
    assert form.get_field("b").name == "b"
    assert form.get_field("zzz") is None


def test_as_json_omits_unset_values():
    form = ActionForm(fields=[FormField(name="login", type=FieldType.OAUTH_LINK_GOOGLE, oauth_url="https://x")])
    form.state = ActionState(data="sealed")
    body = form.as_json()
    assert body["state"] == {"data": "sealed"}
    assert "error" not in body
    field = body["fields"][0]
    assert field["type"] == "oauth_link_google"
    assert field["oauth_url"] == "https://x"
    assert "default" not in field


def test_error_form():
    body = ActionForm(error="Authorization failed.").as_json()
    assert body == {"fields": [], "error": "Authorization failed."}

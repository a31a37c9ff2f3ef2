import pytest
from starlette.requests import Request

from app.models import User
from app.services.i18n import detect_language, localize, normalize_text


def make_request(query=b"", headers=None):
    return Request({
        "type": "http",
        "method": "GET",
        "path": "/",
        "query_string": query,
        "headers": [(k.encode(), v.encode()) for k, v in (headers or {}).items()],
    })


def test_localize_falls_back_to_english():
    text = {"en": "Burger", "es": "Hamburguesa"}
    assert localize(text, "es") == "Hamburguesa"
    assert localize(text, "ca") == "Burger"
    assert localize("Plain", "ar") == "Plain"
    assert localize(None, "es") == ""


def test_normalize_text():
    assert normalize_text(" Pizza ") == {"en": "Pizza"}
    assert normalize_text({"en": "Pizza", "es": "Pizza ES", "fr": "ignored"}) == {"en": "Pizza", "es": "Pizza ES"}
    with pytest.raises(ValueError):
        normalize_text({"es": "Solo español"})


def test_query_parameter_wins():
    request = make_request(b"lang=ca", {"accept-language": "es-ES,es;q=0.9"})
    assert detect_language(request) == "ca"


def test_accept_language_then_x_language():
    assert detect_language(make_request(headers={"accept-language": "ar-SA,ar;q=0.9"})) == "ar"
    assert detect_language(make_request(headers={"accept-language": "fr-FR", "x-language": "es"})) == "es"


def test_user_preference_then_default():
    user = User(preferred_language="ca")
    assert detect_language(make_request(), user) == "ca"
    assert detect_language(make_request(b"lang=xx")) == "en"

from datetime import datetime, timezone

from telethon import types

from demobot.utils import extract_text, get_content_type, is_broadcast_post, to_json
from tests.conftest import make_message


def test_content_types():
    assert get_content_type(make_message()) == "text"
    assert get_content_type(make_message(media=types.MessageMediaPhoto())) == "image"
    assert get_content_type(make_message(media=types.MessageMediaWebPage(webpage=types.WebPageEmpty(id=1)))) == "extended_text"
    assert get_content_type(make_message(media=types.MessageMediaGeo(geo=types.GeoPointEmpty()))) == "location"


def test_sticker_documents_are_not_images():
    document = types.Document(
        id=1, access_hash=2, file_reference=b"", date=None, mime_type="image/webp", size=8, dc_id=2,
        attributes=[types.DocumentAttributeSticker(alt="", stickerset=types.InputStickerSetEmpty())],
    )

    assert get_content_type(make_message(media=types.MessageMediaDocument(document=document))) == "sticker"


def test_extract_text_prefers_first_non_empty():
    assert extract_text(make_message(text="hello")) == "hello"
    assert extract_text(make_message(text="")) is None
    assert extract_text(make_message(text="caption", media=types.MessageMediaPhoto())) is None


def test_broadcast_detection():
    assert is_broadcast_post(make_message(post=True))
    assert is_broadcast_post(make_message(is_channel=True))
    assert not is_broadcast_post(make_message(is_channel=True, is_group=True))
    assert not is_broadcast_post(make_message())


def test_to_json_handles_dates_and_bytes():
    text = to_json({"when": datetime(2024, 1, 2, tzinfo=timezone.utc), "blob": b"\x00\x01"}, indent=None)

    assert text == '{"when": "2024-01-02T00:00:00+00:00", "blob": "AAE="}'

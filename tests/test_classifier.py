"""Tests for attachment classification."""

import pytest

from services.classifier import AttachmentClassifier
from services.error import UnknownMimeType, UnsupportedAttachmentKind
from services.message import (
    AttachmentKind,
    IncomingMessage,
    MediaFile,
    PhotoSize,
    StickerFile,
)
from services.mime import DEFAULT_MIME_TABLE

CHANNEL = -100123


@pytest.fixture
def classifier():
    return AttachmentClassifier(DEFAULT_MIME_TABLE)


def test_text_only_message_has_no_attachments(classifier):
    refs, errors = classifier.classify(IncomingMessage(CHANNEL, text="hello"))
    assert refs == []
    assert errors == []


def test_audio_named_from_unique_id_and_mime(classifier):
    msg = IncomingMessage(CHANNEL, audio=MediaFile("fid", "abc", mime_type="audio/mpeg"))
    refs, errors = classifier.classify(msg)
    assert errors == []
    assert len(refs) == 1
    assert refs[0].file_name == "abc.mp3"
    assert refs[0].kind is AttachmentKind.AUDIO
    assert refs[0].file_id == "fid"


def test_audio_ignores_platform_name(classifier):
    msg = IncomingMessage(CHANNEL, audio=MediaFile("fid", "abc", file_name="song.mp3",
                                                   mime_type="audio/ogg"))
    refs, _ = classifier.classify(msg)
    assert refs[0].file_name == "abc.ogg"


def test_audio_without_mime_is_a_kind_failure(classifier):
    msg = IncomingMessage(CHANNEL, text="caption", audio=MediaFile("fid", "abc"))
    refs, errors = classifier.classify(msg)
    assert refs == []
    assert len(errors) == 1
    assert isinstance(errors[0], UnknownMimeType)
    assert errors[0].kind is AttachmentKind.AUDIO


def test_audio_with_unknown_mime_is_a_kind_failure(classifier):
    msg = IncomingMessage(CHANNEL, audio=MediaFile("fid", "abc", mime_type="audio/x-nope"))
    refs, errors = classifier.classify(msg)
    assert refs == []
    assert errors[0].mime_type == "audio/x-nope"


def test_voice_named_like_audio(classifier):
    msg = IncomingMessage(CHANNEL, voice=MediaFile("fid", "v1", mime_type="audio/ogg", file_size=900))
    refs, _ = classifier.classify(msg)
    assert refs[0].file_name == "v1.ogg"
    assert refs[0].kind is AttachmentKind.VOICE
    assert refs[0].file_size == 900


def test_document_keeps_platform_name(classifier):
    msg = IncomingMessage(CHANNEL, document=MediaFile("fid", "d1", file_name="report.pdf",
                                                      mime_type="application/pdf", file_size=2048))
    refs, _ = classifier.classify(msg)
    assert refs[0].file_name == "report.pdf"
    assert refs[0].file_size == 2048


def test_document_with_name_needs_no_mime(classifier):
    msg = IncomingMessage(CHANNEL, document=MediaFile("fid", "d1", file_name="notes.bin"))
    refs, errors = classifier.classify(msg)
    assert [r.file_name for r in refs] == ["notes.bin"]
    assert errors == []


def test_document_without_name_uses_mime(classifier):
    msg = IncomingMessage(CHANNEL, document=MediaFile("fid", "d1", mime_type="application/zip"))
    refs, _ = classifier.classify(msg)
    assert refs[0].file_name == "d1.zip"


def test_document_without_name_or_mime_fails(classifier):
    msg = IncomingMessage(CHANNEL, document=MediaFile("fid", "d1"))
    refs, errors = classifier.classify(msg)
    assert refs == []
    assert errors[0].kind is AttachmentKind.DOCUMENT


@pytest.mark.parametrize("field,kind", [("video", AttachmentKind.VIDEO),
                                        ("animation", AttachmentKind.ANIMATION)])
def test_video_and_animation_follow_document_rule(classifier, field, kind):
    named = IncomingMessage(CHANNEL, **{field: MediaFile("fid", "u1", file_name="clip.mp4")})
    unnamed = IncomingMessage(CHANNEL, **{field: MediaFile("fid", "u1", mime_type="video/mp4")})

    assert classifier.classify(named).refs[0].file_name == "clip.mp4"
    ref = classifier.classify(unnamed).refs[0]
    assert ref.file_name == "u1.mp4"
    assert ref.kind is kind


def test_photo_keeps_only_largest_variant(classifier):
    photos = [
        PhotoSize("f10", "u10", 90, 90, file_size=10),
        PhotoSize("f40", "u40", 320, 320, file_size=40),
        PhotoSize("f100", "u100", 1280, 1280, file_size=100),
    ]
    refs, _ = classifier.classify(IncomingMessage(CHANNEL, photos=photos))
    assert len(refs) == 1
    assert refs[0].file_id == "f100"
    assert refs[0].file_name == "u100.jpg"
    assert refs[0].file_size == 100


def test_static_sticker_is_png(classifier):
    msg = IncomingMessage(CHANNEL, sticker=StickerFile("fid", "s1"))
    assert classifier.classify(msg).refs[0].file_name == "s1.png"


def test_video_sticker_is_webm(classifier):
    msg = IncomingMessage(CHANNEL, sticker=StickerFile("fid", "s1", is_video=True))
    assert classifier.classify(msg).refs[0].file_name == "s1.webm"


def test_animated_sticker_is_unsupported(classifier):
    msg = IncomingMessage(CHANNEL, text="look", sticker=StickerFile("fid", "s1", is_animated=True))
    refs, errors = classifier.classify(msg)
    assert refs == []
    assert len(errors) == 1
    assert isinstance(errors[0], UnsupportedAttachmentKind)


def test_failing_kind_does_not_block_others(classifier):
    msg = IncomingMessage(
        CHANNEL,
        photos=[PhotoSize("p", "pu", file_size=5)],
        audio=MediaFile("a", "au"),  # no mime
        sticker=StickerFile("s", "su", is_animated=True),
        video=MediaFile("v", "vu", mime_type="video/webm"),
    )
    refs, errors = classifier.classify(msg)
    assert [r.file_name for r in refs] == ["pu.jpg", "vu.webm"]
    assert [e.kind for e in errors] == [AttachmentKind.AUDIO, AttachmentKind.STICKER]


def test_emission_order(classifier):
    msg = IncomingMessage(
        CHANNEL,
        animation=MediaFile("g", "gu", mime_type="video/mp4"),
        video=MediaFile("v", "vu", mime_type="video/mp4"),
        sticker=StickerFile("s", "su"),
        document=MediaFile("d", "du", file_name="a.txt"),
        voice=MediaFile("vo", "vou", mime_type="audio/ogg"),
        audio=MediaFile("a", "au", mime_type="audio/mpeg"),
        photos=[PhotoSize("p", "pu")],
    )
    kinds = [r.kind for r in classifier.classify(msg).refs]
    assert kinds == [
        AttachmentKind.PHOTO,
        AttachmentKind.AUDIO,
        AttachmentKind.VOICE,
        AttachmentKind.DOCUMENT,
        AttachmentKind.STICKER,
        AttachmentKind.VIDEO,
        AttachmentKind.ANIMATION,
    ]

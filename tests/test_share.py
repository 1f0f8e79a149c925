from rpcxkit import share
from rpcxkit.share import (
    REQ_META_DATA_KEY,
    ContextKey,
    FileTransferArgs,
    FileTransferReply,
    StreamServiceArgs,
    register_codec,
)


class MockCodec:
    def encode(self, obj):
        return b""

    def decode(self, data, obj):
        return None


def test_register_codec_adds_one():
    before = len(share.CODECS)
    codec = MockCodec()
    try:
        register_codec(127, codec)
        assert len(share.CODECS) == before + 1
        assert share.CODECS[127] is codec
    finally:
        share.CODECS.pop(127, None)


def test_register_codec_replaces_same_type():
    try:
        register_codec(126, MockCodec())
        count = len(share.CODECS)
        replacement = MockCodec()
        register_codec(126, replacement)
        assert len(share.CODECS) == count
        assert share.CODECS[126] is replacement
    finally:
        share.CODECS.pop(126, None)


def test_context_key_is_distinct_from_string():
    table = {"__req_metadata": 1}
    assert REQ_META_DATA_KEY not in table
    assert ContextKey("__req_metadata") == REQ_META_DATA_KEY
    assert str(REQ_META_DATA_KEY) == "__req_metadata"


def test_dataclass_defaults_are_independent():
    first = FileTransferArgs()
    second = FileTransferArgs()
    first.meta["k"] = "v"
    assert second.meta == {}
    assert StreamServiceArgs().meta == {}
    assert FileTransferReply() == FileTransferReply(token=b"", addr="")
import pytest

from sparkplug_queue.exceptions import InvalidMessage
from sparkplug_queue.helpers.serialization import pack_payload, unpack_payload


def test_helpers_pack_payload():
    assert pack_payload({"v": 42}) == '{"v":42}'
    assert pack_payload(None) == "null"
    assert pack_payload("ümlaut") == '"\\u00fcmlaut"'
    assert unpack_payload(pack_payload("ümlaut")) == "ümlaut"

    # lone surrogates are escaped instead of failing on encoding
    assert pack_payload("\ud800") == '"\\ud800"'
    assert unpack_payload(pack_payload("\ud800")) == "\ud800"

    payload = {"metrics": [{"name": "temp", "value": 21.5}], "seq": 0}
    assert unpack_payload(pack_payload(payload)) == payload


def test_helpers_pack_payload_invalid():
    with pytest.raises(InvalidMessage):
        pack_payload({1, 2})
    with pytest.raises(InvalidMessage):
        pack_payload(float("inf"))

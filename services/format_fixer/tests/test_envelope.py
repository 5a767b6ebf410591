import json
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from services.format_fixer.src import codecs
from services.format_fixer.src.codecs import FieldCodec, PASS_THROUGH, codec_for, parse_rfc3339
from services.format_fixer.src.envelope import decode, decode_notification, decode_record, encode
from services.format_fixer.src.exceptions import DecodeError, DecodeErrorKind, EncodeError, EncodeErrorKind
from services.format_fixer.src.normalizer import normalize
from services.format_fixer.src.schemas import AttributePlaceholder, Envelope, Notification


def _envelope_json(**sns) -> str:
    sns.setdefault("timestamp", "2023-01-01T00:00:00.000Z")
    return json.dumps({"eventVersion": 1.0, "eventSource": "aws:sns", "sns": sns})


# Timestamp codec

def test_timestamp_encodes_to_epoch_millis():
    n = decode_notification('{"timestamp": "2023-01-01T00:00:00.000Z"}')
    assert json.loads(encode(n))["timestamp"] == 1672531200000


def test_timestamp_with_offset():
    n = decode_notification('{"timestamp": "2023-01-01T05:30:00+05:30"}')
    assert json.loads(encode(n))["timestamp"] == 1672531200000


def test_timestamp_nanoseconds_variant():
    n = decode_notification('{"timestamp": "2023-01-01T00:00:00.000Z"}')
    assert json.loads(encode(n, timestamp_unit="ns"))["timestamp"] == 1672531200000000000


def test_timestamp_fraction_truncated_to_microseconds():
    parsed = parse_rfc3339("2023-01-01T00:00:00.123456789Z")
    assert parsed.microsecond == 123456
    assert parsed.tzinfo == timezone.utc


@pytest.mark.parametrize(
    "text",
    [
        "not-a-date",
        "2023-01-01",
        "2023-01-01T00:00:00",
        "2023-01-01 00:00:00Z",
        "2023-13-01T00:00:00Z",
        "2023-01-01T00:00:00+25:00",
        "1672531200",
    ],
)
def test_timestamp_rejects_anything_but_rfc3339(text):
    with pytest.raises(DecodeError) as exc:
        decode(_envelope_json(timestamp=text))
    assert exc.value.kind is DecodeErrorKind.SCHEMA_MISMATCH
    assert exc.value.field == "timestamp"


def test_numeric_timestamp_is_a_schema_mismatch():
    with pytest.raises(DecodeError) as exc:
        decode_notification('{"timestamp": 1672531200000}')
    assert exc.value.field == "timestamp"


def test_timestamp_out_of_range_for_nanoseconds():
    n = decode_notification('{"timestamp": "2300-01-01T00:00:00Z"}')
    # Fits as milliseconds, overflows a signed 64-bit nanosecond count
    assert json.loads(encode(n))["timestamp"] == 10413792000000
    with pytest.raises(EncodeError) as exc:
        encode(n, timestamp_unit="ns")
    assert exc.value.kind is EncodeErrorKind.OUT_OF_RANGE
    assert exc.value.field == "timestamp"


# Placeholder codec

def test_message_attributes_are_erased():
    env = decode(_envelope_json(messageAttributes={"a": "b", "c": "d"}))
    assert env.sns.message_attributes == AttributePlaceholder()
    assert json.loads(encode(env))["sns"]["messageAttributes"] == {}


def test_absent_message_attributes_still_encode_empty():
    env = decode(_envelope_json())
    assert env.sns.message_attributes is None
    assert json.loads(encode(env))["sns"]["messageAttributes"] == {}


def test_message_attributes_must_be_an_object():
    with pytest.raises(DecodeError) as exc:
        decode(_envelope_json(messageAttributes="a=b"))
    assert exc.value.kind is DecodeErrorKind.SCHEMA_MISMATCH
    assert exc.value.field == "messageAttributes"


# Decode errors

def test_malformed_reports_byte_offset():
    with pytest.raises(DecodeError) as exc:
        decode('{"a": }')
    assert exc.value.kind is DecodeErrorKind.MALFORMED
    assert exc.value.offset == 6


def test_malformed_offset_counts_utf8_bytes():
    with pytest.raises(DecodeError) as exc:
        decode('{"é": }')
    assert exc.value.offset == 7


@pytest.mark.parametrize("constant", ["NaN", "Infinity", "-Infinity"])
def test_non_finite_constants_are_malformed(constant):
    text = '{"eventVersion": ' + constant + ', "sns": {"timestamp": "2023-01-01T00:00:00Z"}}'
    with pytest.raises(DecodeError) as exc:
        decode(text)
    assert exc.value.kind is DecodeErrorKind.MALFORMED
    assert exc.value.offset == 17


def test_non_finite_offset_skips_quoted_text():
    text = '{"sns": {"message": "NaN", "timestamp": "2023-01-01T00:00:00Z"}, "eventVersion": -Infinity}'
    with pytest.raises(DecodeError) as exc:
        decode(text)
    assert exc.value.offset == text.index("-Infinity")


@pytest.mark.parametrize("value", ['"NaN"', '"Infinity"', '"1e400"', "1e400"])
def test_non_finite_numbers_are_schema_mismatch(value):
    text = '{"eventVersion": ' + value + ', "sns": {"timestamp": "2023-01-01T00:00:00Z"}}'
    with pytest.raises(DecodeError) as exc:
        decode(text)
    assert exc.value.kind is DecodeErrorKind.SCHEMA_MISMATCH
    assert exc.value.field == "eventVersion"


def test_encode_refuses_non_finite_numbers():
    sns = decode_notification('{"timestamp": "2023-01-01T00:00:00Z"}')
    env = Envelope.model_construct(event_version=float("nan"), sns=sns)
    with pytest.raises(EncodeError) as exc:
        encode(env)
    assert exc.value.kind is EncodeErrorKind.OUT_OF_RANGE


def test_missing_notification():
    with pytest.raises(DecodeError) as exc:
        decode('{"eventVersion": 1.0}')
    assert exc.value.kind is DecodeErrorKind.SCHEMA_MISMATCH
    assert exc.value.field == "sns"


def test_missing_timestamp():
    with pytest.raises(DecodeError) as exc:
        decode('{"sns": {"messageId": "x"}}')
    assert exc.value.field == "timestamp"


def test_wrong_shape_signature_version():
    with pytest.raises(DecodeError) as exc:
        decode(_envelope_json(signatureVersion="abc"))
    assert exc.value.field == "signatureVersion"
    assert exc.value.to_dict()["kind"] == "schema_mismatch"


def test_top_level_array_is_a_schema_mismatch():
    with pytest.raises(DecodeError) as exc:
        decode("[1, 2]")
    assert exc.value.kind is DecodeErrorKind.SCHEMA_MISMATCH
    assert exc.value.field is None


# Schema behavior

def test_keys_match_case_insensitively():
    env = decode(
        '{"EventSource": "aws:sns", "sns": {"messageID": "m-1", "signingCertURL": "https://c", '
        '"TIMESTAMP": "2023-01-01T00:00:00Z"}}'
    )
    assert env.event_source == "aws:sns"
    assert env.sns.message_id == "m-1"
    assert env.sns.signing_cert_url == "https://c"
    assert json.loads(encode(env))["sns"]["signingCertUrl"] == "https://c"


def test_unknown_keys_ignored_and_defaults_applied():
    env = decode(_envelope_json(subject="ignored"))
    assert env.event_subscription_arn == ""
    assert env.sns.signature_version == 0
    assert env.sns.topic_arn == ""


def test_trailing_quoted_number_still_decodes():
    env = decode('{"sns": {"timestamp": "2023-01-01T00:00:00Z", "signatureVersion": "1"}, "eventVersion": "1.0"}')
    assert env.sns.signature_version == 1
    assert env.event_version == 1.0


def test_decoded_records_are_immutable():
    env = decode(_envelope_json())
    with pytest.raises(ValidationError):
        env.event_source = "other"


def test_naive_datetime_is_taken_as_utc():
    n = Notification(timestamp=datetime(2023, 1, 1))
    assert json.loads(encode(n))["timestamp"] == 1672531200000


# Encoding

def test_encode_is_compact_with_canonical_keys(quasi_record, expected_record):
    out = encode(decode(normalize(quasi_record)))
    assert out.startswith(b'{"eventVersion":1.0,"eventSource":"aws:sns",')
    assert b" " not in out
    assert json.loads(out) == expected_record
    assert list(json.loads(out)["sns"]) == list(expected_record["sns"])


def test_encode_keeps_non_ascii_as_utf8():
    env = decode(_envelope_json(message="héllo"))
    assert "héllo".encode("utf-8") in encode(env)


def test_canonical_output_is_a_fixed_point(quasi_record):
    out = encode(decode(normalize(quasi_record)))
    assert encode(decode(normalize(out.decode("utf-8")))) == out


def test_end_to_end_bare_notification():
    text = 'messageId: abc-123, signatureVersion: "1", timestamp: "2023-06-15T12:00:00Z", type: Notification, message: hello'
    data = json.loads(encode(decode_notification(normalize(text))))
    assert data["messageId"] == "abc-123"
    assert data["signatureVersion"] == 1
    assert data["timestamp"] == 1686830400000
    assert data["type"] == "Notification"
    assert data["message"] == "hello"


def test_decode_record_picks_type_by_sns_member():
    assert isinstance(decode_record(_envelope_json()), Envelope)
    assert isinstance(decode_record('{"SNS": {"timestamp": "2023-01-01T00:00:00Z"}}'), Envelope)
    assert isinstance(decode_record('{"timestamp": "2023-01-01T00:00:00Z"}'), Notification)


# Registry

def test_unregistered_fields_pass_through():
    assert codec_for("message") is PASS_THROUGH
    assert isinstance(codec_for("timestamp"), codecs.TimestampCodec)
    assert isinstance(codec_for("messageAttributes"), codecs.PlaceholderCodec)


def test_registering_a_codec_changes_decode_and_encode(monkeypatch):
    class UpperCodec(FieldCodec):
        def decode(self, value):
            return value.upper()

        def encode(self, value, options):
            return value.lower()

    monkeypatch.setitem(codecs.NOTIFICATION_CODECS, "topicArn", UpperCodec())
    env = decode(_envelope_json(topicArn="arn:aws:sns:x"))
    assert env.sns.topic_arn == "ARN:AWS:SNS:X"
    assert json.loads(encode(env))["sns"]["topicArn"] == "arn:aws:sns:x"

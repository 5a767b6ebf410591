import pytest

from services.format_fixer.src import service

# Record as the publisher stores it: unquoted keys, mixed quoting, numbers as
# strings and an RFC3339 timestamp.
QUASI_RECORD = """{
  sns: {
    messageAttributes: {
      key: 'device',
      value: 'xbo'
    },
    signingCertURL: https://sns.us-east-1.amazonaws.com/SimpleNotificationService-0123456789abcdef.pem,
    messageID: 95df01b4-ee98-5cb9-9903-4c221d41eb5e,
    message: hello,
    unsubscribeURL: https://sns.us-east-1.amazonaws.com/?Action=Unsubscribe&SubscriptionArn=arn:aws:sns:us-east-1:123456789012:ci-device:c9135db0,
    type: Notification,
    signatureVersion: '1',
    signature: tcc6faL2yUC6dgZdmrwh1Y4cGa/ebXEkAi6RibDsvpi+tE/1+82j==,
    timestamp: 2019-01-02T12:45:07.000Z,
    topicArn: arn:aws:sns:us-east-1:123456789012:ci-device
  },
  eventVersion: '1.0',
  eventSource: aws:sns,
  eventSubscriptionArn: arn:aws:sns:us-east-1:123456789012:ci-device:c9135db0
}
"""

EXPECTED = {
    "eventVersion": 1.0,
    "eventSource": "aws:sns",
    "eventSubscriptionArn": "arn:aws:sns:us-east-1:123456789012:ci-device:c9135db0",
    "sns": {
        "messageAttributes": {},
        "signingCertUrl": "https://sns.us-east-1.amazonaws.com/SimpleNotificationService-0123456789abcdef.pem",
        "messageId": "95df01b4-ee98-5cb9-9903-4c221d41eb5e",
        "message": "hello",
        "unsubscribeUrl": (
            "https://sns.us-east-1.amazonaws.com/?Action=Unsubscribe"
            "&SubscriptionArn=arn:aws:sns:us-east-1:123456789012:ci-device:c9135db0"
        ),
        "type": "Notification",
        "signatureVersion": 1,
        "signature": "tcc6faL2yUC6dgZdmrwh1Y4cGa/ebXEkAi6RibDsvpi+tE/1+82j==",
        "timestamp": 1546433107000,
        "topicArn": "arn:aws:sns:us-east-1:123456789012:ci-device",
    },
}


@pytest.fixture
def quasi_record() -> str:
    return QUASI_RECORD


@pytest.fixture
def expected_record() -> dict:
    return EXPECTED


class FakeStore:
    """In-memory stand-in for the bucket; records every write."""

    def __init__(self, objects=None):
        self.objects = dict(objects or {})
        self.puts = []
        self.list_calls = []
        self.fail_get = {}
        self.fail_list = None

    def list_keys(self, bucket, prefix="", max_keys=None):
        self.list_calls.append((bucket, prefix, max_keys))
        if self.fail_list is not None:
            raise self.fail_list
        keys = sorted(k for k in self.objects if k.startswith(prefix))
        return keys[:max_keys] if max_keys else keys

    def get_object(self, bucket, key):
        if key in self.fail_get:
            raise self.fail_get[key]
        return self.objects[key]

    def put_object(self, bucket, key, data):
        self.puts.append((bucket, key, data))
        self.objects[key] = data


@pytest.fixture
def fake_store(monkeypatch) -> FakeStore:
    store = FakeStore()
    monkeypatch.setattr(service, "list_keys", store.list_keys)
    monkeypatch.setattr(service, "get_object", store.get_object)
    monkeypatch.setattr(service, "put_object", store.put_object)
    return store

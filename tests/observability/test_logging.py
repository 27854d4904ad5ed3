import json
from unittest.mock import patch

from app.observability.logging import log
from app.settings import settings


def test_log_redacts_free_text(capsys):
    with patch.object(settings, "ENABLE_PII_REDACTION", True):
        log("inbound_processed", phoneNumber="15551234567", reply="Hello there", meta={"address": "1 Main St"})

    line = json.loads(capsys.readouterr().out.strip())
    assert line["event"] == "inbound_processed"
    assert line["phoneNumber"] == "15551234567"
    assert line["reply"] == "[REDACTED:11chars]"
    assert line["meta"]["address"] == "[REDACTED:9chars]"


def test_log_without_redaction(capsys):
    with patch.object(settings, "ENABLE_PII_REDACTION", False):
        log("inbound_ignored", text="hi")
    assert json.loads(capsys.readouterr().out.strip())["text"] == "hi"

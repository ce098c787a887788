from typing import Any

import pytest

from wabridge.chatwoot import InstanceRef, StoredMessage, edits, handle_message_updated
from wabridge.normalize import Canonicalizer, Long


class FakeRepository:
    def __init__(self, stored: StoredMessage | None = None):
        self.stored = stored
        self.lookups: list[tuple[int, str]] = []
        self.updates: list[dict[str, Any]] = []

    async def find_message(self, chatwoot_message_id: int, instance_id: str) -> StoredMessage | None:
        self.lookups.append((chatwoot_message_id, instance_id))
        return self.stored

    async def update_message(self, chatwoot_message_id: int, instance_id: str, message: dict[str, Any]) -> None:
        self.updates.append(
            {"chatwoot_message_id": chatwoot_message_id, "instance_id": instance_id, "message": message}
        )


class FakeClient:
    def __init__(self, error: Exception | None = None):
        self.error = error
        self.sent: list[tuple[str, dict[str, Any]]] = []

    async def send_message(self, jid: str, content: dict[str, Any]) -> None:
        if self.error:
            raise self.error
        self.sent.append((jid, content))


class FakeInstance:
    def __init__(self, client: FakeClient | None):
        self.client = client


KEY = {"remoteJid": "5511999999999@s.whatsapp.net", "fromMe": True, "id": "3EB0ABC"}


def _body(**overrides: Any) -> dict[str, Any]:
    body = {
        "event": "message_updated",
        "id": 42,
        "content_attributes": {"edited": True, "newContent": "fixed typo"},
    }
    body.update(overrides)
    return body


def _stored(message: Any = None, key: Any = KEY) -> StoredMessage:
    return StoredMessage(key=dict(key) if isinstance(key, dict) else key, message=message)


@pytest.mark.asyncio
async def test_non_edit_events_are_not_handled() -> None:
    repo = FakeRepository(_stored({"conversation": "old"}))
    wa = FakeInstance(FakeClient())
    instance = InstanceRef("main", "inst-1")

    assert await handle_message_updated(_body(event="message_created"), instance, repo, wa) is False
    assert await handle_message_updated(
        _body(content_attributes={"edited": False, "newContent": "x"}), instance, repo, wa
    ) is False
    assert await handle_message_updated({"event": "message_updated"}, instance, repo, wa) is False
    assert repo.lookups == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [None, "message_updated", {"event": "message_updated", "id": 42, "content_attributes": "edited"}],
)
async def test_malformed_bodies_are_not_handled(body) -> None:
    repo = FakeRepository(_stored({"conversation": "old"}))

    assert await handle_message_updated(body, InstanceRef("main", "inst-1"), repo, FakeInstance(FakeClient())) is False
    assert repo.lookups == []


@pytest.mark.asyncio
async def test_edit_is_forwarded_and_record_rewritten() -> None:
    repo = FakeRepository(_stored({"conversation": "fixd typo", "messageContextInfo": {"deviceListMetadataVersion": 2}}))
    client = FakeClient()

    handled = await handle_message_updated(_body(), InstanceRef("main", "inst-1"), repo, FakeInstance(client))

    assert handled is True
    assert repo.lookups == [(42, "inst-1")]
    assert client.sent == [(KEY["remoteJid"], {"text": "fixed typo", "edit": KEY})]
    assert repo.updates == [
        {
            "chatwoot_message_id": 42,
            "instance_id": "inst-1",
            "message": {"conversation": "fixed typo", "messageContextInfo": {"deviceListMetadataVersion": 2}},
        }
    ]


@pytest.mark.asyncio
async def test_stored_payload_is_canonicalized_before_write_back() -> None:
    payload = {
        "extendedTextMessage": {
            "text": "old",
            "contextInfo": {"stanzaId": "Q1", "quotedMessage": {"conversation": "original"}},
        },
        "messageTimestamp": Long.from_int(2**60),
        "thumb": b"\x01",
    }
    repo = FakeRepository(_stored(payload))

    await handle_message_updated(
        _body(),
        InstanceRef("main", "inst-1"),
        repo,
        FakeInstance(FakeClient()),
        canonicalizer=Canonicalizer(large_ints="string"),
    )

    written = repo.updates[0]["message"]
    assert written["conversation"] == "fixed typo"
    assert written["messageTimestamp"] == str(2**60)
    assert written["thumb"] == {"type": "bytes", "encoding": "base64", "data": "AQ=="}
    assert written["extendedTextMessage"]["contextInfo"]["stanzaId"] == "Q1"


@pytest.mark.asyncio
async def test_non_mapping_payload_is_replaced() -> None:
    repo = FakeRepository(_stored(["not", "a", "mapping"]))

    await handle_message_updated(_body(), InstanceRef("main", "inst-1"), repo, FakeInstance(FakeClient()))

    assert repo.updates[0]["message"] == {"conversation": "fixed typo"}


@pytest.mark.asyncio
async def test_resolved_instance_id_wins_and_is_stringified() -> None:
    repo = FakeRepository(_stored({}))

    await handle_message_updated(
        _body(id="42"), InstanceRef("main", "inst-1"), repo, FakeInstance(FakeClient()), resolved_instance_id=7
    )

    assert repo.lookups == [(42, "7")]
    assert repo.updates[0]["instance_id"] == "7"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body,instance,wa",
    [
        (_body(content_attributes={"edited": True}), InstanceRef("main", "inst-1"), "ok"),
        (_body(id="abc"), InstanceRef("main", "inst-1"), "ok"),
        (_body(id=None), InstanceRef("main", "inst-1"), "ok"),
        (_body(id=1.5), InstanceRef("main", "inst-1"), "ok"),
        (_body(id="1_000"), InstanceRef("main", "inst-1"), "ok"),
        (_body(id="+5"), InstanceRef("main", "inst-1"), "ok"),
        (_body(id="\u0663"), InstanceRef("main", "inst-1"), "ok"),
        (_body(id=""), InstanceRef("main", "inst-1"), "ok"),
        (_body(id="-"), InstanceRef("main", "inst-1"), "ok"),
        (_body(), InstanceRef("main", None), "ok"),
        (_body(), InstanceRef("main", "inst-1"), None),
    ],
)
async def test_unusable_edits_are_handled_without_side_effects(body, instance, wa) -> None:
    repo = FakeRepository(_stored({"conversation": "old"}))
    client = FakeClient()

    handled = await handle_message_updated(body, instance, repo, FakeInstance(client) if wa else None)

    assert handled is True
    assert client.sent == []
    assert repo.updates == []


@pytest.mark.asyncio
async def test_missing_record_is_ignored() -> None:
    repo = FakeRepository(None)
    client = FakeClient()

    assert await handle_message_updated(_body(), InstanceRef("main", "inst-1"), repo, FakeInstance(client)) is True
    assert repo.lookups == [(42, "inst-1")]
    assert client.sent == []
    assert repo.updates == []


@pytest.mark.asyncio
@pytest.mark.parametrize("key", [None, {"remoteJid": "x@s.whatsapp.net"}, {"id": "ABC"}, "not-a-key"])
async def test_record_without_key_identifiers_is_ignored(key) -> None:
    repo = FakeRepository(_stored({"conversation": "old"}, key=key))
    client = FakeClient()

    assert await handle_message_updated(_body(), InstanceRef("main", "inst-1"), repo, FakeInstance(client)) is True
    assert client.sent == []
    assert repo.updates == []


@pytest.mark.asyncio
async def test_send_failure_leaves_record_untouched() -> None:
    repo = FakeRepository(_stored({"conversation": "old"}))
    client = FakeClient(error=RuntimeError("socket closed"))

    assert await handle_message_updated(_body(), InstanceRef("main", "inst-1"), repo, FakeInstance(client)) is True
    assert repo.updates == []


@pytest.mark.asyncio
async def test_disconnected_client_still_updates_record() -> None:
    repo = FakeRepository(_stored({"conversation": "old"}))

    assert await handle_message_updated(_body(), InstanceRef("main", "inst-1"), repo, FakeInstance(None)) is True
    assert repo.updates[0]["message"] == {"conversation": "fixed typo"}


@pytest.mark.asyncio
async def test_reply_metadata_uses_the_configured_canonicalizer(monkeypatch) -> None:
    seen: list[Any] = []

    def fake_build_reply_metadata(envelope: Any, canonicalizer: Any = None) -> dict[str, object]:
        seen.append(canonicalizer)
        return {}

    monkeypatch.setattr(edits, "build_reply_metadata", fake_build_reply_metadata)
    canonicalizer = Canonicalizer(large_ints="string")

    await handle_message_updated(
        _body(),
        InstanceRef("main", "inst-1"),
        FakeRepository(_stored({"conversation": "old"})),
        FakeInstance(FakeClient()),
        canonicalizer=canonicalizer,
    )

    assert seen == [canonicalizer]

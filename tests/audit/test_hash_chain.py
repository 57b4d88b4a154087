"""Tests for the hash-chained audit log.

Tests cover:
- Canonical serialization and hash linkage
- Verification of intact and tampered chains
- Concurrent appends never fork the chain
- Persistence round trip through the JSON-lines file
- Entity history lookups
"""

import asyncio
import hashlib
from datetime import datetime, timezone
from pathlib import Path

import pytest

from docverify.audit.hash_chain import (
    AuditChain,
    canonicalize,
    compute_hash,
    entry_hash,
    verify_chain,
)
from docverify.data_management.audit_store import AuditStore
from docverify.data_management.schemas.audit_schema import AuditEntityType
from docverify.errors import ChainIntegrityError


# ── Fixtures ──────────────────────────────────────────────────────────────


@pytest.fixture
def chain() -> AuditChain:
    return AuditChain(AuditStore())


async def _populate(chain: AuditChain, count: int = 5) -> None:
    for i in range(count):
        await chain.append(
            AuditEntityType.VERIFICATION,
            f"ver-{i}",
            "VERIFICATION_STARTED",
            user_id="u-1",
            metadata={"certificateId": f"cert-{i}", "attempt": i},
        )


# ── Canonical Form ───────────────────────────────────────────────────────


class TestCanonicalForm:
    def test_key_order_does_not_matter(self) -> None:
        ts = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)
        a = canonicalize("VERIFICATION", "v-1", "X", None, {"b": 1, "a": 2}, ts)
        b = canonicalize("VERIFICATION", "v-1", "X", None, {"a": 2, "b": 1}, ts)
        assert a == b

    def test_compact_and_sorted(self) -> None:
        ts = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)
        canonical = canonicalize("CERTIFICATE", "c-1", "CREATED", "u-1", None, ts)
        assert canonical == (
            '{"action":"CREATED","entityId":"c-1","entityType":"CERTIFICATE",'
            '"metadata":null,"timestamp":"2026-10-18T12:00:00+00:00","userId":"u-1"}'
        )

    def test_first_entry_hashes_data_alone(self) -> None:
        assert compute_hash("data") == hashlib.sha256(b"data").hexdigest()

    def test_later_entries_prefix_previous_hash(self) -> None:
        previous = "f" * 64
        expected = hashlib.sha256(f"{previous}:data".encode()).hexdigest()
        assert compute_hash("data", previous) == expected


# ── Appending ────────────────────────────────────────────────────────────


class TestAppend:
    @pytest.mark.asyncio
    async def test_first_entry_has_no_previous_hash(self, chain: AuditChain) -> None:
        entry = await chain.append("CERTIFICATE", "c-1", "CERTIFICATE_UPLOADED")
        assert entry.previous_hash is None
        assert entry_hash(entry) == entry.hash

    @pytest.mark.asyncio
    async def test_entries_link_to_predecessor(self, chain: AuditChain) -> None:
        first = await chain.append("CERTIFICATE", "c-1", "CERTIFICATE_UPLOADED")
        second = await chain.append("VERIFICATION", "v-1", "VERIFICATION_STARTED")
        assert second.previous_hash == first.hash

    @pytest.mark.asyncio
    async def test_enum_entity_type_stored_as_value(self, chain: AuditChain) -> None:
        entry = await chain.append(AuditEntityType.MANUAL_REVIEW, "r-1", "REVIEW_CREATED")
        assert entry.entity_type == "MANUAL_REVIEW"

    @pytest.mark.asyncio
    async def test_metadata_normalized_before_hashing(self, chain: AuditChain) -> None:
        when = datetime(2026, 1, 1, tzinfo=timezone.utc)
        entry = await chain.append("VERIFICATION", "v-1", "X", metadata={"at": when})
        assert entry.metadata == {"at": str(when)}
        assert entry_hash(entry) == entry.hash

    @pytest.mark.asyncio
    async def test_timestamps_never_decrease(self, chain: AuditChain) -> None:
        await _populate(chain, 10)
        entries = await chain.store.list_entries()
        stamps = [e.timestamp for e in entries]
        assert stamps == sorted(stamps)

    @pytest.mark.asyncio
    async def test_concurrent_appends_form_single_chain(self, chain: AuditChain) -> None:
        await asyncio.gather(
            *(chain.append("VERIFICATION", f"v-{i}", "VERIFICATION_STARTED") for i in range(50))
        )
        entries = await chain.store.list_entries()
        assert len(entries) == 50
        previous_hashes = [e.previous_hash for e in entries]
        assert len(set(previous_hashes)) == 50
        assert verify_chain(entries)


# ── Verification ─────────────────────────────────────────────────────────


class TestVerification:
    @pytest.mark.asyncio
    async def test_empty_chain_is_valid(self, chain: AuditChain) -> None:
        result = await chain.verify()
        assert result.valid
        assert result.checked == 0

    @pytest.mark.asyncio
    async def test_intact_chain_is_valid(self, chain: AuditChain) -> None:
        await _populate(chain)
        result = await chain.verify()
        assert result.valid
        assert result.checked == 5

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "field,value",
        [
            ("entity_type", "CERTIFICATE"),
            ("entity_id", "ver-99"),
            ("action", "VERIFICATION_DELETED"),
            ("user_id", "intruder"),
            ("metadata", {"certificateId": "forged"}),
            ("timestamp", datetime(2001, 1, 1, tzinfo=timezone.utc)),
            ("previous_hash", "0" * 64),
            ("hash", "f" * 64),
        ],
    )
    async def test_any_mutated_field_detected(
        self, chain: AuditChain, field: str, value: object
    ) -> None:
        await _populate(chain)
        entries = await chain.store.list_entries()
        target = entries[2]
        forged = target.model_copy(update={field: value})
        await chain.store._replace_entry(target.id, forged)

        result = await chain.verify()
        assert not result.valid
        assert result.broken_index == 2
        assert result.broken_entry_id == target.id

    @pytest.mark.asyncio
    async def test_rehashed_entry_breaks_successor_link(self, chain: AuditChain) -> None:
        await _populate(chain)
        entries = await chain.store.list_entries()
        target = entries[1]
        forged = target.model_copy(update={"action": "VERIFICATION_DELETED"})
        forged = forged.model_copy(update={"hash": entry_hash(forged)})
        await chain.store._replace_entry(target.id, forged)

        result = await chain.verify()
        assert not result.valid
        assert result.broken_index == 2
        assert "previous_hash" in result.reason

    @pytest.mark.asyncio
    async def test_assert_valid_raises(self, chain: AuditChain) -> None:
        await _populate(chain, 3)
        entries = await chain.store.list_entries()
        forged = entries[0].model_copy(update={"user_id": "intruder"})
        await chain.store._replace_entry(entries[0].id, forged)

        with pytest.raises(ChainIntegrityError) as exc_info:
            await chain.assert_valid()
        assert exc_info.value.index == 0


# ── Persistence and History ──────────────────────────────────────────────


class TestPersistence:
    @pytest.mark.asyncio
    async def test_reload_preserves_chain(self, tmp_path: Path) -> None:
        path = tmp_path / "audit_log.jsonl"
        chain = AuditChain(AuditStore(str(path)))
        await _populate(chain)

        reloaded = AuditChain(AuditStore(str(path)))
        assert await reloaded.store.count() == 5
        assert (await reloaded.verify()).valid

        entry = await reloaded.append("VERIFICATION", "v-9", "VERIFICATION_COMPLETED")
        head_before = (await chain.store.list_entries())[-1]
        assert entry.previous_hash == head_before.hash

    @pytest.mark.asyncio
    async def test_tamper_persisted_to_file_detected_on_reload(self, tmp_path: Path) -> None:
        path = tmp_path / "audit_log.jsonl"
        chain = AuditChain(AuditStore(str(path)))
        await _populate(chain, 3)

        lines = path.read_text().splitlines()
        lines[1] = lines[1].replace("cert-1", "cert-X")
        path.write_text("\n".join(lines) + "\n")

        result = await AuditChain(AuditStore(str(path))).verify()
        assert not result.valid
        assert result.broken_index == 1

    @pytest.mark.asyncio
    async def test_failed_write_appends_nothing(self, tmp_path: Path) -> None:
        path = tmp_path / "audit_log.jsonl"
        chain = AuditChain(AuditStore(str(path)))
        await _populate(chain, 2)
        head = await chain.store.head()

        saved = path.read_text()
        path.unlink()
        path.mkdir()
        with pytest.raises(OSError):
            await chain.append("VERIFICATION", "v-9", "VERIFICATION_COMPLETED")
        assert await chain.store.count() == 2
        assert await chain.store.head() == head

        path.rmdir()
        path.write_text(saved)
        entry = await chain.append("VERIFICATION", "v-9", "VERIFICATION_COMPLETED")
        assert entry.previous_hash == head.hash
        assert (await AuditChain(AuditStore(str(path))).verify()).valid

    @pytest.mark.asyncio
    async def test_history_filters_by_entity(self, chain: AuditChain) -> None:
        await chain.append("VERIFICATION", "v-1", "VERIFICATION_STARTED")
        await chain.append("CERTIFICATE", "c-1", "CERTIFICATE_UPLOADED")
        await chain.append(AuditEntityType.VERIFICATION, "v-1", "VERIFICATION_COMPLETED")

        history = await chain.history(AuditEntityType.VERIFICATION, "v-1")
        assert [e.action for e in history] == ["VERIFICATION_STARTED", "VERIFICATION_COMPLETED"]

"""
Tests for the friend request state machine (send / accept / reject / cancel / remove).
"""

import asyncio
import logging

import pytest

from app.core.exceptions import (
    ConflictError,
    NotAuthorizedError,
    RequestNotFoundError,
    SelfReferenceError,
    StaleStateError,
)
from app.core.status_cache import StatusCache
from app.schemas.enums import (
    FriendEventTypeEnum,
    FriendRequestStatusEnum,
    RelationshipStatusEnum,
    SendOutcomeEnum,
)
from app.services.request_mutator import RequestMutator
from app.services.status_resolver import StatusResolver

from conftest import (
    AlwaysConflictStore,
    ConcurrentInsertStore,
    RecordingNotificationPublisher,
    YieldingStore,
    assert_no_coexistence,
    pending_between,
)


def build_mutator(store, notifier=None):
    resolver = StatusResolver(store, StatusCache())
    return RequestMutator(store, resolver, notifier or RecordingNotificationPublisher())


class TestSend:
    """Test cases for sending friend requests"""

    @pytest.mark.asyncio
    async def test_send_creates_pending_request(self, store, notifier):
        mutator = build_mutator(store, notifier)

        result = await mutator.send("alice", "bob")

        assert result.status == RelationshipStatusEnum.SENT
        assert result.outcome == SendOutcomeEnum.CREATED
        assert result.request.sender_id == "alice"
        assert result.request.receiver_id == "bob"
        assert result.request.status == FriendRequestStatusEnum.PENDING

        received = notifier.of_type(FriendEventTypeEnum.FRIEND_REQUEST_RECEIVED)
        assert len(received) == 1
        assert received[0].actor_id == "alice"
        assert received[0].counterparty_id == "bob"

    @pytest.mark.asyncio
    async def test_self_request_is_rejected_before_store_access(self, store):
        mutator = build_mutator(store)

        with pytest.raises(SelfReferenceError):
            await mutator.send("alice", "alice")
        assert store.requests == {}

    @pytest.mark.asyncio
    async def test_send_twice_is_idempotent(self, store, notifier):
        mutator = build_mutator(store, notifier)

        first = await mutator.send("alice", "bob")
        second = await mutator.send("alice", "bob")

        assert second.outcome == SendOutcomeEnum.ALREADY_SENT
        assert second.request.id == first.request.id
        assert len(store.requests) == 1
        assert len(notifier.of_type(FriendEventTypeEnum.FRIEND_REQUEST_RECEIVED)) == 1

    @pytest.mark.asyncio
    async def test_concurrent_identical_sends_leave_one_row(self):
        store = YieldingStore()
        mutator = build_mutator(store)

        results = await asyncio.gather(mutator.send("alice", "bob"), mutator.send("alice", "bob"))

        assert len(store.requests) == 1
        assert {r.status for r in results} == {RelationshipStatusEnum.SENT}
        assert sorted(r.outcome.value for r in results) == ["already_sent", "created"]

    @pytest.mark.asyncio
    async def test_send_to_friend_short_circuits(self, store):
        mutator = build_mutator(store)
        request = (await mutator.send("alice", "bob")).request
        await mutator.accept(request.id, "bob")

        result = await mutator.send("alice", "bob")

        assert result.status == RelationshipStatusEnum.FRIENDS
        assert result.outcome == SendOutcomeEnum.ALREADY_FRIENDS
        assert len(store.friendships) == 1

    @pytest.mark.asyncio
    async def test_reversed_pending_request_is_implicitly_accepted(self, store, notifier):
        mutator = build_mutator(store, notifier)
        await mutator.send("bob", "alice")

        result = await mutator.send("alice", "bob")

        assert result.status == RelationshipStatusEnum.FRIENDS
        assert result.outcome == SendOutcomeEnum.IMPLICIT_ACCEPT
        assert result.request.sender_id == "bob"
        assert result.request.status == FriendRequestStatusEnum.ACCEPTED
        assert len(store.friendships) == 1
        assert ("alice", "bob") not in store.requests
        assert_no_coexistence(store, "alice", "bob")

        accepted = notifier.of_type(FriendEventTypeEnum.CONNECTION_ACCEPTED)
        assert len(accepted) == 1
        assert accepted[0].actor_id == "alice"
        assert accepted[0].counterparty_id == "bob"

    @pytest.mark.asyncio
    async def test_send_after_rejection_creates_new_pending_request(self, store):
        mutator = build_mutator(store)
        first = (await mutator.send("alice", "bob")).request
        await mutator.reject(first.id, "bob")

        result = await mutator.send("alice", "bob")

        assert result.outcome == SendOutcomeEnum.RESENT
        assert result.status == RelationshipStatusEnum.SENT
        assert result.request.id != first.id
        assert await store.get_request_by_id(first.id) is None
        assert len(pending_between(store, "alice", "bob")) == 1

    @pytest.mark.asyncio
    async def test_resend_after_remove_replaces_accepted_row(self, store, caplog):
        caplog.set_level(logging.INFO)
        mutator = build_mutator(store)
        request = (await mutator.send("alice", "bob")).request
        await mutator.accept(request.id, "bob")
        await mutator.remove("bob", "alice")

        result = await mutator.send("alice", "bob")

        assert result.outcome == SendOutcomeEnum.RESENT
        assert result.status == RelationshipStatusEnum.SENT
        assert await store.get_request_by_id(request.id) is None
        assert "left over from a removed friendship" in caplog.text
        assert not [r for r in caplog.records if r.levelno >= logging.WARNING]

    @pytest.mark.asyncio
    async def test_conflicting_insert_is_recovered(self):
        store = ConcurrentInsertStore()
        mutator = build_mutator(store)

        result = await mutator.send("alice", "bob")

        assert store.insert_attempts == 1
        assert result.status == RelationshipStatusEnum.SENT
        assert result.outcome == SendOutcomeEnum.ALREADY_SENT
        assert len(store.requests) == 1

    @pytest.mark.asyncio
    async def test_conflicting_insert_after_rejection_is_recovered(self):
        store = ConcurrentInsertStore()
        store.insert_attempts = 1  # skip the injection for the setup send
        mutator = build_mutator(store)
        first = (await mutator.send("alice", "bob")).request
        await mutator.reject(first.id, "bob")
        store.insert_attempts = 0

        result = await mutator.send("alice", "bob")

        assert result.outcome == SendOutcomeEnum.ALREADY_SENT
        assert len(pending_between(store, "alice", "bob")) == 1

    @pytest.mark.asyncio
    async def test_persistent_conflict_is_surfaced_after_one_retry(self):
        store = AlwaysConflictStore()
        mutator = build_mutator(store)

        with pytest.raises(ConflictError):
            await mutator.send("alice", "bob")
        assert store.insert_attempts == 2


class TestSimultaneousReversedSends:
    """Two users friending each other at the same time"""

    @pytest.mark.asyncio
    async def test_interleaved_reversed_sends_end_in_one_friendship(self):
        store = YieldingStore()
        notifier = RecordingNotificationPublisher()
        mutator = build_mutator(store, notifier)

        results = await asyncio.gather(mutator.send("alice", "bob"), mutator.send("bob", "alice"))

        assert len(store.friendships) == 1
        assert pending_between(store, "alice", "bob") == []
        assert_no_coexistence(store, "alice", "bob")
        assert all(r.status == RelationshipStatusEnum.FRIENDS for r in results)
        assert len(notifier.of_type(FriendEventTypeEnum.CONNECTION_ACCEPTED)) == 1

    @pytest.mark.asyncio
    async def test_sequential_reversed_sends_end_in_one_friendship(self, store):
        mutator = build_mutator(store)

        results = await asyncio.gather(mutator.send("alice", "bob"), mutator.send("bob", "alice"))

        assert len(store.friendships) == 1
        assert pending_between(store, "alice", "bob") == []
        assert results[1].outcome == SendOutcomeEnum.IMPLICIT_ACCEPT


class TestRespond:
    """Test cases for accept, reject and cancel"""

    @pytest.mark.asyncio
    async def test_accept_creates_friendship_atomically(self, store, notifier):
        mutator = build_mutator(store, notifier)
        request = (await mutator.send("alice", "bob")).request

        result = await mutator.accept(request.id, "bob")

        assert result.status == RelationshipStatusEnum.FRIENDS
        assert result.request.status == FriendRequestStatusEnum.ACCEPTED
        assert await store.get_friendship("bob", "alice") is not None
        assert_no_coexistence(store, "alice", "bob")
        accepted = notifier.of_type(FriendEventTypeEnum.CONNECTION_ACCEPTED)
        assert [(e.actor_id, e.counterparty_id) for e in accepted] == [("bob", "alice")]

    @pytest.mark.asyncio
    async def test_only_receiver_can_accept(self, store):
        mutator = build_mutator(store)
        request = (await mutator.send("alice", "bob")).request

        with pytest.raises(NotAuthorizedError):
            await mutator.accept(request.id, "alice")
        with pytest.raises(NotAuthorizedError):
            await mutator.reject(request.id, "carol")
        assert store.friendships == {}

    @pytest.mark.asyncio
    async def test_unknown_request(self, store):
        mutator = build_mutator(store)

        with pytest.raises(RequestNotFoundError):
            await mutator.accept("missing", "bob")

    @pytest.mark.asyncio
    async def test_accept_twice_is_stale(self, store, notifier):
        mutator = build_mutator(store, notifier)
        request = (await mutator.send("alice", "bob")).request
        await mutator.accept(request.id, "bob")

        with pytest.raises(StaleStateError):
            await mutator.accept(request.id, "bob")
        assert len(store.friendships) == 1
        assert len(notifier.of_type(FriendEventTypeEnum.CONNECTION_ACCEPTED)) == 1

    @pytest.mark.asyncio
    async def test_reject_emits_event_and_touches_no_friendship(self, store, notifier):
        mutator = build_mutator(store, notifier)
        request = (await mutator.send("alice", "bob")).request

        result = await mutator.reject(request.id, "bob")

        assert result.status == RelationshipStatusEnum.NONE
        assert result.request.status == FriendRequestStatusEnum.REJECTED
        assert store.friendships == {}
        rejected = notifier.of_type(FriendEventTypeEnum.CONNECTION_REJECTED)
        assert [(e.actor_id, e.counterparty_id) for e in rejected] == [("bob", "alice")]

    @pytest.mark.asyncio
    async def test_accept_after_cancel_is_stale(self, store):
        mutator = build_mutator(store)
        request = (await mutator.send("alice", "bob")).request
        await mutator.cancel(request.id, "alice")

        with pytest.raises(StaleStateError):
            await mutator.accept(request.id, "bob")
        with pytest.raises(StaleStateError):
            await mutator.reject(request.id, "bob")
        assert store.friendships == {}

    @pytest.mark.asyncio
    async def test_only_sender_can_cancel(self, store):
        mutator = build_mutator(store)
        request = (await mutator.send("alice", "bob")).request

        with pytest.raises(NotAuthorizedError):
            await mutator.cancel(request.id, "bob")

    @pytest.mark.asyncio
    async def test_accept_of_superseded_request_id_is_refused(self, store):
        mutator = build_mutator(store)
        old = (await mutator.send("alice", "bob")).request
        await mutator.reject(old.id, "bob")
        await mutator.send("alice", "bob")

        with pytest.raises(RequestNotFoundError):
            await mutator.accept(old.id, "bob")
        assert store.friendships == {}


class TestRemove:
    """Test cases for removing friends"""

    @pytest.mark.asyncio
    async def test_remove_deletes_friendship_but_keeps_history(self, store):
        mutator = build_mutator(store)
        request = (await mutator.send("alice", "bob")).request
        await mutator.accept(request.id, "bob")

        result = await mutator.remove("bob", "alice")

        assert result.status == RelationshipStatusEnum.NONE
        assert store.friendships == {}
        kept = await store.get_request_by_id(request.id)
        assert kept.status == FriendRequestStatusEnum.ACCEPTED

    @pytest.mark.asyncio
    async def test_remove_without_friendship_reports_authoritative_status(self, store):
        mutator = build_mutator(store)
        await mutator.send("alice", "bob")

        result = await mutator.remove("alice", "bob")

        assert result.status == RelationshipStatusEnum.SENT

    @pytest.mark.asyncio
    async def test_remove_self_is_refused(self, store):
        mutator = build_mutator(store)

        with pytest.raises(SelfReferenceError):
            await mutator.remove("alice", "alice")

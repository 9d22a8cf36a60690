import pytest

from conftest import add_users, build_user
from core.errors import (
    DuplicateRequestError,
    InvalidTransitionError,
    PermissionDeniedError,
    ProfileNotFoundError,
    RequestNotFoundError,
    SelfRequestError,
)
from services import chat_service, request_service


async def three_musicians(db):
    await add_users(db, build_user("alice"), build_user("bob"), build_user("carol"))


def test_send_creates_pending_request(run_db):
    async def scenario(db):
        await three_musicians(db)
        return await request_service.send_request(db, "alice", "bob")

    request = run_db(scenario)
    assert request.id.endswith("14")
    assert (request.requester_id, request.receiver_id, request.status) == ("alice", "bob", "pending")
    assert request.created_at is not None


def test_second_send_to_same_receiver_is_duplicate(run_db):
    async def scenario(db):
        await three_musicians(db)
        await request_service.send_request(db, "alice", "bob")
        with pytest.raises(DuplicateRequestError):
            await request_service.send_request(db, "alice", "bob")
        return await request_service.all_for_user(db, "alice")

    assert len(run_db(scenario)) == 1


def test_duplicate_check_covers_answered_requests(run_db):
    async def scenario(db):
        await three_musicians(db)
        request = await request_service.send_request(db, "alice", "bob")
        await request_service.decline_request(db, request.id, "bob")
        with pytest.raises(DuplicateRequestError):
            await request_service.send_request(db, "alice", "bob")

    run_db(scenario)


def test_reverse_direction_is_a_separate_request(run_db):
    async def scenario(db):
        await three_musicians(db)
        await request_service.send_request(db, "alice", "bob")
        return await request_service.send_request(db, "bob", "alice")

    assert run_db(scenario).requester_id == "bob"


def test_self_and_unknown_receivers_are_rejected(run_db):
    async def scenario(db):
        await three_musicians(db)
        with pytest.raises(SelfRequestError):
            await request_service.send_request(db, "alice", "alice")
        with pytest.raises(ProfileNotFoundError):
            await request_service.send_request(db, "alice", "nobody")

    run_db(scenario)


def test_accept_provisions_chat(run_db):
    async def scenario(db):
        await three_musicians(db)
        request = await request_service.send_request(db, "alice", "bob")
        accepted, chat_id = await request_service.accept_request(db, request.id, "bob")
        await chat_service.send_message(db, chat_id, "bob", "Hi")
        messages = await chat_service.get_messages(db, chat_id)
        return accepted, chat_id, messages

    accepted, chat_id, messages = run_db(scenario)
    assert accepted.status == "accepted"
    assert chat_id == "alice_bob"
    assert [m.text for m in messages] == ["Hi"]


def test_accept_reuses_existing_chat(run_db):
    async def scenario(db):
        await three_musicians(db)
        existing = await chat_service.get_or_create_chat(db, "bob", "alice")
        request = await request_service.send_request(db, "alice", "bob")
        _, chat_id = await request_service.accept_request(db, request.id, "bob")
        return existing.id, chat_id

    existing_id, chat_id = run_db(scenario)
    assert existing_id == chat_id


def test_decline_leaves_no_chat(run_db):
    async def scenario(db):
        await three_musicians(db)
        request = await request_service.send_request(db, "alice", "bob")
        declined = await request_service.decline_request(db, request.id, "bob")
        return declined, await chat_service.list_chats(db, "alice")

    declined, chats = run_db(scenario)
    assert declined.status == "declined"
    assert chats == []


def test_answering_twice_is_invalid(run_db):
    async def scenario(db):
        await three_musicians(db)
        request = await request_service.send_request(db, "alice", "bob")
        await request_service.accept_request(db, request.id, "bob")
        with pytest.raises(InvalidTransitionError):
            await request_service.decline_request(db, request.id, "bob")
        with pytest.raises(InvalidTransitionError):
            await request_service.accept_request(db, request.id, "bob")

    run_db(scenario)


def test_only_receiver_can_answer(run_db):
    async def scenario(db):
        await three_musicians(db)
        request = await request_service.send_request(db, "alice", "bob")
        with pytest.raises(PermissionDeniedError):
            await request_service.accept_request(db, request.id, "alice")
        with pytest.raises(PermissionDeniedError):
            await request_service.decline_request(db, request.id, "carol")
        with pytest.raises(RequestNotFoundError):
            await request_service.accept_request(db, "missing", "bob")

    run_db(scenario)


def test_inbox_lists_are_newest_first_and_scoped(run_db):
    async def scenario(db):
        await three_musicians(db)
        first = await request_service.send_request(db, "alice", "carol")
        second = await request_service.send_request(db, "bob", "carol")
        answered = await request_service.send_request(db, "carol", "alice")
        await request_service.accept_request(db, answered.id, "alice")
        return (
            first.id,
            second.id,
            answered.id,
            await request_service.inbound_pending(db, "carol"),
            await request_service.outbound_pending(db, "alice"),
            await request_service.accepted_for_user(db, "carol"),
            await request_service.accepted_for_user(db, "alice"),
            await request_service.requested_receiver_ids(db, "alice"),
        )

    first, second, answered, inbound, outbound, carol_accepted, alice_accepted, requested = run_db(scenario)
    assert [r.id for r in inbound] == [second, first]
    assert [r.id for r in outbound] == [first]
    assert [r.id for r in carol_accepted] == [answered]
    assert [r.id for r in alice_accepted] == [answered]
    assert requested == {"carol"}


def test_other_party():
    request = type("R", (), {"requester_id": "alice", "receiver_id": "bob"})()
    assert request_service.other_party(request, "alice") == "bob"
    assert request_service.other_party(request, "bob") == "alice"

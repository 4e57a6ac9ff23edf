"""
Tests de la messagerie sur SQLite : création et déduplication des
conversations directes, participants, messages et accusés de lecture.
"""

import uuid

import pytest

from coursedesk.errors import ForbiddenError, NotFoundError, ValidationError
from coursedesk.schemas.chat import ConversationCreate, MessageCreate, ParticipantsAdd
from coursedesk.services import chat_service
from factories import create_user


@pytest.fixture
def alice(db_session):
    return create_user(db_session, "student", full_name="Alice")


@pytest.fixture
def bob(db_session):
    return create_user(db_session, "student", full_name="Bob")


@pytest.fixture
def prof(db_session):
    return create_user(db_session, "teacher", full_name="Prof")


def direct(db, actor, other):
    return chat_service.create_conversation(db, actor, ConversationCreate(type="direct", participant_ids=[other.id]))


def group(db, actor, *others, read_only=False):
    conversation, _ = chat_service.create_conversation(db, actor, ConversationCreate(
        type="group", title="Groupe", participant_ids=[o.id for o in others], read_only=read_only,
    ))
    return conversation


# ============================================================
# create_conversation
# ============================================================

def test_create_direct_conversation(db_session, alice, bob):
    conversation, created = direct(db_session, alice, bob)

    assert created is True
    roles = {p.user_id: p.role for p in conversation.participants}
    assert roles == {alice.id: "admin", bob.id: "member"}


def test_create_direct_existante_renvoyee(db_session, alice, bob):
    """Même paire dans l'autre sens → conversation existante, pas de doublon."""
    first, _ = direct(db_session, alice, bob)
    second, created = direct(db_session, bob, alice)

    assert created is False
    assert second.id == first.id


def test_create_direct_archivee_reutilisee(db_session, alice, bob):
    first, _ = direct(db_session, alice, bob)
    chat_service.set_archived(db_session, alice, first.id, True)

    second, created = direct(db_session, alice, bob)

    assert created is False
    assert second.id == first.id


def test_create_direct_participant_introuvable(db_session, alice):
    with pytest.raises(NotFoundError):
        chat_service.create_conversation(db_session, alice, ConversationCreate(
            type="direct", participant_ids=[uuid.uuid4()],
        ))


def test_create_direct_plusieurs_participants_rejete(db_session, alice, bob, prof):
    with pytest.raises(ValidationError):
        chat_service.create_conversation(db_session, alice, ConversationCreate(
            type="direct", participant_ids=[bob.id, prof.id],
        ))


def test_create_groupe_participant_introuvable(db_session, alice):
    with pytest.raises(ValidationError):
        chat_service.create_conversation(db_session, alice, ConversationCreate(
            type="group", participant_ids=[uuid.uuid4()],
        ))


def test_create_cours_inexistant(db_session, prof, alice):
    with pytest.raises(NotFoundError):
        chat_service.create_conversation(db_session, prof, ConversationCreate(
            type="course", participant_ids=[alice.id], related_course_id=uuid.uuid4(),
        ))


def test_create_avec_message_initial(db_session, alice, bob):
    conversation, _ = chat_service.create_conversation(db_session, alice, ConversationCreate(
        type="direct", participant_ids=[bob.id], initial_message="Bonjour !",
    ))
    assert conversation.last_message.content == "Bonjour !"


# ============================================================
# Participants
# ============================================================

def test_add_participants_refuse_en_direct(db_session, alice, bob, prof):
    conversation, _ = direct(db_session, alice, bob)
    with pytest.raises(ValidationError):
        chat_service.add_participants(db_session, alice, conversation.id, ParticipantsAdd(user_ids=[prof.id]))


def test_add_participants_membre_simple_interdit(db_session, alice, bob, prof):
    conversation = group(db_session, alice, bob)
    with pytest.raises(ForbiddenError):
        chat_service.add_participants(db_session, bob, conversation.id, ParticipantsAdd(user_ids=[prof.id]))


def test_remove_puis_reactive_participant(db_session, alice, bob):
    conversation = group(db_session, alice, bob)

    result = chat_service.remove_participant(db_session, bob, conversation.id, bob.id)
    assert {p.user_id: p.active for p in result.participants}[bob.id] is False
    assert chat_service.list_conversations(db_session, bob) == []

    result = chat_service.add_participants(db_session, alice, conversation.id, ParticipantsAdd(user_ids=[bob.id]))
    assert {p.user_id: p.active for p in result.participants}[bob.id] is True


# ============================================================
# Messages
# ============================================================

def test_send_message_met_a_jour_instantane_et_lecteur(db_session, alice, bob):
    conversation, _ = direct(db_session, alice, bob)

    message = chat_service.send_message(db_session, alice, conversation.id, MessageCreate(content="Salut"))

    assert [r.user_id for r in message.read_by] == [alice.id]
    refreshed = chat_service.get_conversation(db_session, alice, conversation.id)
    assert refreshed.last_message.content == "Salut"


def test_send_message_non_participant_interdit(db_session, alice, bob, prof):
    conversation, _ = direct(db_session, alice, bob)
    with pytest.raises(ForbiddenError):
        chat_service.send_message(db_session, prof, conversation.id, MessageCreate(content="Intrus"))


def test_send_message_lecture_seule_reserve_aux_admins(db_session, prof, alice):
    conversation = group(db_session, prof, alice, read_only=True)

    with pytest.raises(ForbiddenError):
        chat_service.send_message(db_session, alice, conversation.id, MessageCreate(content="Question"))
    chat_service.send_message(db_session, prof, conversation.id, MessageCreate(content="Annonce"))


def test_list_messages_ordre_chronologique_et_lecture(db_session, alice, bob):
    conversation, _ = direct(db_session, alice, bob)
    for text in ("un", "deux", "trois"):
        chat_service.send_message(db_session, alice, conversation.id, MessageCreate(content=text))

    messages = chat_service.list_messages(db_session, bob, conversation.id, page=1, limit=2)

    assert [m.content for m in messages] == ["deux", "trois"]
    assert all(bob.id in [r.user_id for r in m.read_by] for m in messages)


def test_mark_read_idempotent(db_session, alice, bob):
    conversation, _ = direct(db_session, alice, bob)
    message = chat_service.send_message(db_session, alice, conversation.id, MessageCreate(content="Lu ?"))

    chat_service.mark_read(db_session, bob, conversation.id)
    chat_service.mark_read(db_session, bob, conversation.id, [message.id])

    messages = chat_service.list_messages(db_session, alice, conversation.id)
    assert [r.user_id for r in messages[0].read_by].count(bob.id) == 1


def test_delete_message_logique(db_session, alice, bob):
    conversation, _ = direct(db_session, alice, bob)
    message = chat_service.send_message(db_session, alice, conversation.id, MessageCreate(content="Oups"))

    with pytest.raises(ForbiddenError):
        chat_service.delete_message(db_session, bob, conversation.id, message.id)
    chat_service.delete_message(db_session, alice, conversation.id, message.id)

    assert chat_service.list_messages(db_session, alice, conversation.id) == []


def test_archive_filtre_la_liste(db_session, alice, bob):
    conversation, _ = direct(db_session, alice, bob)
    chat_service.set_archived(db_session, alice, conversation.id, True)

    assert chat_service.list_conversations(db_session, alice, archived=False) == []
    assert [c.id for c in chat_service.list_conversations(db_session, alice, archived=True)] == [conversation.id]

"""
Tests de la politique d'autorisation déclarative.
"""

import uuid

import pytest

from coursedesk.errors import ForbiddenError
from coursedesk.policy import RULES, authorize, is_allowed
from factories import make_user


admin = make_user("admin")
teacher = make_user("teacher")
student = make_user("student")


def test_action_inconnue_leve_keyerror():
    with pytest.raises(KeyError):
        is_allowed(admin, "course:explode")


def test_authorize_leve_forbidden_avec_message():
    with pytest.raises(ForbiddenError) as exc:
        authorize(student, "course:create", message="Réservé aux administrateurs.")
    assert exc.value.message == "Réservé aux administrateurs."


@pytest.mark.parametrize("action", ["student:create", "teacher:create", "course:create", "course:delete"])
def test_creations_reservees_a_l_admin(action):
    assert is_allowed(admin, action)
    assert not is_allowed(teacher, action)
    assert not is_allowed(student, action)


def test_cours_modifiable_par_son_enseignant_uniquement():
    assert is_allowed(teacher, "course:update", {"teacher_user_id": teacher.id})
    assert not is_allowed(teacher, "course:update", {"teacher_user_id": uuid.uuid4()})
    assert not is_allowed(student, "course:update", {"teacher_user_id": student.id})


def test_inscription_eleve_pour_lui_meme():
    assert is_allowed(student, "enrollment:enroll", {"student_user_id": student.id})
    assert not is_allowed(student, "enrollment:enroll", {"student_user_id": uuid.uuid4()})
    assert not is_allowed(teacher, "enrollment:enroll", {"student_user_id": teacher.id})
    assert is_allowed(admin, "enrollment:withdraw", {"student_user_id": uuid.uuid4()})


def test_identifiants_compares_en_texte():
    assert is_allowed(teacher, "calendar:mutate", {"creator_id": str(teacher.id)})


def test_publication_conversation_lecture_seule():
    member = {"is_participant": True, "is_conversation_admin": False, "read_only": True}
    conversation_admin = {**member, "is_conversation_admin": True}

    assert not is_allowed(student, "conversation:post", member)
    assert is_allowed(student, "conversation:post", conversation_admin)
    assert is_allowed(student, "conversation:post", {**member, "read_only": False})
    assert not is_allowed(admin, "conversation:post", {"is_participant": False})


def test_acces_rapport_par_role_ou_identite():
    by_role = {"creator_id": uuid.uuid4(), "grants": [{"grant_kind": "role", "value": "teacher"}]}
    by_identity = {"creator_id": uuid.uuid4(), "grants": [{"grant_kind": "identity", "value": str(student.id)}]}

    assert is_allowed(teacher, "report:read", by_role)
    assert not is_allowed(student, "report:read", by_role)
    assert is_allowed(student, "report:read", by_identity)
    assert not is_allowed(teacher, "report:mutate", by_role)


def test_toutes_les_regles_sont_appelables():
    for action in RULES:
        assert isinstance(is_allowed(admin, action, {}), bool)

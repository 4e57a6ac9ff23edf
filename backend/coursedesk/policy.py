"""
Politique d'autorisation déclarative.

Chaque action est associée à un prédicat (acteur, faits) → bool. Les services
construisent le dictionnaire de faits propre à la ressource (propriétaire,
créateur, participation) et appellent authorize() ; aucun handler ne teste
les rôles lui-même.
"""

from typing import Any, Callable, Mapping, Optional

from coursedesk.errors import ForbiddenError

ADMIN = "admin"
TEACHER = "teacher"
STUDENT = "student"
ROLES = (ADMIN, TEACHER, STUDENT)

Facts = Mapping[str, Any]
Predicate = Callable[[Any, Facts], bool]


def has_role(*roles: str) -> Predicate:
    return lambda actor, facts: actor.role in roles


def is_self(key: str) -> Predicate:
    """L'acteur est l'identité désignée par facts[key]."""
    return lambda actor, facts: facts.get(key) is not None and str(facts[key]) == str(actor.id)


def flag(key: str) -> Predicate:
    return lambda actor, facts: bool(facts.get(key))


def any_of(*predicates: Predicate) -> Predicate:
    return lambda actor, facts: any(p(actor, facts) for p in predicates)


def all_of(*predicates: Predicate) -> Predicate:
    return lambda actor, facts: all(p(actor, facts) for p in predicates)


def authenticated(actor, facts: Facts) -> bool:
    return actor is not None


def _not_read_only(actor, facts: Facts) -> bool:
    return not facts.get("read_only")


def _report_granted(actor, facts: Facts) -> bool:
    for grant in facts.get("grants", ()):
        if grant["grant_kind"] == "role" and grant["value"] == actor.role:
            return True
        if grant["grant_kind"] == "identity" and grant["value"] == str(actor.id):
            return True
    return False


_course_staff = any_of(has_role(ADMIN), all_of(has_role(TEACHER), is_self("teacher_user_id")))
_self_service = any_of(has_role(ADMIN), all_of(has_role(STUDENT), is_self("student_user_id")))

RULES: dict[str, Predicate] = {
    # Élèves
    "student:list": has_role(ADMIN, TEACHER),
    "student:read": any_of(has_role(ADMIN, TEACHER), is_self("user_id")),
    "student:create": has_role(ADMIN),
    "student:update": has_role(ADMIN),
    "student:delete": has_role(ADMIN),
    # Enseignants
    "teacher:list": has_role(ADMIN),
    "teacher:read": authenticated,
    "teacher:create": has_role(ADMIN),
    "teacher:update": any_of(has_role(ADMIN), is_self("user_id")),
    "teacher:delete": has_role(ADMIN),
    "teacher:availability": any_of(has_role(ADMIN), is_self("user_id")),
    # Cours
    "course:read": authenticated,
    "course:create": has_role(ADMIN),
    "course:update": _course_staff,
    "course:delete": has_role(ADMIN),
    "course:roster": _course_staff,
    "course:add_material": _course_staff,
    # Inscriptions
    "enrollment:enroll": _self_service,
    "enrollment:withdraw": _self_service,
    # Calendrier
    "calendar:create": has_role(ADMIN, TEACHER),
    "calendar:mutate": any_of(has_role(ADMIN), is_self("creator_id")),
    # Rapports
    "report:create": has_role(ADMIN, TEACHER),
    "report:list": has_role(ADMIN, TEACHER),
    "report:read": any_of(has_role(ADMIN), is_self("creator_id"), _report_granted),
    "report:mutate": any_of(has_role(ADMIN), is_self("creator_id")),
    # Messagerie
    "conversation:read": any_of(has_role(ADMIN), flag("is_participant")),
    "conversation:post": all_of(
        flag("is_participant"),
        any_of(_not_read_only, flag("is_conversation_admin"), has_role(ADMIN)),
    ),
    "conversation:archive": flag("is_participant"),
    "conversation:manage": any_of(has_role(ADMIN), flag("is_conversation_admin")),
    "conversation:remove_participant": any_of(
        has_role(ADMIN), flag("is_conversation_admin"), is_self("target_user_id")
    ),
    "message:delete": any_of(has_role(ADMIN), is_self("sender_id")),
}


def is_allowed(actor, action: str, facts: Optional[Facts] = None) -> bool:
    if action not in RULES:
        raise KeyError(f"Action inconnue dans la politique d'accès : {action}")
    return RULES[action](actor, facts or {})


def authorize(actor, action: str, facts: Optional[Facts] = None, message: Optional[str] = None) -> None:
    """Lève ForbiddenError si l'acteur n'est pas autorisé à effectuer l'action."""
    if not is_allowed(actor, action, facts):
        raise ForbiddenError(message)

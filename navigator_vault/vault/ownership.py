"""Ownership verification shared by every vault read and mutation."""
from operator import attrgetter
from typing import Any, Callable, Optional, TypeVar

from .exceptions import Forbidden, NotFound

T = TypeVar("T")

owner_id_of = attrgetter("owner_id")


def verify_ownership(
    entity: Optional[T],
    user_id: str,
    *,
    entity_name: str = "Vault item",
    owner_of: Callable[[T], Any] = owner_id_of,
    hide_foreign: bool = False,
) -> T:
    """Return ``entity`` when ``user_id`` owns it.

    Args:
        entity: Record fetched by id, or None when the lookup missed.
        user_id: Caller identity.
        entity_name: Name used in error messages.
        owner_of: Accessor returning the owner field of ``entity``.
        hide_foreign: Report foreign records as NotFound instead of Forbidden.

    Raises:
        NotFound: If ``entity`` is None (or foreign, with ``hide_foreign``).
        Forbidden: If ``entity`` belongs to another user.
    """
    if entity is None:
        raise NotFound(entity_name)
    if owner_of(entity) != user_id:
        if hide_foreign:
            raise NotFound(entity_name)
        raise Forbidden(entity_name)
    return entity

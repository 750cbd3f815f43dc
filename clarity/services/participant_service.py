import logging
from typing import Callable, Dict, Iterable, Optional, Tuple, Type
from beanie import Document
from ..models import Admin, Member, ParticipantKind
from ..schemas import ParticipantPublic
from ..utils import to_object_id
from .tenant_filter import scope

logger = logging.getLogger(__name__)

ADMIN_DISPLAY_NAME = "Admin"


def _project_admin(admin: Admin) -> ParticipantPublic:
    # Individual admins are never identified to members
    return ParticipantPublic(id=str(admin.id), name=ADMIN_DISPLAY_NAME)


def _project_member(member: Member) -> ParticipantPublic:
    return ParticipantPublic(id=str(member.id), name=member.name)


# kind -> (model, projection)
_STRATEGIES = {
    ParticipantKind.MEMBER: (Member, _project_member),
    ParticipantKind.ADMIN: (Admin, _project_admin),
}

# identify_kind probes members first
_PROBE_ORDER = (ParticipantKind.MEMBER, ParticipantKind.ADMIN)


class ParticipantService:
    """Resolves polymorphic sender/recipient references to public identities."""

    @staticmethod
    def _strategy(kind) -> Tuple[Type[Document], Callable]:
        return _STRATEGIES[ParticipantKind(kind)]

    async def resolve(
        self, participant_id: str, kind, tenant_id: Optional[str] = None
    ) -> Optional[ParticipantPublic]:
        """Return {id, name} for the participant, or None if the id does not exist in that kind and gym."""
        oid = to_object_id(participant_id)
        if oid is None or kind is None:
            return None
        model, project = self._strategy(kind)
        doc = await model.find_one(scope({"_id": oid}, tenant_id))
        return project(doc) if doc else None

    async def resolve_many(
        self, refs: Iterable[Tuple[str, str]], tenant_id: Optional[str] = None
    ) -> Dict[Tuple[ParticipantKind, str], ParticipantPublic]:
        """
        Resolve many (kind, id) pairs with one query per kind.
        Pairs that do not resolve, or belong to another gym when a tenant id
        is given, are absent from the result.
        """
        ids_by_kind: Dict[ParticipantKind, set] = {}
        for kind, participant_id in refs:
            if kind is None or participant_id is None:
                continue
            ids_by_kind.setdefault(ParticipantKind(kind), set()).add(participant_id)

        resolved = {}
        for kind, ids in ids_by_kind.items():
            oids = [oid for oid in (to_object_id(i) for i in ids) if oid is not None]
            if not oids:
                continue
            model, project = self._strategy(kind)
            docs = await model.find(scope({"_id": {"$in": oids}}, tenant_id)).to_list()
            for doc in docs:
                resolved[(kind, str(doc.id))] = project(doc)
        return resolved

    async def identify_kind(
        self, participant_id: str, tenant_id: Optional[str] = None
    ) -> Optional[Tuple[ParticipantKind, ParticipantPublic]]:
        """
        Find out whether an id is a member or an admin when only the bare id is known.
        With a tenant id, participants of other gyms do not match.
        """
        oid = to_object_id(participant_id)
        if oid is None:
            return None
        for kind in _PROBE_ORDER:
            model, project = _STRATEGIES[kind]
            doc = await model.find_one(scope({"_id": oid}, tenant_id))
            if doc:
                return kind, project(doc)
        logger.debug(f"Participant {participant_id} not found in tenant {tenant_id}")
        return None

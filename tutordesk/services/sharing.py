import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tutordesk.core.exceptions import ValidationError
from tutordesk.models.user import User

logger = logging.getLogger(__name__)


def _apply_grants(db: Session, share_model, fk_name: str, entity_id: int,
                  user_ids: list[int], permission: str, shared_by: int):
    fk = getattr(share_model, fk_name)
    grants = []
    for user_id in user_ids:
        grant = db.scalar(select(share_model).where(fk == entity_id, share_model.user_id == user_id))
        if grant:
            grant.permission = permission
        else:
            grant = share_model(user_id=user_id, permission=permission, shared_by=shared_by)
            setattr(grant, fk_name, entity_id)
            db.add(grant)
        grants.append(grant)
    return grants


def upsert_grants(db: Session, share_model, fk_name: str, entity_id: int,
                  user_ids: list[int], permission: str, shared_by: int):
    """Creates or updates one grant per user; never duplicates a (entity, user) pair.

    A concurrent insert of the same pair trips the unique constraint; the
    batch is then replayed once, turning that insert into an update.
    """
    user_ids = list(dict.fromkeys(user_ids))
    if not user_ids:
        raise ValidationError.for_field("user_ids", "At least one user id is required")

    known = set(db.scalars(select(User.id).where(User.id.in_(user_ids))).all())
    unknown = [uid for uid in user_ids if uid not in known]
    if unknown:
        raise ValidationError(
            "Unknown users", [{"field": "user_ids", "message": f"User {uid} does not exist"} for uid in unknown]
        )

    for attempt in range(2):
        try:
            grants = _apply_grants(db, share_model, fk_name, entity_id, user_ids, permission, shared_by)
            db.commit()
            break
        except IntegrityError:
            db.rollback()
            if attempt:
                raise
            logger.info("Concurrent share on %s %s, retrying as update", share_model.__tablename__, entity_id)

    logger.info(
        "Shared %s %s with %s (%s)", share_model.__tablename__, entity_id, user_ids, permission
    )
    return grants

"""
FastAPI dependencies shared by the routers.
"""
import logging

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from database import User, get_db
from student_performance import Actor, AuthorizationService

logger = logging.getLogger(__name__)


def get_current_actor(
    x_actor_id: int = Header(..., alias="X-Actor-Id", description="ID of the authenticated actor"),
    db: Session = Depends(get_db),
) -> Actor:
    """
    Resolve the calling actor.

    Authentication happens upstream; this layer receives the actor id and
    loads the role from the database rather than trusting the client for it.
    """
    user = db.get(User, x_actor_id)
    if user is None:
        logger.warning("Request with unknown actor id %s", x_actor_id)
        raise HTTPException(status_code=401, detail="Unknown actor")
    return Actor(id=user.id, role=user.role)


def get_authorization(db: Session = Depends(get_db)) -> AuthorizationService:
    return AuthorizationService(db)

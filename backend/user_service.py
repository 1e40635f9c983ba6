import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

import auth
import models
from errors import Conflict, NotFound, ValidationError
from permissions import Action, Role, require
from schemas import RegisterRequest, UserResponse, UserSave

logger = logging.getLogger(__name__)


def user_to_response(user: models.User) -> UserResponse:
    return UserResponse(id=user.id, name=user.name, email=user.email, role=Role.parse(user.role).value)


class UserService:
    def __init__(self, db: Session):
        self.db = db

    def list_users(self, actor) -> List[UserResponse]:
        require(actor, Action.LIST_USERS)
        users = self.db.query(models.User).order_by(models.User.created_at.desc(), models.User.id.desc()).all()
        return [user_to_response(u) for u in users]

    def save_user(self, actor, data: UserSave) -> UserResponse:
        """Admin add-or-update: by user_id updates in place, by email upserts."""
        require(actor, Action.MANAGE_USER)
        if data.user_id is None and not data.email:
            raise ValidationError("Missing user_id/email or role")

        if data.user_id is not None:
            user = self._find(data.user_id)
        else:
            user = self.db.query(models.User).filter(models.User.email == data.email).first()

        if user is None:
            user = models.User(email=data.email, name=data.name, role=data.role)
            self.db.add(user)
        else:
            user.role = data.role
            if data.name:
                user.name = data.name
            if data.email and data.email != user.email:
                user.email = data.email
        if data.password:
            user.password = auth.get_password_hash(data.password)

        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise Conflict("A user with this email already exists")
        self.db.refresh(user)
        logger.info(f"User {user.email} saved with role {user.role}")
        return user_to_response(user)

    def delete_user(self, actor, user_id: int) -> None:
        require(actor, Action.MANAGE_USER)
        if getattr(actor, "id", None) == user_id:
            raise ValidationError("You cannot delete your own account.")
        user = self._find(user_id)
        self.db.delete(user)
        self.db.commit()
        logger.info(f"User {user_id} deleted")

    def register(self, data: RegisterRequest) -> UserResponse:
        if self.db.query(models.User).filter(models.User.email == data.email).first():
            raise Conflict("Email already registered")
        user = models.User(
            name=data.name,
            email=data.email,
            role=Role.CUSTOMER.value,
            password=auth.get_password_hash(data.password),
        )
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise Conflict("Email already registered")
        self.db.refresh(user)
        logger.info(f"Customer {user.email} registered")
        return user_to_response(user)

    def authenticate(self, email: str, password: str) -> Optional[models.User]:
        return auth.authenticate_user(self.db, email.strip().lower(), password)

    def _find(self, user_id: int) -> models.User:
        user = self.db.query(models.User).filter(models.User.id == user_id).first()
        if not user:
            raise NotFound("User not found")
        return user

"""
User Service - Business Logic for User Operations
"""
import logging
from typing import Optional
from sqlalchemy import or_
from sqlalchemy.orm import Session

from inventra.core.exceptions import InvalidInputError
from inventra.core.security import get_password_hash, verify_password
from inventra.models import User, utcnow
from inventra.schemas import RegisterRequest

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, user_id: int) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def get_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email.lower()).first()

    def get_by_email_or_phone(self, email_or_phone: str) -> Optional[User]:
        value = email_or_phone.strip()
        return self.db.query(User).filter(
            or_(User.email == value.lower(), User.phone_number == value)
        ).first()

    def create(self, user_data: RegisterRequest) -> User:
        email = user_data.email.lower()
        phone_number = user_data.phone_number.strip()

        if self.get_by_email(email):
            raise InvalidInputError("Email already registered")
        if self.db.query(User).filter(User.phone_number == phone_number).first():
            raise InvalidInputError("Phone number already registered")

        user = User(
            name=user_data.name,
            email=email,
            phone_number=phone_number,
            company_name=user_data.company_name,
            hashed_password=get_password_hash(user_data.password),
            is_active=True
        )
        self.db.add(user)
        self.db.flush()
        logger.info("Registered user %s", user.id)
        return user

    def authenticate(self, email_or_phone: str, password: str) -> Optional[User]:
        user = self.get_by_email_or_phone(email_or_phone)
        if not user or not verify_password(password, user.hashed_password):
            logger.warning("Failed login for %s", email_or_phone)
            return None
        user.last_login = utcnow()
        self.db.flush()
        return user

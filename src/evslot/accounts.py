import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import crud, schemas
from .auth import hash_password, verify_password
from .errors import DuplicateEmail, DuplicateUsername, InvalidCredentials

logger = logging.getLogger("evslot_logger")


def _check_unique(db: Session, user: schemas.UserCreate):
    if crud.get_user_by_username(db, user.username) is not None:
        raise DuplicateUsername("Username already exists")
    if crud.get_user_by_email(db, str(user.email)) is not None:
        raise DuplicateEmail("Email already exists")


def register(db: Session, user: schemas.UserCreate):
    ''' Creates a user after checking that neither the username nor the email is taken. '''
    _check_unique(db, user)

    try:
        db_user = crud.create_user(db, {
            "username": user.username,
            "email": str(user.email),
            "name": user.name,
            "role": user.role,
            "password_hash": hash_password(user.password),
        })
    except IntegrityError:
        # Lost a race with a concurrent registration; report whichever field collided
        db.rollback()
        _check_unique(db, user)
        raise
    logger.info(f"Registered user {db_user.id} ({db_user.username}).")
    return db_user


def login(db: Session, username: str, password: str):
    db_user = crud.get_user_by_username(db, username)
    # Same error for unknown user and wrong password
    if db_user is None or not verify_password(password, db_user.password_hash):
        raise InvalidCredentials("Invalid credentials")
    return db_user

from firebase_admin import auth
from cachetools import TTLCache
from datetime import timedelta
from typing import Optional
from fastapi import Depends, Header, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession
from .database import get_db
from .errors import Forbidden, NotFound
from .localization import resolve_language
from . import crud, models
import logging
import os


# Verified tokens are cached so repeat requests skip the Firebase round trip
token_cache = TTLCache(
    maxsize=1000,
    ttl=timedelta(minutes=int(os.getenv("TOKEN_CACHE_TTL_MINUTES", "5"))).total_seconds(),
)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")

logger = logging.getLogger(__name__)

async def verify_token(token: str):
    if token in token_cache:
        return token_cache[token]

    try:
        decoded_token = auth.verify_id_token(token)
        token_cache[token] = decoded_token
        return decoded_token
    except Exception as e:
        logger.warning(f"Token verification failed: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

def set_role_claim(uid: str, role: models.UserRole):
    auth.set_custom_user_claims(uid, {"role": role.value})
    logger.info(f"Custom claims set for user: {uid}")

async def get_current_user(token: str = Depends(oauth2_scheme), db: AsyncSession = Depends(get_db)) -> models.User:
    decoded_token = await verify_token(token)
    uid = decoded_token.get("uid")
    if uid is None:
        raise HTTPException(status_code=401, detail="Invalid token")

    user = await crud.get_user_by_uid(db, str(uid))
    if user is None:
        logger.warning(f"Token for unknown user {uid}")
        raise HTTPException(status_code=401, detail="User not found")
    return user

def require_roles(*roles: models.UserRole):
    allowed = ", ".join(role.value for role in roles)

    async def guard(user: models.User = Depends(get_current_user)) -> models.User:
        if user.role not in roles:
            raise Forbidden(f"Not authorized, requires role: {allowed}")
        return user

    return guard

require_admin = require_roles(models.UserRole.admin)
require_trainer = require_roles(models.UserRole.trainer)
require_trainee = require_roles(models.UserRole.trainee)
require_admin_or_trainer = require_roles(models.UserRole.admin, models.UserRole.trainer)

async def get_current_trainer(
    user: models.User = Depends(require_trainer),
    db: AsyncSession = Depends(get_db),
) -> models.Trainer:
    trainer = await crud.get_trainer_by_user_uid(db, user.uid)
    if trainer is None:
        raise NotFound("Trainer profile not found")
    return trainer

async def get_current_trainee(
    user: models.User = Depends(require_trainee),
    db: AsyncSession = Depends(get_db),
) -> models.Trainee:
    trainee = await crud.get_trainee_by_user_uid(db, user.uid)
    if trainee is None:
        raise NotFound("Trainee profile not found")
    return trainee

def get_language(lang: Optional[str] = Header(default=None)) -> models.LanguageCode:
    return resolve_language(lang)

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from sqlalchemy import select
from tutordesk.db.session import SessionLocal
from tutordesk.core.files import LocalBlobStore, get_default_store
from tutordesk.core.security import decode_token
from tutordesk.models.user import User
from tutordesk.services.conferencing import ConferencingProvider, get_default_provider

bearer = HTTPBearer()

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def get_current_user(creds: HTTPAuthorizationCredentials = Depends(bearer),
                     db: Session = Depends(get_db)) -> User:
    token = creds.credentials
    try:
        payload = decode_token(token)
    except jwt.PyJWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")
    email = payload.get("sub")
    user = db.scalar(select(User).where(User.email == email))
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="User not found or inactive")
    return user

def require_role_any(allowed: list[str]):
    def checker(user: User = Depends(get_current_user)):
        if user.role not in allowed:
            raise HTTPException(status_code=403, detail="Forbidden (role)")
        return True
    return checker

def get_blob_store() -> LocalBlobStore:
    return get_default_store()

def get_conferencing_provider() -> ConferencingProvider:
    return get_default_provider()

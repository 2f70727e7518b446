from typing import List, Literal, Optional
from pydantic import BaseModel, Field

from lrems_backend.permissions.principal import AccessRule

StaleReason = Literal['access_rules_changed', 'user_not_found', 'server_error']


class SessionValidate(BaseModel):
    access_rules_version: Optional[int] = None


class SessionValidationResult(BaseModel):
    valid: bool
    reason: Optional[StaleReason] = None
    message: Optional[str] = None
    current_version: Optional[int] = None
    access_rules: Optional[List[AccessRule]] = None
    is_admin_access: Optional[bool] = None


class AccessUpdate(BaseModel):
    """Grant change; fields left unset are not touched"""
    access_rules: Optional[List[AccessRule]] = None
    is_admin_access: Optional[bool] = None


class UserAccessGet(BaseModel):
    username: str
    access_rules: List[AccessRule] = Field(default_factory=list)
    is_admin_access: bool = False
    access_rules_version: int = 1
    version_changed: bool = False


class LoginResult(BaseModel):
    username: str
    name: Optional[str] = None
    role: str
    access_rules: List[AccessRule] = Field(default_factory=list)
    is_admin_access: bool = False
    evaluator_id: Optional[str] = None
    access_rules_version: int = 1

"""
Database Schemas for the Karthavya task manager

Collections:
- User -> "users"
- Task -> "tasks" (subtasks are embedded, they have no collection of their own)

These are used both for validation and to guide DB operations. The
field rules shared by request bodies live here as plain functions.
"""

import re
from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

# Users
AccountStatus = Literal["pending", "active", "suspended"]
AuthProvider = Literal["credentials", "google"]

class User(BaseModel):
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=120)
    password: Optional[str] = None
    auth_provider: AuthProvider = "credentials"
    is_email_verified: bool = False
    email_verification_otp: Optional[str] = None
    email_verification_otp_expiry: Optional[datetime] = None
    account_status: AccountStatus = "pending"
    avatar: Optional[str] = None

# Tasks and Subtasks
TaskStatus = Literal["pending", "inprogress", "completed"]

class Subtask(BaseModel):
    id: str
    title: str
    completed: bool = False
    due_date: Optional[str] = None
    due_time: Optional[str] = None

class Task(BaseModel):
    user_id: str
    title: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    due_date: str
    status: TaskStatus = "pending"
    subtasks: List[Subtask] = []


NAME_RE = re.compile(r"^[a-zA-Z\s]+$")
PASSWORD_RE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&#])")
DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIME_RE = re.compile(r"^\d{2}:\d{2}$")
OTP_RE = re.compile(r"^\d{6}$")


def check_name(value: str) -> str:
    if not NAME_RE.match(value):
        raise ValueError("Name can only contain letters and spaces")
    return value


def check_password_strength(value: str) -> str:
    if not PASSWORD_RE.match(value):
        raise ValueError(
            "Password must contain at least one uppercase letter, one lowercase letter, "
            "one number, and one special character (@$!%*?&#)"
        )
    return value


def check_date_format(value: str) -> str:
    if not DATE_RE.match(value):
        raise ValueError("Invalid date format")
    try:
        date.fromisoformat(value)
    except ValueError:
        raise ValueError("Invalid date format")
    return value


def check_not_past(value: str) -> str:
    check_date_format(value)
    if date.fromisoformat(value) < date.today():
        raise ValueError("Due date cannot be in the past")
    return value


def check_time_format(value: str) -> str:
    if not TIME_RE.match(value):
        raise ValueError("Invalid time format")
    return value

"""
Database Schemas for EstateEase

Each Pydantic model maps to a MongoDB collection in the "estateEase" database.
Field names are camelCase to match the documents the web client reads.
"""
from datetime import datetime
from typing import Literal, Optional, Union

from pydantic import BaseModel, Field

AgreementStatus = Literal['pending', 'accepted', 'rejected']
Unit = Union[int, str]


class Agreement(BaseModel):
    """Collection: "agreements" """
    userName: str
    userEmail: str
    floorNo: Unit
    blockName: str
    apartmentNo: Unit
    rent: float
    status: AgreementStatus = 'pending'
    createdAt: datetime


class Payment(BaseModel):
    """Append-only ledger. Collection: "payments" """
    userEmail: str
    floorNo: Unit
    blockName: str
    apartmentNo: Unit
    originalRent: float
    finalRent: float
    discount: float = 0
    month: str
    paymentDate: datetime


class Coupon(BaseModel):
    """Collection: "coupons" """
    code: str
    discount: float = Field(ge=0)
    expiration: datetime
    description: Optional[str] = None


class User(BaseModel):
    """Collection: "users" """
    email: str
    displayName: Optional[str] = None
    role: str = 'user'
    lastLogin: Optional[str] = None


class Announcement(BaseModel):
    """Collection: "announcements" """
    title: str
    description: str
    createdAt: datetime

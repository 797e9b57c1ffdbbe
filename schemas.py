#schemas.py
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field

from models import DaySchedule


class ScheduleUpdateSchema(BaseModel):
    weeklySchedule: List[DaySchedule] = Field(min_length=1)


class BookingCreateSchema(BaseModel):
    userId: str = Field(min_length=1)
    salonId: str = Field(min_length=1)
    date: str = Field(min_length=1)
    timeSlot: str = Field(min_length=1)
    seatNumber: int
    service: Optional[str] = None


class SalonLeadSchema(BaseModel):
    ownerName: str = Field(min_length=1)
    salonName: str = Field(min_length=1)
    mobile: str = Field(min_length=1)
    email: EmailStr
    salonAddress: str = Field(min_length=1)


class SalonUpdateSchema(BaseModel):
    ownerName: Optional[str] = None
    salonName: Optional[str] = None
    mobile: Optional[str] = None
    email: Optional[EmailStr] = None
    salonAddress: Optional[str] = None
    locationMapUrl: Optional[str] = None
    salonTitle: Optional[str] = None
    salonDescription: Optional[str] = None
    socialLinks: Optional[dict] = None
    openingHours: Optional[str] = None
    facilities: Optional[List[str]] = None
    services: Optional[List[dict]] = None
    category: Optional[str] = None


class ReviewSchema(BaseModel):
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = None
    phone: str = Field(min_length=1)


class SendOtpSchema(BaseModel):
    mobileNumber: str = Field(min_length=1)


class VerifyOtpSchema(BaseModel):
    mobileNumber: str = Field(min_length=1)
    otp: str = Field(min_length=1)
    referralCode: Optional[str] = None


class LocationSchema(BaseModel):
    mobileNumber: str = Field(min_length=1)
    latitude: float
    longitude: float


class ProfileSchema(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    gender: Optional[str] = None


class BlogCreateSchema(BaseModel):
    title: str = Field(min_length=1)
    content: str = Field(min_length=1)
    category: str = Field(min_length=1)
    # La imagen se sube aparte; aquí solo llega su URL pública
    imageUrl: Optional[str] = None


class BlogUpdateSchema(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    category: Optional[str] = None
    imageUrl: Optional[str] = None


class CommentSchema(BaseModel):
    name: str = Field(min_length=1)
    email: Optional[EmailStr] = None
    number: Optional[str] = None
    message: str = Field(min_length=1)

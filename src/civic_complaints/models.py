"""Domain models for the guest complaint workflow."""

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum, auto
from typing import Any, Optional


class ComplaintType(str, Enum):
    """Fixed complaint categories accepted by the portal."""
    WATER_SUPPLY = "WATER_SUPPLY"
    ELECTRICITY = "ELECTRICITY"
    ROAD_REPAIR = "ROAD_REPAIR"
    GARBAGE_COLLECTION = "GARBAGE_COLLECTION"
    STREET_LIGHTING = "STREET_LIGHTING"
    SEWERAGE = "SEWERAGE"
    PUBLIC_HEALTH = "PUBLIC_HEALTH"
    TRAFFIC = "TRAFFIC"
    OTHERS = "OTHERS"


class Priority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class WizardStep(IntEnum):
    """Steps of the complaint form."""
    DETAILS = 1
    LOCATION = 2
    ATTACHMENTS = 3
    REVIEW = 4


class SubmissionState(Enum):
    """States of the submission flow."""
    IDLE = auto()
    SUBMITTING_INTAKE = auto()
    INTAKE_FAILED = auto()
    AWAITING_OTP = auto()
    SUBMITTING_VERIFY = auto()
    SUCCEEDED = auto()


@dataclass(frozen=True)
class Coordinates:
    latitude: float
    longitude: float

    @classmethod
    def parse(cls, text: str) -> "Coordinates":
        """Parse "lat, lng" text. Raises ValueError on anything else."""
        parts = [p.strip() for p in text.split(",")]
        if len(parts) != 2:
            raise ValueError("Enter coordinates as: latitude, longitude")
        return cls(latitude=float(parts[0]), longitude=float(parts[1]))


@dataclass
class ComplaintDraft:
    """An in-progress complaint held on the client until verification."""
    # Details
    full_name: str = ""
    email: str = ""
    phone_number: str = ""
    type: str = ""
    description: str = ""
    priority: str = Priority.MEDIUM.value

    # Location
    ward_id: str = ""
    sub_zone_id: str = ""
    area: str = ""
    landmark: str = ""
    address: str = ""
    coordinates: Optional[Coordinates] = None

    def identity_fields(self) -> dict[str, str]:
        """Fields sent with the intake call."""
        return {
            "fullName": self.full_name.strip(),
            "email": self.email.strip(),
            "phoneNumber": self.phone_number.strip(),
        }

    def to_form_fields(self) -> dict[str, str]:
        """Serialize to the backend's multipart field names.

        Optional fields are omitted when empty, and coordinates travel as a
        JSON-encoded string.
        """
        fields = self.identity_fields()
        fields.update({
            "type": self.type,
            "description": self.description.strip(),
            "priority": self.priority or Priority.MEDIUM.value,
            "wardId": self.ward_id,
            "area": self.area.strip(),
        })
        if self.sub_zone_id:
            fields["subZoneId"] = self.sub_zone_id
        if self.landmark.strip():
            fields["landmark"] = self.landmark.strip()
        if self.address.strip():
            fields["address"] = self.address.strip()
        if self.coordinates is not None:
            fields["coordinates"] = json.dumps({
                "latitude": self.coordinates.latitude,
                "longitude": self.coordinates.longitude,
            })
        return fields

    def to_dict(self) -> dict[str, Any]:
        data = {
            "full_name": self.full_name,
            "email": self.email,
            "phone_number": self.phone_number,
            "type": self.type,
            "description": self.description,
            "priority": self.priority,
            "ward_id": self.ward_id,
            "sub_zone_id": self.sub_zone_id,
            "area": self.area,
            "landmark": self.landmark,
            "address": self.address,
            "coordinates": None,
        }
        if self.coordinates is not None:
            data["coordinates"] = {
                "latitude": self.coordinates.latitude,
                "longitude": self.coordinates.longitude,
            }
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ComplaintDraft":
        coordinates = data.get("coordinates")
        return cls(
            full_name=data.get("full_name", ""),
            email=data.get("email", ""),
            phone_number=data.get("phone_number", ""),
            type=data.get("type", ""),
            description=data.get("description", ""),
            priority=data.get("priority") or Priority.MEDIUM.value,
            ward_id=data.get("ward_id", ""),
            sub_zone_id=data.get("sub_zone_id", ""),
            area=data.get("area", ""),
            landmark=data.get("landmark", ""),
            address=data.get("address", ""),
            coordinates=Coordinates(**coordinates) if coordinates else None,
        )


@dataclass
class Attachment:
    """A client-held file accepted for upload."""
    id: str
    filename: str
    content_type: str
    size: int
    content: bytes = field(repr=False)
    preview_url: Optional[str] = None


@dataclass
class SubZone:
    id: str
    name: str


@dataclass
class Ward:
    """A ward and the sub-zones it exposes."""
    id: str
    name: str
    sub_zones: list[SubZone] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict) -> "Ward":
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            sub_zones=[
                SubZone(id=sz["id"], name=sz.get("name", sz["id"]))
                for sz in data.get("subZones") or []
                if sz.get("isActive", True)
            ],
        )


@dataclass
class ComplaintTypeInfo:
    """A catalog entry for a complaint type."""
    id: str
    name: str
    priority: Optional[str] = None


@dataclass
class CaptchaChallenge:
    captcha_id: str
    captcha_svg: str


@dataclass
class GuestSession:
    """A server-issued OTP session for one guest submission."""
    session_id: str
    email: str
    expires_at: datetime


@dataclass
class User:
    id: str
    full_name: str
    email: str
    role: str

    @classmethod
    def from_api(cls, data: dict) -> "User":
        return cls(
            id=str(data.get("id", "")),
            full_name=data.get("fullName") or data.get("name", ""),
            email=data.get("email", ""),
            role=data.get("role", "CITIZEN"),
        )


@dataclass
class AuthResult:
    """Produced once, on successful OTP verification."""
    token: str
    user: User
    is_new_user: bool = False
    complaint: Optional[dict] = None


@dataclass
class TrackingResult:
    complaint: dict
    history: list[dict] = field(default_factory=list)

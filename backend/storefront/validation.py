# Overview: Request payload validation for auth endpoints; turns raw JSON into typed requests.

"""
Boundary validation.

Route handlers hand the raw JSON body to RegistrationRequest.from_json /
LoginRequest.from_json. Anything malformed is rejected here with a
ValidationError naming the offending field, so the services only ever see
trimmed, escaped, well-formed values.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from .errors import ValidationError
from .models import ROLES
from .services.password_service import MAX_PASSWORD_LENGTH, validate_password_strength
from .services.sanitizer import InvalidInputType, sanitize_input, sanitize_optional


USERNAME_RE = re.compile(r"^[A-Za-z0-9_]{3,30}$")
PERSON_NAME_RE = re.compile(r"^[A-Za-z ]+$")
PLACE_NAME_RE = re.compile(r"^[A-Za-z ]+$")
EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
POSTAL_CODE_RE = re.compile(r"^\d{5}$")

# Sri Lankan numbers, with or without the +94 / 94 / 0 prefix
CONTACT_STRIP_RE = re.compile(r"[\s\-()]")
MOBILE_RE = re.compile(r"^(?:\+94|94|0)?(7[0-8]\d{7})$")
LANDLINE_RE = re.compile(
    r"^(?:\+94|94|0)?0?((?:11|21|23|24|25|26|27|31|32|33|34|35|36|37|38|41|45|47|51|52|54|55|57|63|65|66|67|81|91)\d{7})$"
)

MAX_EMAIL_LENGTH = 254
MAX_ADDRESS_LENGTH = 255
MAX_PLACE_LENGTH = 50


def _text(data: dict, key: str, *, required: bool = True) -> str | None:
    value = data.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f"{key} is required", field=key)
        return None
    try:
        return sanitize_input(value)
    except InvalidInputType:
        raise ValidationError(f"{key} must be a string", field=key)


def validate_username(value: str) -> str:
    if not USERNAME_RE.match(value):
        if not 3 <= len(value) <= 30:
            raise ValidationError("Username must be between 3-30 characters", field="username")
        raise ValidationError(
            "Username can only contain letters, numbers, and underscores", field="username"
        )
    return value


def validate_person_name(value: str, field: str, label: str) -> str:
    if not 2 <= len(value) <= 50:
        raise ValidationError(f"{label} must be between 2-50 characters", field=field)
    if not PERSON_NAME_RE.match(value):
        raise ValidationError(f"{label} can only contain letters and spaces", field=field)
    if "  " in value:
        raise ValidationError(f"{label} cannot contain multiple consecutive spaces", field=field)
    return value


def validate_email(value: str) -> str:
    email = value.lower()
    if len(email) > MAX_EMAIL_LENGTH:
        raise ValidationError("Email is too long", field="email")
    if not EMAIL_RE.match(email):
        raise ValidationError("Please provide a valid email address", field="email")
    return email


def normalize_contact(value: str) -> str:
    """Return the number in +94XXXXXXXXX form, or raise ValidationError."""
    cleaned = CONTACT_STRIP_RE.sub("", value)
    match = MOBILE_RE.match(cleaned) or LANDLINE_RE.match(cleaned)
    if not match:
        raise ValidationError(
            "Please provide a valid Sri Lankan phone number "
            "(e.g., +94771234567, 0771234567, or 0112345678)",
            field="contact",
        )
    return "+94" + match.group(1)


def _place(value: str | None, field: str, label: str) -> str | None:
    if value is None:
        return None
    if len(value) > MAX_PLACE_LENGTH:
        raise ValidationError(f"{label} cannot exceed 50 characters", field=field)
    if not PLACE_NAME_RE.match(value):
        raise ValidationError(f"{label} can only contain letters and spaces", field=field)
    return value


def _require_object(payload: Any) -> dict:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


@dataclass(frozen=True)
class RegistrationRequest:
    username: str
    firstname: str
    lastname: str
    email: str
    password: str
    role: str = "user"
    contact: str | None = None
    address: str | None = None
    city: str | None = None
    postal_code: str | None = None
    country: str | None = None
    referral_code: str | None = None

    def __repr__(self) -> str:
        return f"RegistrationRequest(username={self.username!r}, email={self.email!r})"

    @classmethod
    def from_json(cls, payload: Any) -> "RegistrationRequest":
        data = _require_object(payload)

        username = validate_username(_text(data, "username"))
        firstname = validate_person_name(_text(data, "firstname"), "firstname", "First name")
        lastname = validate_person_name(_text(data, "lastname"), "lastname", "Last name")
        email = validate_email(_text(data, "email"))

        # Passwords are neither trimmed nor escaped
        password = data.get("password")
        validate_password_strength(password)

        role = _text(data, "role", required=False) or "user"
        if role not in ROLES:
            raise ValidationError(
                "Role must be either user, admin, staff, or supplier", field="role"
            )

        contact = _text(data, "contact", required=False)
        if contact is not None:
            contact = normalize_contact(contact)

        address = _text(data, "address", required=False)
        if address is not None and len(address) > MAX_ADDRESS_LENGTH:
            raise ValidationError("Address cannot exceed 255 characters", field="address")

        city = _place(_text(data, "city", required=False), "city", "City")
        country = _place(_text(data, "country", required=False), "country", "Country")

        postal_code = _text(data, "postalCode", required=False)
        if postal_code is not None and not POSTAL_CODE_RE.match(postal_code):
            raise ValidationError("Postal code must be 5 digits", field="postalCode")

        try:
            referral_code = sanitize_optional(data.get("referralCode"))
        except InvalidInputType:
            raise ValidationError("referralCode must be a string", field="referralCode")

        return cls(
            username=username,
            firstname=firstname,
            lastname=lastname,
            email=email,
            password=password,
            role=role,
            contact=contact,
            address=address,
            city=city,
            postal_code=postal_code,
            country=country,
            referral_code=referral_code,
        )


@dataclass(frozen=True)
class LoginRequest:
    identifier: str
    password: str

    def __repr__(self) -> str:
        return f"LoginRequest(identifier={self.identifier!r})"

    @classmethod
    def from_json(cls, payload: Any) -> "LoginRequest":
        data = _require_object(payload)

        raw_identifier = data.get("username", data.get("email"))
        if raw_identifier is None or (isinstance(raw_identifier, str) and not raw_identifier.strip()):
            raise ValidationError("Username or email is required", field="username")
        try:
            identifier = sanitize_input(raw_identifier)
        except InvalidInputType:
            raise ValidationError("Username or email must be a string", field="username")
        if len(identifier) > MAX_EMAIL_LENGTH:
            raise ValidationError("Username/email is too long", field="username")

        password = data.get("password")
        if not isinstance(password, str) or not password:
            raise ValidationError("Password is required", field="password")
        if len(password) > MAX_PASSWORD_LENGTH:
            raise ValidationError("Password is too long", field="password")

        return cls(identifier=identifier, password=password)

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from insuretrack.errors import EntryValidationError, FieldError
from insuretrack.services.expiry import parse_expiry_date

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# Fields the system owns; silently dropped from client payloads.
SYSTEM_FIELDS = ("id", "_id", "createdAt", "updatedAt")

TEXT_FIELDS = ("name", "policyNumber", "vehicleNo", "policyType", "vehicleType")

# Each requirement is satisfied by any one of its field names.
REQUIRED_FIELDS: Dict[str, tuple[str, ...]] = {
    "name": ("name",),
    "email": ("email",),
    "policyType": ("policyType", "vehicleType"),
    "policyNumber": ("policyNumber", "vehicleNo"),
    "expiryDate": ("expiryDate",),
}

_MESSAGES = {
    "name": "Name is required",
    "email": "Valid email is required",
    "policyType": "Policy type is required",
    "vehicleType": "Policy type is required",
    "policyNumber": "Policy number is required",
    "vehicleNo": "Policy number is required",
    "expiryDate": "Valid expiry date is required",
}


class InsuranceEntryFields(BaseModel):
    """
    Field rules for an insurance entry payload.

    Every field is optional at this level so the same model serves both
    creates and partial updates; `validate_entry` adds the required-field
    check. Unknown fields (address, notes, ...) pass through untouched.
    """

    model_config = ConfigDict(extra="allow", str_strip_whitespace=True, allow_inf_nan=False)

    name: Optional[str] = None
    email: Optional[str] = None

    policyNumber: Optional[str] = None
    vehicleNo: Optional[str] = None
    policyType: Optional[str] = None
    vehicleType: Optional[str] = None

    expiryDate: Optional[str] = None

    phone: Optional[str] = None
    mobileNo: Optional[str] = None

    premium: Optional[float] = None
    coverageAmount: Optional[float] = None

    @field_validator(*TEXT_FIELDS, "phone", "mobileNo", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> Any:
        """Spreadsheet imports hand over policy numbers and phones as numbers."""
        if isinstance(v, bool):
            return v
        if isinstance(v, int):
            return str(v)
        if isinstance(v, float) and v.is_integer():
            return str(int(v))
        return v

    @field_validator(*TEXT_FIELDS)
    @classmethod
    def require_text(cls, v: Optional[str], info) -> str:
        if not v:
            raise ValueError(_MESSAGES[info.field_name])
        return v

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: Optional[str]) -> str:
        if not v or not EMAIL_PATTERN.match(v):
            raise ValueError(_MESSAGES["email"])
        return v

    @field_validator("expiryDate", mode="before")
    @classmethod
    def validate_expiry_date(cls, v: Any) -> str:
        if hasattr(v, "isoformat"):
            v = v.isoformat()
        if not isinstance(v, str) or not v.strip():
            raise ValueError(_MESSAGES["expiryDate"])
        try:
            parse_expiry_date(v)
        except ValueError as exc:
            raise ValueError(_MESSAGES["expiryDate"]) from exc
        return v.strip()

    @field_validator("premium", "coverageAmount", mode="before")
    @classmethod
    def blank_amount(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("premium", "coverageAmount")
    @classmethod
    def non_negative_amount(cls, v: Optional[float], info) -> Optional[float]:
        if v is not None and v < 0:
            raise ValueError(f"{info.field_name} must be a non-negative number")
        return v


def _strip_system_fields(raw: Mapping[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in raw.items() if k not in SYSTEM_FIELDS}


def _field_errors(exc: ValidationError, row: Optional[int] = None) -> List[FieldError]:
    errors: List[FieldError] = []
    for err in exc.errors():
        loc = err.get("loc") or ("entry",)
        name = str(loc[0])
        ctx_error = (err.get("ctx") or {}).get("error")
        if isinstance(ctx_error, Exception):
            message = str(ctx_error)
        elif name in _MESSAGES:
            message = _MESSAGES[name]
        else:
            message = f"{name}: {err.get('msg', 'invalid value')}"
        errors.append(FieldError(field=name, message=message, row=row))
    return errors


def _missing_required(values: Mapping[str, Any], row: Optional[int]) -> List[FieldError]:
    errors = []
    for requirement, names in REQUIRED_FIELDS.items():
        if not any(values.get(name) for name in names):
            errors.append(
                FieldError(field=requirement, message=_MESSAGES[requirement], row=row)
            )
    return errors


def _check(raw: Any, *, partial: bool, row: Optional[int] = None) -> Dict[str, Any]:
    if not isinstance(raw, Mapping):
        raise EntryValidationError(
            [FieldError(field="entry", message="Entry must be a JSON object", row=row)]
        )

    payload = _strip_system_fields(raw)

    try:
        model = InsuranceEntryFields.model_validate(payload)
    except ValidationError as exc:
        errors = _field_errors(exc, row)
        if not partial:
            seen = {e.field for e in errors}
            errors.extend(
                e for e in _missing_required(payload, row)
                if e.field not in seen
                and not any(n in seen for n in REQUIRED_FIELDS[e.field])
            )
        raise EntryValidationError(errors) from exc

    values = model.model_dump(exclude_unset=True)

    if not partial:
        errors = _missing_required(values, row)
        if errors:
            raise EntryValidationError(errors)

    return values


def validate_entry(raw: Any) -> Dict[str, Any]:
    """
    Validate a full entry payload for creation.

    Returns the cleaned field dict (system fields removed, text trimmed,
    amounts as floats). Raises EntryValidationError listing every problem.
    """
    return _check(raw, partial=False)


def validate_partial(raw: Any) -> Dict[str, Any]:
    """
    Validate the fields supplied for a partial update.

    Only supplied fields are checked; a supplied required field must still
    be non-empty.
    """
    return _check(raw, partial=True)


REMINDER_FIELDS = ("name", "email", "expiryDate")


def validate_reminder_target(raw: Any) -> Dict[str, Any]:
    """
    Validate an ad-hoc reminder recipient (single-reminder endpoint).

    Only name, email and expiryDate are required; other entry fields are
    checked when present.
    """
    values = _check(raw, partial=True)
    missing = [
        FieldError(field=name, message=_MESSAGES[name])
        for name in REMINDER_FIELDS
        if not values.get(name)
    ]
    if missing:
        raise EntryValidationError(missing, message="Missing required fields")
    return values


@dataclass
class BulkValidation:
    """Per-row outcome of validating an imported batch."""

    total: int
    valid: List[Dict[str, Any]] = field(default_factory=list)
    errors: List[FieldError] = field(default_factory=list)

    @property
    def rejected_rows(self) -> int:
        return self.total - len(self.valid)

    @property
    def outcome(self) -> str:
        if not self.valid:
            return "rejected"
        if self.rejected_rows:
            return "partial"
        return "accepted"


def validate_rows(rows: Iterable[Any]) -> BulkValidation:
    """
    Validate imported rows independently.

    Invalid rows are excluded and their errors collected with the 1-based
    row number, so valid rows can still be committed.
    """
    result = BulkValidation(total=0)
    for index, row in enumerate(rows, start=1):
        result.total += 1
        try:
            result.valid.append(_check(row, partial=False, row=index))
        except EntryValidationError as exc:
            result.errors.extend(exc.errors)
    return result

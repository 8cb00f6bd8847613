"""
NAE Test Sheets - Validation & Derivation Rules
Version: 1.1.1

Changelog:
v1.1.1 (2026-10-19): Required fields fall back to the base set when the
                      payload itself fails validation
v1.1.0 (2026-10-12): Collect pydantic and required-field errors together so a
                      submit reports every failing field in one response
v1.0.0 (2026-09-28): Initial sheet validation, profile/display derivations,
                      reference number generation

Validation either returns a fully typed TestSheetFormData or raises
SheetValidationError with one FieldError per failing field. Nothing is
partially applied.
"""

import logging
import random
import time
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pydantic import ValidationError

from errors import FieldError, SheetValidationError
from models.constants import FORM_TYPES, NOT_APPLICABLE
from models.test_sheet import TestSheetFormData, alias_for, to_epoch
from models.user import User
from services.email_validation import get_display_name_from_email

logger = logging.getLogger(__name__)

# Hard requirements shared by every form type: (field name, label)
_BASE_REQUIRED: Tuple[Tuple[str, str], ...] = (
    ("customer", "Customer"),
    ("plant_name", "Plant Name"),
    ("start_time", "Start Time"),
    ("administrator", "Administrator"),
    ("admin_reference", "Admin Reference"),
)

REQUIRED_FIELDS: Dict[str, Tuple[Tuple[str, str], ...]] = {
    form_type: _BASE_REQUIRED for form_type in FORM_TYPES
}

# Extra fields the form itself insists on before it lets the user submit
CLIENT_REQUIRED_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("start_time", "Start Time"),
    ("instruction", "Instruction"),
    ("customer", "Customer"),
    ("plant_name", "Plant Name"),
    ("vehicle_make", "Vehicle Make"),
    ("vehicle_model", "Vehicle Model"),
    ("vehicle_voltage", "Vehicle Voltage"),
    ("serial_esn", "Serial (ESN)"),
    ("sim_id", "SIM-ID"),
)

OLD_IDENTIFIER_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("old_serial_esn", "Old Serial (ESN)"),
    ("old_sim_id", "Old SIM-ID"),
    ("old_izwi_serial", "Old IZWI Serial"),
    ("old_eps_serial", "Old EPS Serial"),
)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _raw_value(raw: Mapping[str, Any], name: str) -> Any:
    alias = alias_for(name)
    if alias in raw:
        return raw[alias]
    return raw.get(name)


def _pydantic_errors(exc: ValidationError) -> List[FieldError]:
    errors = []
    for err in exc.errors():
        loc = err.get("loc") or ("__root__",)
        field = str(loc[0])
        if err.get("type") == "literal_error":
            expected = (err.get("ctx") or {}).get("expected", "")
            message = f"Must be one of {expected}"
        else:
            message = err.get("msg", "Invalid value")
        errors.append(FieldError(field=field, message=message))
    return errors


def validate_form_data(raw: Any) -> TestSheetFormData:
    """
    Normalize a raw form record (camelCase or snake_case keys).

    Raises:
        SheetValidationError: with every failing field; out-of-enum status
            values are errors, never coerced.
    """
    if not isinstance(raw, Mapping):
        raise SheetValidationError([FieldError("__root__", "Form data must be an object")])

    errors: List[FieldError] = []
    form: Optional[TestSheetFormData] = None
    try:
        form = TestSheetFormData.model_validate(dict(raw))
    except ValidationError as e:
        errors.extend(_pydantic_errors(e))

    required = _BASE_REQUIRED
    if form is not None:
        required = REQUIRED_FIELDS.get(form.form_type, _BASE_REQUIRED)
    failed = {e.field for e in errors}
    for name, label in required:
        alias = alias_for(name)
        if alias in failed:
            continue
        if _is_blank(_raw_value(raw, name)):
            errors.append(FieldError(alias, f"{label} is required"))

    if form is not None and form.start_time and form.end_time:
        if to_epoch(form.end_time) < to_epoch(form.start_time):
            errors.append(FieldError("endTime", "End Time cannot be before Start Time"))

    if errors:
        logger.info(f"Form validation failed: {[e.field for e in errors]}")
        raise SheetValidationError(errors)
    return form


def parse_form_data(raw: Any) -> TestSheetFormData:
    """Type-level normalization only; required-field rules are not applied"""
    if not isinstance(raw, Mapping):
        raise SheetValidationError([FieldError("formData", "Form data must be an object")])
    try:
        return TestSheetFormData.model_validate(dict(raw))
    except ValidationError as e:
        raise SheetValidationError(_pydantic_errors(e)) from e


def apply_generated_references(raw: Dict[str, Any], user: Optional[User],
                               now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Fill techReference/adminReference when the submission leaves them blank.

    The admin reference needs a completed profile plus customer and plant
    name; without them the field stays blank and fails validation.
    """
    data = dict(raw)
    if _is_blank(_raw_value(data, "tech_reference")):
        data.pop("tech_reference", None)
        data["techReference"] = generate_tech_reference(now)
    if (_is_blank(_raw_value(data, "admin_reference")) and user is not None
            and not needs_profile_setup(user)):
        plant = _raw_value(data, "plant_name")
        customer = _raw_value(data, "customer")
        if not _is_blank(plant) and not _is_blank(customer):
            data.pop("admin_reference", None)
            data["adminReference"] = generate_admin_reference(user, str(plant).strip(), str(customer).strip())
    return data


def missing_client_fields(form: TestSheetFormData) -> List[str]:
    """Labels of fields the form requires before the Review step"""
    return [label for name, label in CLIENT_REQUIRED_FIELDS
            if _is_blank(getattr(form, name))]


def needs_profile_setup(user: Optional[User]) -> bool:
    """Authenticated and first or last name still empty; never cached"""
    if user is None:
        return False
    return _is_blank(user.first_name) or _is_blank(user.last_name)


def display_name(user: Optional[User]) -> str:
    if user is None:
        return "User"
    parts = [p.strip() for p in (user.first_name, user.last_name) if not _is_blank(p)]
    if parts:
        return " ".join(parts)
    return get_display_name_from_email(user.email or "")


def old_identifiers(sheet) -> List[Tuple[str, str]]:
    """
    (label, value) pairs for the replaced-unit identifiers.

    Empty unless units_replaced is "Yes"; populated old fields are ignored
    otherwise.
    """
    if getattr(sheet, "units_replaced", None) != "Yes":
        return []
    return [(label, getattr(sheet, name) or NOT_APPLICABLE)
            for name, label in OLD_IDENTIFIER_FIELDS]


def eps_link_applicable(sheet) -> bool:
    return getattr(sheet, "eps_linked", NOT_APPLICABLE) != NOT_APPLICABLE


def pdu_applicable(sheet) -> bool:
    return getattr(sheet, "pdu_installed", NOT_APPLICABLE) == "Installed"


def generate_tech_reference(now: Optional[datetime] = None,
                            rng: Optional[random.Random] = None) -> str:
    """TS<random number><dd-mm-yyyy HH:MM>, e.g. TS391703-11-2025 13:07"""
    now = now or datetime.now()
    rng = rng or random
    return f"TS{rng.randrange(10000)}{now.strftime('%d-%m-%Y %H:%M')}"


def generate_admin_reference(user: User, plant_name: str, customer: str,
                             now_ms: Optional[int] = None) -> str:
    """
    <initials><user number>-<plant>-<site code><timestamp digits>,
    e.g. CG01-CSM S64-Zi12441640. Requires a completed profile.
    """
    if needs_profile_setup(user):
        raise ValueError("Cannot build an admin reference without first and last name")
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    user_ref = f"{user.initials}{user.user_number:02d}"
    site_code = customer[:2].upper()
    return f"{user_ref}-{plant_name}-{site_code}{str(now_ms)[5:]}"

"""
NAE Test Sheets - Test Sheet Models
Version: 1.1.1

Changelog:
v1.1.1 (2026-10-19): Out-of-range epoch times are a field error
v1.1.0 (2026-10-12): test_items rows are authoritative for per-item results;
                      the per-item form fields are projected from them
v1.0.0 (2026-09-28): Initial test sheet, test item and template models

Field names are snake_case (and match the SQLite columns); the JSON wire
format uses the camelCase aliases the form has always used, e.g.
``plant_name`` <-> ``plantName`` and ``reverse_siren_comment`` <->
``reverseSirenComment``.
"""

from datetime import datetime, timezone
from typing import Annotated, List, Literal, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, create_model
from pydantic.alias_generators import to_camel

from .constants import (
    TEST_ITEMS, EPS_LINK_TESTS, TEST_ITEM_BY_LABEL, TEST_ITEM_BY_KEY,
    DEFAULT_TEST_STATUS,
)


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _blank_to_default_status(value):
    # An untouched dropdown is sent as "" or null
    if value is None or (isinstance(value, str) and not value.strip()):
        return DEFAULT_TEST_STATUS
    return value


def _none_to_blank(value):
    if value is None:
        return ""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


def _parse_form_time(value):
    """Accept datetime-local strings, ISO strings, epoch seconds or datetimes"""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc).replace(tzinfo=None)
        except (OverflowError, OSError, ValueError):
            raise ValueError("Invalid timestamp")
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return value  # let pydantic report the datetime error
    return value


TestStatus = Annotated[
    Literal["Working", "Faulty", "N/A", "Not Tested"],
    BeforeValidator(_blank_to_default_status),
]
FormType = Literal["Test Sheet", "Test Sheet (Stock/Repair)", "Test Sheet (Pump/Plant)"]
Instruction = Annotated[
    Optional[Literal["Installation", "Repair", "Inspection", "Breakdown"]],
    BeforeValidator(_blank_to_none),
]
VehicleVoltage = Annotated[Optional[Literal["12V", "24V"]], BeforeValidator(_blank_to_none)]
UnitsReplaced = Annotated[Optional[Literal["Yes", "No", "N/A"]], BeforeValidator(_blank_to_none)]
EpsLinked = Annotated[Literal["Yes", "No", "N/A"], BeforeValidator(_blank_to_default_status)]
PduInstalled = Annotated[Literal["Installed", "N/A"], BeforeValidator(_blank_to_default_status)]
Text = Annotated[str, BeforeValidator(_none_to_blank)]
FormTime = Annotated[Optional[datetime], BeforeValidator(_parse_form_time)]


def to_epoch(value: Optional[datetime]) -> Optional[int]:
    """Naive datetimes are taken as UTC"""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp())


def from_epoch(value: Optional[int]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc).replace(tzinfo=None)


class SheetModel(BaseModel):
    """Base for every model that crosses the wire with camelCase keys"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


def _eps_link_fields() -> dict:
    fields = {}
    for step in EPS_LINK_TESTS:
        fields[step.status_field] = (TestStatus, Field(DEFAULT_TEST_STATUS, alias=step.status_key))
        fields[step.comment_field] = (Text, Field("", alias=step.comment_key))
    return fields


def _test_item_fields() -> dict:
    fields = {}
    for item in TEST_ITEMS:
        fields[item.field] = (TestStatus, Field(DEFAULT_TEST_STATUS, alias=item.key))
        fields[item.comment_field] = (Text, Field("", alias=item.comment_key))
    return fields


class _SheetDetailsBase(SheetModel):
    """Columns shared by the form and the persisted sheet"""
    admin_reference: Text = ""
    form_type: FormType = "Test Sheet"
    instruction: Instruction = None

    # Customer information
    customer: Text = ""
    plant_name: Text = ""
    notes: Text = ""

    # Vehicle details
    vehicle_make: Text = ""
    vehicle_model: Text = ""
    vehicle_voltage: VehicleVoltage = None

    # Device identifiers
    serial_esn: Text = ""
    sim_id: Text = ""
    izwi_serial: Text = ""
    eps_serial: Text = ""

    # Old device identifiers (only meaningful when units_replaced == "Yes")
    old_serial_esn: Text = ""
    old_sim_id: Text = ""
    old_izwi_serial: Text = ""
    old_eps_serial: Text = ""
    units_replaced: UnitsReplaced = None

    # Administrator and technician
    administrator: Text = ""
    technician_name: Text = ""
    technician_job_card_no: Text = ""
    odometer_engine_hours: Text = ""

    # PDU (voltages only meaningful when installed)
    pdu_installed: PduInstalled = "N/A"
    pdu_voltage_parked: Text = ""
    pdu_voltage_ignition: Text = ""
    pdu_voltage_idle: Text = ""

    # EPS link sub-tests only apply when eps_linked != "N/A"
    eps_linked: EpsLinked = "N/A"

    is_draft: bool = False


_SheetDetails = create_model(
    "_SheetDetails", __base__=_SheetDetailsBase, **_eps_link_fields()
)


class _FormBase(_SheetDetails):
    model_config = ConfigDict(validate_assignment=True)

    tech_reference: Text = ""
    start_time: FormTime = None
    end_time: FormTime = None


TestSheetFormData = create_model(
    "TestSheetFormData", __base__=_FormBase, **_test_item_fields()
)
TestSheetFormData.__doc__ = "The test sheet as the technician fills it in"


class TestSheetSubmit(TestSheetFormData):
    """Form data plus what the client attaches on final submit"""
    signature: Optional[str] = None
    user_id: str = Field(..., alias="userId")
    template_id: Optional[str] = Field(None, alias="templateId")

    def form_data(self) -> "TestSheetFormData":
        return TestSheetFormData.model_validate(
            self.model_dump(exclude={"signature", "user_id", "template_id"})
        )


class TestSheet(_SheetDetails):
    """Persisted test sheet row (aggregate root)"""
    __test__ = False

    id: str
    user_id: str
    tech_reference: str
    start_time: int = Field(..., description="Epoch seconds")
    end_time: Optional[int] = Field(None, description="Epoch seconds; null while in progress")
    administrator_signature: Optional[str] = None
    created_at: Optional[int] = None
    updated_at: Optional[int] = None

    def to_form_data(self, items: List["TestItem"]) -> "TestSheetFormData":
        """
        Project the persisted sheet and its item rows back into form shape.

        Rows whose name is not one of the fixed test items stay out of the
        projection; they are still reported from the rows themselves.
        """
        data = self.model_dump(exclude={
            "id", "user_id", "administrator_signature", "created_at", "updated_at",
        })
        data["start_time"] = from_epoch(self.start_time)
        data["end_time"] = from_epoch(self.end_time)
        for row in items:
            item = TEST_ITEM_BY_LABEL.get(row.test_name) or TEST_ITEM_BY_KEY.get(row.test_name)
            if item is None:
                continue
            data[item.field] = row.status
            data[item.comment_field] = row.comment or ""
        return TestSheetFormData.model_validate(data)


class TestItem(SheetModel):
    """One checked subsystem of a sheet"""
    __test__ = False

    id: str
    test_sheet_id: str
    test_name: str
    status: TestStatus
    comment: Optional[str] = None
    sort_order: int = 0
    created_at: Optional[int] = None


class TestTemplate(SheetModel):
    """Named ordered list of test names used to seed new sheets"""
    __test__ = False

    id: str
    name: str
    test_names: List[str]
    is_default: bool = False
    created_at: Optional[int] = None
    updated_at: Optional[int] = None


class TemplateCreate(SheetModel):
    name: str = Field(..., min_length=1, max_length=100)
    test_names: List[str] = Field(..., min_length=1)
    is_default: bool = False


class TemplateUpdate(SheetModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    test_names: Optional[List[str]] = Field(None, min_length=1)


# Column layout of test_sheets, in schema order
SHEET_COLUMNS = tuple(TestSheet.model_fields)


def field_name_for(key: str) -> Optional[str]:
    """Resolve a camelCase form key or a snake_case name to the model field name"""
    fields = TestSheetFormData.model_fields
    if key in fields:
        return key
    for name, info in fields.items():
        if info.alias == key:
            return name
    return None


def alias_for(name: str) -> str:
    info = TestSheetFormData.model_fields.get(name) or TestSheet.model_fields.get(name)
    if info is not None and info.alias:
        return info.alias
    return to_camel(name)

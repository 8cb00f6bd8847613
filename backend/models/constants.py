"""
NAE Test Sheets - Form Constants
Version: 1.0.0

Changelog:
v1.0.0 (2026-09-28): Closed value sets for the test sheet form

Pure data: dropdown option lists, the fixed test item table and the ordered
EPS-link steps. Ordering of TEST_ITEMS and EPS_LINK_TESTS is significant; it is
the order rows appear in the form and in generated reports.
"""

from typing import NamedTuple

VEHICLE_MAKES = (
    "Mercedes Benz",
    "Ford",
    "GMC",
    "Chevrolet",
    "Volvo",
    "Scania",
    "MAN",
    "DAF",
    "Iveco",
    "Freightliner",
    "Peterbilt",
    "Kenworth",
    "Mack",
    "International",
)

VEHICLE_VOLTAGES = ("12V", "24V")

FORM_TYPES = (
    "Test Sheet",
    "Test Sheet (Stock/Repair)",
    "Test Sheet (Pump/Plant)",
)

INSTRUCTIONS = (
    "Installation",
    "Repair",
    "Inspection",
    "Breakdown",
)

CUSTOMERS = (
    "Anglo American",
    "Assmang",
    "Caliber",
    "Columbus Stainless (Pty)Ltd",
    "DIG",
    "Emalahleni Water Treatment Plant",
    "Epiroc",
    "Exxaro",
    "First Quantum Minerals",
    "Glencore",
    "Glosam Mine",
    "Goedehoop",
    "Greenside",
    "Inceku",
    "Inmine",
    "Isambane Mining",
    "Isibonelo",
    "Khwezela",
    "KleenOil",
    "KSMM Trading",
    "Lee's Dozers (Pty) Ltd",
    "Lubrigard",
    "Mafube",
    "Mbuyelo Mining",
    "Mogalakwena Mine",
    "Moolmans",
    "NAE",
    "Nkomati",
    "Pentalin Processing",
    "Rampart Loading Terminal",
    "Richards Bay Minerals",
    "Scaw Metals Group",
    "Seriti",
    "Spectrum Technical Metals & Minerals Proc",
    "Team Acid Holdings",
    "Thungela Operations",
    "Tokata Group",
    "Transalloys (PTY) LTD",
    "West Reef Plant Hire(PTY)LTD",
    "Zibulo",
)

ADMINISTRATORS = (
    "Collen",
    "Riaan",
    "Promise",
    "Melissa",
    "Rendani",
    "Bianco",
)

TECHNICIANS = (
    "Cousin",
    "Doctor",
    "Dudley",
    "Eric",
    "Freedom",
    "Jeofrey",
    "Kyle",
    "Micheal",
    "Mike",
    "N/A",
    "Patrick",
    "Riaan",
    "Vikesh",
    "Zondo",
)

TEST_ITEM_OPTIONS = ("Working", "Faulty", "N/A", "Not Tested")

COMMENT_TYPE_OPTIONS = ("N/A", "Replaced", "No Stock", "Repaired")

UNITS_REPLACED_OPTIONS = ("Yes", "No", "N/A")

YES_NO = ("Yes", "No")

EPS_LINKED_OPTIONS = ("Yes", "No", "N/A")

PDU_INSTALLED_OPTIONS = ("Installed", "N/A")

EPS_LINK_COMMENT_OPTIONS = (
    "Engine Oil Pressure",
    "Hydraulic Oil Temperature",
    "Cylinder Temperature",
    "Transmission Temperature",
    "Coolant Temperature",
    "Air Filter Block",
    "Tag Removed",
    "EPS Reset",
    "Ignition On",
    "Manual Shutdown Test",
    "Manual Testing",
    "Was not tested by Technician",
    "Bypass",
    "N/A",
)

DEVICE_STATUS_OPTIONS = ("Working", "Faulty", "IZWI", "EPS")

# Status given to items the technician did not touch
DEFAULT_TEST_STATUS = "N/A"

NOT_APPLICABLE = "N/A"


class TestItemDef(NamedTuple):
    key: str      # camelCase form key
    label: str    # display label, also the test_items.test_name
    field: str    # snake_case attribute / column name

    __test__ = False

    @property
    def comment_key(self) -> str:
        return f"{self.key}Comment"

    @property
    def comment_field(self) -> str:
        return f"{self.field}_comment"

    @property
    def status_key(self) -> str:
        return f"{self.key}Status"

    @property
    def status_field(self) -> str:
        return f"{self.field}_status"


TEST_ITEMS = (
    TestItemDef("horn", "Horn", "horn"),
    TestItemDef("reverseSiren", "Reverse Siren", "reverse_siren"),
    TestItemDef("lightsAndReverseLights", "Lights And Reverse Lights", "lights_and_reverse_lights"),
    TestItemDef("preAlarm", "Pre-Alarm", "pre_alarm"),
    TestItemDef("seatbeltSwitch", "Seatbelt Switch", "seatbelt_switch"),
    TestItemDef("lcd", "LCD", "lcd"),
    TestItemDef("eyesAndRadar", "Eyes And Radar", "eyes_and_radar"),
    TestItemDef("camerasAndMonitors", "Cameras And Monitors", "cameras_and_monitors"),
    TestItemDef("voiceMessaging", "Voice Messaging", "voice_messaging"),
    TestItemDef("redBeacon", "Red Beacon", "red_beacon"),
    TestItemDef("amberBeacon", "Amber Beacon", "amber_beacon"),
    TestItemDef("fireExtinguisher", "Fire Extinguisher", "fire_extinguisher"),
    TestItemDef("speedControl", "Speed Control", "speed_control"),
    TestItemDef("airconditioning", "Air-Conditioning", "airconditioning"),
    TestItemDef("compressor", "Compressor", "compressor"),
    TestItemDef("obdReader", "OBD Reader", "obd_reader"),
    TestItemDef("engineHourMeter", "Engine Hour Meter", "engine_hour_meter"),
    TestItemDef("abs", "ABS", "abs"),
    TestItemDef("parkingBrake", "Parking Brake", "parking_brake"),
    TestItemDef("sensorOnBeacon", "Sensor On Beacon", "sensor_on_beacon"),
    TestItemDef("speedGovernor", "Speed Governor", "speed_governor"),
    TestItemDef("cat797Alarm", "CAT 797 Alarm", "cat797_alarm"),
)

EPS_LINK_TESTS = (
    TestItemDef("epsPowerOn", "1. Power ON Received", "eps_power_on"),
    TestItemDef("epsTrip1", "2. EPS Trip Tested", "eps_trip1"),
    TestItemDef("epsLockCancel1", "3. Lock Cancel Received", "eps_lock_cancel1"),
    TestItemDef("epsTrip2", "4. 2nd EPS Trip Tested", "eps_trip2"),
    TestItemDef("epsLockCancel2", "5. Lock Cancel Received", "eps_lock_cancel2"),
)

TEST_ITEM_KEYS = tuple(item.key for item in TEST_ITEMS)
TEST_ITEM_LABELS = tuple(item.label for item in TEST_ITEMS)
TEST_ITEM_BY_KEY = {item.key: item for item in TEST_ITEMS}
TEST_ITEM_BY_LABEL = {item.label: item for item in TEST_ITEMS}

DEFAULT_TEMPLATE_NAME = "Default Tests"

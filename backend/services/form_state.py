"""
NAE Test Sheets - Form State & Drafts
Version: 1.1.0

Changelog:
v1.1.0 (2026-10-12): Drafts keyed per user (one slot per "<key>:<userId>")
                      with the fixed key as the default slot
v1.0.0 (2026-09-28): Field-by-field form state, JSON draft store, submit

The draft is the only input to the review step; submission always goes
through the server's validation before anything is stored.
"""

import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from config import settings
from errors import (
    DuplicateReferenceError, FieldError, NotFoundError, ProfileIncompleteError,
    SheetValidationError, StorageError,
)
from models.test_sheet import TestSheetFormData, TestSheetSubmit, alias_for, field_name_for
from services.validation import (
    missing_client_fields, old_identifiers, eps_link_applicable, pdu_applicable,
)

logger = logging.getLogger(__name__)


class TestSheetForm:
    """In-memory test sheet being filled in"""
    __test__ = False

    def __init__(self, data: Optional[TestSheetFormData] = None):
        self._data = data if data is not None else TestSheetFormData()

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "TestSheetForm":
        return cls(TestSheetFormData.model_validate(raw))

    @property
    def data(self) -> TestSheetFormData:
        return self._data

    def get(self, key: str):
        name = field_name_for(key)
        if name is None:
            raise KeyError(f"Unknown form field: {key}")
        return getattr(self._data, name)

    def update_field(self, key: str, value: Any) -> None:
        """
        Set one field by form key (camelCase) or field name.

        Raises:
            KeyError: the key is not a form field.
            SheetValidationError: the value does not fit the field's type;
                the form is left unchanged.
        """
        name = field_name_for(key)
        if name is None:
            raise KeyError(f"Unknown form field: {key}")
        try:
            setattr(self._data, name, value)
        except ValidationError as e:
            messages = "; ".join(err.get("msg", "Invalid value") for err in e.errors())
            raise SheetValidationError([FieldError(alias_for(name), messages)]) from e

    def to_dict(self) -> Dict[str, Any]:
        return self._data.model_dump(by_alias=True, mode="json")

    def missing_required_fields(self) -> List[str]:
        return missing_client_fields(self._data)

    @property
    def show_pdu(self) -> bool:
        return pdu_applicable(self._data)

    @property
    def show_eps_link(self) -> bool:
        return eps_link_applicable(self._data)

    @property
    def show_old_identifiers(self) -> bool:
        return bool(old_identifiers(self._data))

    def build_submission(self, user_id: str, signature: Optional[str] = None) -> TestSheetSubmit:
        data = self._data.model_dump()
        return TestSheetSubmit.model_validate(
            {**data, "signature": signature, "user_id": user_id})

    async def submit(self, client: httpx.AsyncClient, user_id: str,
                     signature: Optional[str] = None,
                     url: str = "/api/test-sheets") -> Dict[str, Any]:
        """
        POST the form; returns the created sheet.

        Raises:
            SheetValidationError: 422, with the server's field errors.
            DuplicateReferenceError: 409.
            ProfileIncompleteError: 400.
            StorageError: any other failure status.
        """
        submission = self.build_submission(user_id, signature)
        response = await client.post(url, json=submission.model_dump(by_alias=True, mode="json"))
        if response.status_code in (200, 201):
            return response.json()

        body = _json_or_empty(response)
        if response.status_code == 422:
            errors = [FieldError(e.get("field", "__root__"), e.get("message", ""))
                      for e in body.get("errors", [])]
            raise SheetValidationError(errors)
        if response.status_code == 409:
            raise DuplicateReferenceError(self._data.tech_reference)
        if response.status_code == 400:
            raise ProfileIncompleteError(body.get("detail"))
        raise StorageError(f"Submit failed ({response.status_code}): {body.get('detail', response.text)}")


def _json_or_empty(response: httpx.Response) -> Dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


class DraftStore:
    """
    JSON draft files, one per slot.

    The default slot is DRAFT_STORAGE_KEY; passing a user id selects the
    slot "<key>:<userId>" so drafts of different users never collide.
    """

    def __init__(self, directory: Optional[str] = None, key: Optional[str] = None):
        self.directory = Path(directory or settings.DRAFTS_DIR)
        self.key = key or settings.DRAFT_STORAGE_KEY

    def slot(self, user_id: Optional[str] = None) -> str:
        return self.key if user_id is None else f"{self.key}:{user_id}"

    def _path(self, user_id: Optional[str] = None) -> Path:
        filename = re.sub(r"[^A-Za-z0-9_.-]", "_", self.slot(user_id))
        return self.directory / f"{filename}.json"

    def save(self, form: TestSheetForm, user_id: Optional[str] = None) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(user_id)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(json.dumps(form.to_dict()), encoding="utf-8")
        os.replace(tmp, path)
        return path

    def load(self, user_id: Optional[str] = None) -> Optional[TestSheetForm]:
        path = self._path(user_id)
        if not path.exists():
            return None
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
            return TestSheetForm.from_dict(raw)
        except (json.JSONDecodeError, ValidationError) as e:
            raise StorageError(f"Draft '{self.slot(user_id)}' is unreadable: {e}") from e

    def clear(self, user_id: Optional[str] = None) -> None:
        path = self._path(user_id)
        if path.exists():
            path.unlink()

    def review(self, user_id: Optional[str] = None) -> TestSheetForm:
        """The form as the review step shows it; only ever read from the draft"""
        form = self.load(user_id)
        if form is None:
            raise NotFoundError("No draft to review")
        return form

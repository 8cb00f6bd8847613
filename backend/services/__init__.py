"""
NAE Test Sheets - Backend Services
Version: 1.1.0

Changelog:
v1.1.0 (2026-10-12): Stores split per table; form state and drafts
v1.0.0 (2026-09-28): Initial services module
"""

from . import email_validation
from . import encryption
from . import validation
from . import template_store
from . import sheet_store
from . import user_store
from . import session_store
from . import report_generator
from . import excel_export
from . import pdf_service
from . import form_state

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Field(str, Enum):
    """Canonical field names. Values are the keys persisted on documents."""

    COMPANY_NAME = "companyName"
    ADDRESS = "address"
    CITY = "city"
    STATE = "state"
    PINCODE = "pincode"
    PHONE = "phone"
    EMAIL = "email"
    CONTACT_PERSON = "contactPerson"
    GST_NO = "gstNo"
    PAN_NO = "panNo"
    PAYMENT_TERMS_DAYS = "paymentTermsDays"

    BANK_NAME = "bankName"
    BRANCH_NAME = "branchName"
    BANK_ADDRESS = "bankAddress"
    IFSC = "ifsc"
    ACCOUNT_NO = "accountNo"
    IBAN = "iban"
    SWIFT = "swift"

    BILL_NO = "billNo"
    DATE = "date"
    PO_NO = "poNo"
    TYPE = "type"
    BILL_AMOUNT = "billAmount"
    PENDING_AMOUNT = "pendingAmount"
    BALANCE_AMOUNT = "balanceAmount"
    DUE_DAYS = "dueDays"


HEADER_SYNONYMS: dict[str, Field] = {
    "company name": Field.COMPANY_NAME,
    "name": Field.COMPANY_NAME,
    "company": Field.COMPANY_NAME,
    "companyname": Field.COMPANY_NAME,
    "party name": Field.COMPANY_NAME,

    "address": Field.ADDRESS,
    "city": Field.CITY,
    "state": Field.STATE,
    "pincode": Field.PINCODE,
    "pin code": Field.PINCODE,
    "phone": Field.PHONE,
    "contact no.": Field.PHONE,
    "contact no": Field.PHONE,
    "contact": Field.PHONE,
    "mobile": Field.PHONE,
    "email": Field.EMAIL,
    "e-mail": Field.EMAIL,
    "e-mail & website": Field.EMAIL,
    "contact person": Field.CONTACT_PERSON,
    "gst no.": Field.GST_NO,
    "gst no": Field.GST_NO,
    "gstin": Field.GST_NO,
    "pan no.": Field.PAN_NO,
    "pan no": Field.PAN_NO,
    "payment terms (days)": Field.PAYMENT_TERMS_DAYS,
    "payment terms": Field.PAYMENT_TERMS_DAYS,

    "bank name": Field.BANK_NAME,
    "bank branch name": Field.BRANCH_NAME,
    "bank address": Field.BANK_ADDRESS,
    "bank ifsc code": Field.IFSC,
    "ifsc": Field.IFSC,
    "bank account no.": Field.ACCOUNT_NO,
    "bank account no": Field.ACCOUNT_NO,
    "iban no.": Field.IBAN,
    "iban": Field.IBAN,
    "swift code": Field.SWIFT,

    "bill no": Field.BILL_NO,
    "bill no.": Field.BILL_NO,
    "bill number": Field.BILL_NO,
    "invoice no": Field.BILL_NO,
    "invoice no.": Field.BILL_NO,
    "invoice number": Field.BILL_NO,
    "bill date": Field.DATE,
    "bill date (dd/mm/yyyy)": Field.DATE,
    "invoice date": Field.DATE,
    "date": Field.DATE,
    "po no": Field.PO_NO,
    "po no.": Field.PO_NO,
    "po number": Field.PO_NO,
    "type": Field.TYPE,
    "bill amount": Field.BILL_AMOUNT,
    "invoice amount": Field.BILL_AMOUNT,
    "amount": Field.BILL_AMOUNT,
    "pending amount": Field.PENDING_AMOUNT,
    "outstanding amount": Field.PENDING_AMOUNT,
    "balance amount": Field.BALANCE_AMOUNT,
    "due days": Field.DUE_DAYS,
    "credit days": Field.DUE_DAYS,
}

BANK_FIELDS: tuple[Field, ...] = (
    Field.BANK_NAME,
    Field.BRANCH_NAME,
    Field.BANK_ADDRESS,
    Field.IFSC,
    Field.ACCOUNT_NO,
    Field.IBAN,
    Field.SWIFT,
)

# Profile fields a company upload may overwrite (when non-empty).
COMPANY_PROFILE_FIELDS: tuple[Field, ...] = (
    Field.ADDRESS,
    Field.CITY,
    Field.STATE,
    Field.PINCODE,
    Field.PHONE,
    Field.EMAIL,
    Field.CONTACT_PERSON,
    Field.GST_NO,
    Field.PAN_NO,
)


def name_key(text: object) -> str:
    if text is None:
        return ""
    return " ".join(str(text).split()).lower()


def lookup_field(header: str) -> Field | None:
    return HEADER_SYNONYMS.get(" ".join(header.strip().lower().split()))


@dataclass
class CompanyRecord:
    name: str
    address: str = ""
    city: str = ""
    state: str = ""
    pincode: str = ""
    phone: str = ""
    email: str = ""
    contact_person: str = ""
    gst_no: str = ""
    pan_no: str = ""
    payment_terms_days: int | None = None
    bank_details: dict[str, str] = field(default_factory=dict)
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def name_key(self) -> str:
        return name_key(self.name)

    def profile(self) -> dict[str, str]:
        """Persisted profile keys -> incoming values, including empty ones."""
        return {
            Field.ADDRESS.value: self.address,
            Field.CITY.value: self.city,
            Field.STATE.value: self.state,
            Field.PINCODE.value: self.pincode,
            Field.PHONE.value: self.phone,
            Field.EMAIL.value: self.email,
            Field.CONTACT_PERSON.value: self.contact_person,
            Field.GST_NO.value: self.gst_no,
            Field.PAN_NO.value: self.pan_no,
        }


@dataclass
class BillRecord:
    company_name: str
    bill_no: str = ""
    date: str = ""
    po_no: str = ""
    type: str = ""
    bill_amount: float = 0.0
    pending_amount: float = 0.0
    balance_amount: float = 0.0
    adjustment_amount: float = 0.0
    due_days: int = 0
    address: str = ""
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def company_key(self) -> str:
        return name_key(self.company_name)

    @property
    def bill_no_key(self) -> str:
        return self.bill_no.strip().lower()

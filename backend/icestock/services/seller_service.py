# Overview: Service-layer operations for invoice metadata; seller details and bank account upserts.

from ..extensions import db
from ..models import SellerDetails, BankDetails, User
from ..validation import ValidationError, NotFoundError, require_fields
from .auth_service import GSTIN_RE


SELLER_FIELDS = {
    "sellerName": "seller_name",
    "gstNumber": "gst_number",
    "fullAddress": "full_address",
    "logoUrl": "logo_url",
    "logoPublicId": "logo_public_id",
    "qrCodeUrl": "qr_code_url",
    "qrPublicId": "qr_public_id",
    "signatureUrl": "signature_url",
    "signaturePublicId": "signature_public_id",
    "slogan": "slogan",
}
SELLER_REQUIRED = ("sellerName", "gstNumber", "fullAddress", "qrCodeUrl", "signatureUrl", "slogan")

BANK_FIELDS = {
    "bankName": "bank_name",
    "ifscCode": "ifsc_code",
    "branchName": "branch_name",
    "bankingName": "banking_name",
    "accountNumber": "account_number",
}


def _int(value, name: str) -> int:
    if value in (None, ""):
        raise ValidationError(f"{name} required")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer")


def get_seller_details(user_id) -> SellerDetails | None:
    return db.session.query(SellerDetails).filter_by(user_id=_int(user_id, "userId")).first()


def save_seller_details(data: dict) -> tuple[SellerDetails, bool]:
    """Create or update the shop's seller details. Returns (details, created)."""
    user_id = _int(data.get("userId"), "userId")
    if not db.session.get(User, user_id):
        raise NotFoundError("User not found")

    details = get_seller_details(user_id)
    created = details is None
    if created:
        require_fields(data, *SELLER_REQUIRED)
    else:
        blank = [k for k in SELLER_REQUIRED if k in data and not str(data[k] or "").strip()]
        if blank:
            raise ValidationError(f"Fields cannot be blank: {', '.join(blank)}")

    gst_number = str(data.get("gstNumber") or "").strip().upper()
    if gst_number and not GSTIN_RE.match(gst_number):
        raise ValidationError("Invalid GSTIN format")

    if created:
        details = SellerDetails(user_id=user_id)
        db.session.add(details)

    for key, attr in SELLER_FIELDS.items():
        if key in data and data[key] is not None:
            setattr(details, attr, str(data[key]).strip())
    if gst_number:
        details.gst_number = gst_number

    db.session.commit()
    return details, created


def get_bank_details(seller_id) -> BankDetails | None:
    return db.session.query(BankDetails).filter_by(seller_id=_int(seller_id, "sellerId")).first()


def save_bank_details(data: dict) -> BankDetails:
    require_fields(data, "sellerId", *BANK_FIELDS.keys(), message="All fields required")
    seller_id = _int(data["sellerId"], "sellerId")
    if not db.session.get(SellerDetails, seller_id):
        raise NotFoundError("Seller details not found")

    bank = get_bank_details(seller_id)
    if bank is None:
        bank = BankDetails(seller_id=seller_id)
        db.session.add(bank)

    for key, attr in BANK_FIELDS.items():
        setattr(bank, attr, str(data[key]).strip())

    bank.ifsc_code = bank.ifsc_code.upper()
    db.session.commit()
    return bank

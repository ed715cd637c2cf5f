from enum import Enum


class ErrorCode(str, Enum):
    # ---------------- GENERIC ----------------
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    INTERNAL_ERROR = "INTERNAL_ERROR"

    # ---------------- CLIENTS ----------------
    CLIENT_NOT_FOUND = "CLIENT_NOT_FOUND"
    CLIENT_EMAIL_MISSING = "CLIENT_EMAIL_MISSING"
    CLIENT_HAS_RELATED_RECORDS = "CLIENT_HAS_RELATED_RECORDS"

    # ---------------- BOOKINGS ----------------
    BOOKING_NOT_FOUND = "BOOKING_NOT_FOUND"
    BOOKING_UPDATE_FAILED = "BOOKING_UPDATE_FAILED"
    BOOKING_INVALID_AMOUNTS = "BOOKING_INVALID_AMOUNTS"
    BOOKING_HAS_ACTIVE_BILLING = "BOOKING_HAS_ACTIVE_BILLING"

    # ---------------- BOOKING CONFIRMATION ----------------
    CONFIRMATION_TOKEN_REQUIRED = "CONFIRMATION_TOKEN_REQUIRED"
    CONFIRMATION_TOKEN_INVALID = "CONFIRMATION_TOKEN_INVALID"
    CONFIRMATION_TOKEN_EXPIRED = "CONFIRMATION_TOKEN_EXPIRED"
    BOOKING_INVALID_STATE = "BOOKING_INVALID_STATE"

    # ---------------- INVOICES ----------------
    INVOICE_NOT_FOUND = "INVOICE_NOT_FOUND"
    INVOICE_UPDATE_FAILED = "INVOICE_UPDATE_FAILED"
    INVOICE_AMOUNT_MISMATCH = "INVOICE_AMOUNT_MISMATCH"
    INVOICE_DEPOSIT_EXCEEDS_TOTAL = "INVOICE_DEPOSIT_EXCEEDS_TOTAL"
    INVOICE_ALREADY_EXISTS_FOR_BOOKING = "INVOICE_ALREADY_EXISTS_FOR_BOOKING"
    INVOICE_NUMBER_EXISTS = "INVOICE_NUMBER_EXISTS"
    INVOICE_INVALID_STATE = "INVOICE_INVALID_STATE"
    INVOICE_TOTAL_BELOW_SCHEDULE = "INVOICE_TOTAL_BELOW_SCHEDULE"

    # ---------------- PAYMENT SCHEDULES ----------------
    PAYMENT_SCHEDULE_NOT_FOUND = "PAYMENT_SCHEDULE_NOT_FOUND"
    PAYMENT_SCHEDULE_INVALID_STATE = "PAYMENT_SCHEDULE_INVALID_STATE"
    PAYMENT_SCHEDULE_EXCEEDS_TOTAL = "PAYMENT_SCHEDULE_EXCEEDS_TOTAL"
    PAYMENT_SCHEDULE_BOOKING_MISMATCH = "PAYMENT_SCHEDULE_BOOKING_MISMATCH"
    PAYMENT_SCHEDULE_HAS_PAYMENTS = "PAYMENT_SCHEDULE_HAS_PAYMENTS"

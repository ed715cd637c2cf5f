from enum import Enum


class ActivityCode(str, Enum):
    # Clients
    CREATE_CLIENT = "CREATE_CLIENT"
    UPDATE_CLIENT = "UPDATE_CLIENT"
    DELETE_CLIENT = "DELETE_CLIENT"

    # Bookings
    CREATE_BOOKING = "CREATE_BOOKING"
    UPDATE_BOOKING = "UPDATE_BOOKING"
    UPDATE_BOOKING_STATUS = "UPDATE_BOOKING_STATUS"
    CONFIRM_BOOKING_BY_CLIENT = "CONFIRM_BOOKING_BY_CLIENT"
    REQUEST_BOOKING_CONFIRMATION = "REQUEST_BOOKING_CONFIRMATION"
    DELETE_BOOKING = "DELETE_BOOKING"

    # Invoices
    CREATE_INVOICE = "CREATE_INVOICE"
    AUTO_CREATE_INVOICE = "AUTO_CREATE_INVOICE"
    UPDATE_INVOICE = "UPDATE_INVOICE"
    DELETE_INVOICE = "DELETE_INVOICE"
    SEND_INVOICE = "SEND_INVOICE"

    # Payment schedules
    CREATE_PAYMENT_SCHEDULE = "CREATE_PAYMENT_SCHEDULE"
    UPDATE_PAYMENT_SCHEDULE = "UPDATE_PAYMENT_SCHEDULE"
    DELETE_PAYMENT_SCHEDULE = "DELETE_PAYMENT_SCHEDULE"
    RECORD_INSTALLMENT = "RECORD_INSTALLMENT"

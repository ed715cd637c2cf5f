from lensmanager.constants.activity_codes import ActivityCode


ACTIVITY_TEMPLATES = {
    # ---------------- CLIENTS ----------------
    ActivityCode.CREATE_CLIENT:
        "{actor_email} created client {target_name}",

    ActivityCode.UPDATE_CLIENT:
        "{actor_email} updated client {target_name}: {changes}",

    ActivityCode.DELETE_CLIENT:
        "{actor_email} deleted client {target_name}",

    # ---------------- BOOKINGS ----------------
    ActivityCode.CREATE_BOOKING:
        "{actor_email} created booking #{target_id} for {booking_date}",

    ActivityCode.UPDATE_BOOKING:
        "{actor_email} updated booking #{target_id}: {changes}",

    ActivityCode.UPDATE_BOOKING_STATUS:
        "{actor_email} changed booking #{target_id} status "
        "from {old_status} to {new_status}",

    ActivityCode.CONFIRM_BOOKING_BY_CLIENT:
        "Client confirmed booking #{target_id} through the confirmation link",

    ActivityCode.REQUEST_BOOKING_CONFIRMATION:
        "{actor_email} sent a confirmation request for booking #{target_id}",

    ActivityCode.DELETE_BOOKING:
        "{actor_email} deleted booking #{target_id}",

    # ---------------- INVOICES ----------------
    ActivityCode.CREATE_INVOICE:
        "{actor_email} created invoice {target_name}",

    ActivityCode.AUTO_CREATE_INVOICE:
        "Invoice {target_name} created automatically for booking #{booking_id}",

    ActivityCode.UPDATE_INVOICE:
        "{actor_email} updated invoice {target_name}: {changes}",

    ActivityCode.DELETE_INVOICE:
        "{actor_email} deleted invoice {target_name}",

    ActivityCode.SEND_INVOICE:
        "{actor_email} sent invoice {target_name} to {recipient}",

    # ---------------- PAYMENT SCHEDULES ----------------
    ActivityCode.CREATE_PAYMENT_SCHEDULE:
        "{actor_email} added payment line {target_name} of {amount}",

    ActivityCode.UPDATE_PAYMENT_SCHEDULE:
        "{actor_email} updated payment line {target_name}: {changes}",

    ActivityCode.DELETE_PAYMENT_SCHEDULE:
        "{actor_email} deleted payment line {target_name}",

    ActivityCode.RECORD_INSTALLMENT:
        "{actor_email} recorded payment of {amount} against {target_name}",
}

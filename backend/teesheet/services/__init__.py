from teesheet.services.booking_service import cancel_booking, create_booking, reschedule_booking, update_booking_players
from teesheet.services.tee_sheet_generator import generate_for_date, regenerate_range
from teesheet.services.template_resolver import resolve_effective_windows
from teesheet.services.waitlist_service import accept_waitlist_offer, join_waitlist, promote_waitlist_entry
from teesheet.services.window_compiler import compile_windows_for_date

__all__ = [
    "accept_waitlist_offer",
    "cancel_booking",
    "compile_windows_for_date",
    "create_booking",
    "generate_for_date",
    "join_waitlist",
    "promote_waitlist_entry",
    "regenerate_range",
    "reschedule_booking",
    "resolve_effective_windows",
    "update_booking_players",
]

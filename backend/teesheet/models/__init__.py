from teesheet.models.booking import Booking, BookingRoundLeg, TeeTimeAssignment
from teesheet.models.closure_block import ClosureBlock
from teesheet.models.golf_course import GolfCourse
from teesheet.models.idempotency_record import IdempotencyRecord
from teesheet.models.override import TeeSheetOverride, TeeSheetOverrideVersion, TeeSheetOverrideWindow
from teesheet.models.season import TeeSheetSeason, TeeSheetSeasonVersion, TeeSheetSeasonWeekdayWindow
from teesheet.models.tee_sheet import TeeSheet
from teesheet.models.tee_sheet_side import TeeSheetSide
from teesheet.models.tee_time import TeeTime
from teesheet.models.template import (
    TeeSheetTemplate,
    TeeSheetTemplateSide,
    TeeSheetTemplateSideAccess,
    TeeSheetTemplateSidePrice,
    TeeSheetTemplateVersion,
    TemplateVersionBookingWindow,
)
from teesheet.models.waitlist_entry import WaitlistEntry

__all__ = [
    "Booking",
    "BookingRoundLeg",
    "ClosureBlock",
    "GolfCourse",
    "IdempotencyRecord",
    "TeeSheet",
    "TeeSheetOverride",
    "TeeSheetOverrideVersion",
    "TeeSheetOverrideWindow",
    "TeeSheetSeason",
    "TeeSheetSeasonVersion",
    "TeeSheetSeasonWeekdayWindow",
    "TeeSheetSide",
    "TeeSheetTemplate",
    "TeeSheetTemplateSide",
    "TeeSheetTemplateSideAccess",
    "TeeSheetTemplateSidePrice",
    "TeeSheetTemplateVersion",
    "TeeTime",
    "TeeTimeAssignment",
    "TemplateVersionBookingWindow",
    "WaitlistEntry",
]

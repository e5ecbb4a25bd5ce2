from services.availability.models.profile import AvailabilityException as AvailabilityException
from services.availability.models.profile import AvailabilityOverride as AvailabilityOverride
from services.availability.models.profile import AvailabilityPattern as AvailabilityPattern
from services.availability.models.profile import AvailabilityProfile as AvailabilityProfile
from services.availability.models.profile import AvailabilityRules as AvailabilityRules
from services.availability.models.profile import BreakPeriod as BreakPeriod
from services.availability.models.profile import BufferTime as BufferTime
from services.availability.models.profile import ExceptionType as ExceptionType
from services.availability.models.profile import OverrideType as OverrideType
from services.availability.models.profile import PatternType as PatternType
from services.availability.models.profile import ProfileStatus as ProfileStatus
from services.availability.models.profile import WorkingHours as WorkingHours
from services.availability.models.query import AvailabilityQuery as AvailabilityQuery
from services.availability.models.query import AvailabilityResult as AvailabilityResult
from services.availability.models.query import (
    BulkAvailabilityRequest as BulkAvailabilityRequest,
)
from services.availability.models.query import Conflict as Conflict
from services.availability.models.query import QueryPreferences as QueryPreferences
from services.availability.models.query import Recommendation as Recommendation
from services.availability.models.slot import AvailabilitySlot as AvailabilitySlot
from services.availability.models.slot import SlotMetadata as SlotMetadata
from services.availability.models.slot import SlotStatus as SlotStatus
from services.availability.models.slot import SlotType as SlotType
from services.availability.models.slot import SourceType as SourceType

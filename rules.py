"""
Home Office thresholds used by the ILR residence calculator.

All values are fixed by guidance, not by the user. A rule revision
should only ever touch this file.
"""
from __future__ import annotations

from datetime import date

# Qualifying periods (years). 10 is the long residence route.
ILR_TRACKS = (2, 3, 5, 10)
TRANSITIONAL_TRACK = 10

# Standard rule: max full days outside the UK in any rolling 12 months.
MAX_ABSENCE_IN_12_MONTHS = 180

# Long residence: absences starting before this date follow the old rules.
TRANSITIONAL_CUTOVER_DATE = date(2024, 4, 11)
MAX_SINGLE_ABSENCE_BEFORE_CUTOVER = 184
MAX_TOTAL_ABSENCE_BEFORE_CUTOVER = 548

# Applications may be submitted up to 28 days before the period completes.
APPLICATION_LEAD_DAYS = 28

# Max days between visa issue and UK entry that still count toward the period.
MAX_ALLOWABLE_PRE_ENTRY_DAYS = 180

# How far past the earliest legal date we look for a compliant application date.
MAX_ILR_DATE_SEARCH_DAYS = 730

# Rolling-absence risk bands.
CAUTION_ABSENCE_DAYS = 150

# salescrm/sales_targets/constants.py
"""
Constants for sales targets
"""

MEASURES = ['revenue', 'margin']

MEASURE_LABELS = {
    'revenue': 'Revenue',
    'margin': 'Margin',
}

# Roles that may set targets for others
TARGET_SETTER_ROLES = ['admin', 'head', 'manager']

# Roles listed in target tables
TARGET_ROLES = ['head', 'manager', 'account_manager', 'staff']

# =====================================================================
# STATUS
# =====================================================================

STATUS_NO_TARGET = 'No Target'
STATUS_AHEAD = 'Ahead'
STATUS_ON_TRACK = 'On Track'
STATUS_BEHIND = 'Behind'

# Achieved above this multiple of the target counts as ahead
AHEAD_THRESHOLD = 1.05

STATUS_COLORS = {
    STATUS_AHEAD: '#10b981',
    STATUS_ON_TRACK: '#3b82f6',
    STATUS_BEHIND: '#ef4444',
    STATUS_NO_TARGET: '#9ca3af',
}

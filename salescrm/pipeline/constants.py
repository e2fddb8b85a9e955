# salescrm/pipeline/constants.py
"""
Constants for opportunities, pipeline items and activities
"""

# =====================================================================
# STAGES & STATUSES
# =====================================================================

# Display order of pipeline stages; unknown stages sort after these
STAGE_ORDER = [
    'Qualification',
    'Needs Analysis',
    'Proposal',
    'Negotiation',
    'Closed Won',
    'Won',
    'Closed Lost',
    'Lost',
]

WON_STAGES = ['Closed Won', 'Won']

# Stage that counts as won for target achievement (besides is_won)
CLOSED_WON_STAGE = 'Closed Won'
LOST_STAGES = ['Closed Lost', 'Lost']

# Opportunity.status values
STATUS_OPEN = 'open'
STATUS_WON = 'won'
STATUS_LOST = 'lost'
STATUS_CANCELLED = 'cancelled'
STATUS_ARCHIVED = 'archived'

# pipeline_items.status that carries the final costs
PIPELINE_ITEM_WON = 'won'

COST_COLUMNS = ['cost_of_goods', 'service_costs', 'other_expenses']

# =====================================================================
# ACTIVITIES
# =====================================================================

ACTIVITY_TYPES = ['Call', 'Email', 'Meeting']
DEFAULT_ACTIVITY_TYPE = 'Call'

ACTIVITY_TABLE = 'sales_activity_v2'
LEGACY_ACTIVITY_TABLE = 'sales_activity'

# =====================================================================
# SUMMARY
# =====================================================================

TOP_PERFORMERS_LIMIT = 5

# salescrm/org/constants.py
"""
Constants for the organisation hierarchy

Centralized configuration for:
- Role definitions and access levels
- Role assignment requirements
- Table names shared by the query classes
"""

# =====================================================================
# ROLE DEFINITIONS
# =====================================================================

# Full access: sees every user, opportunity and target
FULL_ACCESS_ROLES = ['admin']

# Scope access: sees a team (or entity) worth of users
TEAM_ACCESS_ROLES = ['head', 'manager']

# Self access: sees own data only
SELF_ACCESS_ROLES = ['account_manager', 'staff']

# Roles that report to a manager. 'sales' only exists in old rows.
REPORTING_ROLES = ['account_manager', 'staff', 'sales']

# Roles an admin can assign from the UI (staff is legacy, kept for display)
ASSIGNABLE_ROLES = ['admin', 'head', 'manager', 'account_manager']

# Role a profile gets when it is created on first sign-in
DEFAULT_SIGNUP_ROLE = 'account_manager'

# Placeholder role the user RPC returns for profiles without a role
PENDING_ROLE = 'pending'

ROLE_LABELS = {
    'admin': 'Admin',
    'head': 'Head',
    'manager': 'Manager',
    'account_manager': 'Account Manager',
    'staff': 'Staff',
    'pending': 'Pending',
}

# Sort order used by target tables
ROLE_SORT_ORDER = {
    'head': 0,
    'manager': 1,
    'account_manager': 2,
    'staff': 2,
}

# =====================================================================
# ASSIGNMENT REQUIREMENTS
# =====================================================================

# Org fields a role needs before the user is considered active.
# Field names follow the user_profiles columns (division_id is the team).
ROLE_REQUIREMENTS = {
    'admin': [],
    'head': ['entity_id'],
    'manager': ['entity_id', 'division_id'],
    'account_manager': ['entity_id', 'division_id', 'manager_id'],
    'staff': ['entity_id', 'division_id', 'manager_id'],
}

FIELD_LABELS = {
    'entity_id': 'entity',
    'division_id': 'team',
    'manager_id': 'manager',
}

# =====================================================================
# LANDING PAGES
# =====================================================================

LANDING_PAGES = {
    'admin': 'admin_dashboard',
    'head': 'executive_dashboard',
    'manager': 'team_dashboard',
    'account_manager': 'sales_dashboard',
    'staff': 'sales_dashboard',
}

PENDING_PAGE = 'pending'

# =====================================================================
# CACHE SETTINGS
# =====================================================================

CACHE_TTL_SECONDS = 300

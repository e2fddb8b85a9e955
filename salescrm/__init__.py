# salescrm/__init__.py
"""
Sales CRM Package

Role-based sales CRM on Streamlit: entities -> teams -> users, pipeline,
sales targets and admin user management.

Subpackages:
- org: Hierarchy model, visibility resolution, pending classification
- pipeline: Scoped opportunities / activities and pipeline metrics
- sales_targets: Periods, achievement aggregation, target tables
- admin: User management, drafts, entity / team management

Usage:
    from salescrm import AuthManager, config, get_db_engine
    from salescrm.org import AccessControl
"""

# Authentication
from .auth import (
    AuthManager,
)

# Configuration
from .config import (
    config,
    Config,
    IS_RUNNING_ON_CLOUD,
    APP_CONFIG,
)

# Database
from .db import (
    get_db_engine,
    check_db_connection,
    execute_query,
    execute_query_df,
    execute_update,
    call_rpc,
    get_connection_pool_status,
)

# Errors & events
from .errors import CrmError, ValidationError, PermissionDenied, humanize_rpc_error
from .events import bus, OrgEvent, EventBus

__all__ = [
    # Auth
    'AuthManager',

    # Config
    'config',
    'Config',
    'IS_RUNNING_ON_CLOUD',
    'APP_CONFIG',

    # Database
    'get_db_engine',
    'check_db_connection',
    'execute_query',
    'execute_query_df',
    'execute_update',
    'call_rpc',
    'get_connection_pool_status',

    # Errors & events
    'CrmError',
    'ValidationError',
    'PermissionDenied',
    'humanize_rpc_error',
    'bus',
    'OrgEvent',
    'EventBus',
]

__version__ = '1.0.0'

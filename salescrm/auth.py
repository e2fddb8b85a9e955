# salescrm/auth.py
"""
Authentication Manager for the sales CRM

Version: 1.0.0
Features:
- SHA256 + salt password check against app_users
- Profile creation on first sign-in (default role: account_manager)
- Session management with timeout
- Role guards for pages
"""

import streamlit as st
import hashlib
import secrets
from datetime import datetime, timedelta
from typing import Dict, Optional, Tuple, List
import logging

from .db import execute_query, execute_update
from .config import config
from .org.classifier import describe_missing, is_pending, missing_assignments
from .org.models import UserProfile
from .org.queries import OrgQueries

logger = logging.getLogger(__name__)

SESSION_KEYS = [
    'authenticated', 'user_id', 'user_email', 'user_fullname',
    'profile_id', 'user_role', 'login_time', 'debug_mode',
]


class AuthManager:
    """Authentication manager for the CRM pages"""

    def __init__(self, engine=None):
        self.engine = engine
        self.session_timeout = timedelta(
            hours=config.get_app_setting("SESSION_TIMEOUT_HOURS", 8)
        )

    # ==================== PASSWORD HASHING ====================

    def hash_password(self, password: str, salt: str = None) -> Tuple[str, str]:
        """
        Hash password with SHA256 + salt

        Returns:
            Tuple of (hash, salt)
        """
        if not salt:
            salt = secrets.token_hex(32)

        pwd_hash = hashlib.sha256((password + salt).encode()).hexdigest()
        return pwd_hash, salt

    def verify_password(self, password: str, stored_hash: str, salt: str) -> bool:
        pwd_hash, _ = self.hash_password(password, salt)
        return secrets.compare_digest(pwd_hash, stored_hash or '')

    # ==================== AUTHENTICATION ====================

    def authenticate(self, email: str, password: str) -> Tuple[bool, Dict]:
        """
        Authenticate user against app_users

        Args:
            email: Login email
            password: Plain text password

        Returns:
            Tuple of (success, user_info or {'error': message})
        """
        email = (email or '').strip().lower()
        if not email or not password:
            return False, {"error": "Please enter email and password"}

        try:
            rows = execute_query(
                """
                SELECT id, email, full_name, password_hash, password_salt, is_active
                FROM app_users
                WHERE LOWER(email) = :email
                """,
                {'email': email},
                engine=self.engine,
            )
        except Exception as e:
            logger.error(f"Authentication error: {e}")
            return False, {"error": "Authentication failed. Please try again."}

        if not rows:
            logger.warning(f"Login attempt for non-existent user: {email}")
            return False, {"error": "Invalid email or password"}

        user = rows[0]

        if not user['is_active']:
            logger.warning(f"Login attempt for inactive user: {email}")
            return False, {"error": "Account is inactive. Please contact administrator."}

        if not self.verify_password(password, user['password_hash'], user['password_salt']):
            logger.warning(f"Invalid password for user: {email}")
            return False, {"error": "Invalid email or password"}

        profile = OrgQueries(self.engine).ensure_profile(
            str(user['id']), user['email'], user.get('full_name')
        )
        if profile is None:
            return False, {"error": "Could not load your profile. Please try again."}

        self._update_last_login(user['id'])
        logger.info(f"User {email} authenticated successfully")

        return True, {
            'id': str(user['id']),
            'email': user['email'],
            'full_name': profile.full_name or user['email'],
            'profile_id': profile.id,
            'role': profile.role.value if profile.role else None,
            'login_time': datetime.now(),
        }

    def _update_last_login(self, user_id):
        """Update user's last login timestamp"""
        try:
            execute_update(
                "UPDATE app_users SET last_login = CURRENT_TIMESTAMP WHERE id = :user_id",
                {'user_id': user_id},
                engine=self.engine,
            )
        except Exception as e:
            logger.warning(f"Could not update last_login: {e}")

    # ==================== SESSION MANAGEMENT ====================

    def check_session(self) -> bool:
        """Check if user session is valid and not expired"""
        if not st.session_state.get('authenticated'):
            return False

        login_time = st.session_state.get('login_time')
        if login_time:
            elapsed = datetime.now() - login_time
            if elapsed > self.session_timeout:
                logger.info(f"Session expired for user: {st.session_state.get('user_email')}")
                self.logout()
                return False

        return True

    def login(self, user_info: Dict):
        """Initialize user session after successful authentication"""
        st.session_state.authenticated = True
        st.session_state.user_id = user_info['id']
        st.session_state.user_email = user_info['email']
        st.session_state.user_fullname = user_info['full_name']
        st.session_state.profile_id = user_info['profile_id']
        st.session_state.user_role = user_info['role']
        st.session_state.login_time = user_info['login_time']
        st.session_state.debug_mode = config.is_feature_enabled("DEBUG_MODE")

        logger.info(f"User {user_info['email']} logged in (role={user_info['role']})")

    def logout(self):
        """Clear user session and cache"""
        email = st.session_state.get('user_email', 'Unknown')

        for key in SESSION_KEYS:
            if key in st.session_state:
                del st.session_state[key]

        st.cache_data.clear()
        logger.info(f"User {email} logged out")

    # ==================== PROFILE ====================

    def get_current_profile(self) -> Optional[UserProfile]:
        """
        Reload the signed-in user's profile.

        Role and assignment can change while a session is open (admin edits),
        so every page run reads them fresh and updates the session copy.
        """
        user_id = st.session_state.get('user_id')
        if not user_id:
            return None

        profile = OrgQueries(self.engine).get_profile_by_user_id(user_id)
        if profile is not None:
            st.session_state.profile_id = profile.id
            st.session_state.user_role = profile.role.value if profile.role else None
        return profile

    # ==================== ACCESS CONTROL ====================

    def require_auth(self) -> bool:
        """
        Require authentication to access a page
        Use at the beginning of each protected page
        """
        if not self.check_session():
            st.warning("⚠️ Please login to access this page")
            st.stop()
            return False
        return True

    def require_role(self, allowed_roles: List[str]) -> bool:
        """
        Require specific role(s) to access a page

        Usage:
            auth.require_role(['admin', 'head'])
        """
        if not self.require_auth():
            return False

        current_role = st.session_state.get('user_role') or ''

        if current_role not in allowed_roles:
            st.error(f"🚫 Access denied. Required role: {', '.join(allowed_roles)}")
            st.stop()
            return False

        return True

    def require_active_profile(self) -> UserProfile:
        """
        Require a signed-in user whose role assignment is complete.

        Pending users see the pending notice and the page stops.
        """
        self.require_auth()

        profile = self.get_current_profile()
        if is_pending(profile):
            show_pending_notice(profile)
            st.stop()
        return profile

    # ==================== USER INFO HELPERS ====================

    def get_user_display_name(self) -> str:
        """Get user's display name for UI"""
        return st.session_state.get('user_fullname') or st.session_state.get('user_email', 'User')


# ==================== PENDING NOTICE ====================

def show_pending_notice(profile: Optional[UserProfile]):
    """Shown to users whose role / entity / team / manager is not set yet."""
    st.title("⏳ Waiting for Assignment")
    st.info(
        "Your account has been created but an administrator still needs to "
        "assign your role, entity and team. You will get access to your "
        "dashboard once the assignment is complete."
    )
    if profile is not None:
        missing = missing_assignments(profile.role, profile.entity_id, profile.division_id, profile.manager_id)
        if missing:
            st.caption(describe_missing(profile.role, missing))


# ==================== MODULE EXPORTS ====================

__all__ = [
    'AuthManager',
    'show_pending_notice',
]

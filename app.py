# app.py
"""
Sales CRM - Main Entry Point

Signs the user in, then routes to the pending notice or to the dashboard
of their role.

Version: 1.0.0
"""

import streamlit as st
from salescrm.auth import AuthManager, show_pending_notice
from salescrm.db import check_db_connection
from salescrm.org import landing_page
from salescrm.org.constants import PENDING_PAGE, ROLE_LABELS
import logging

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# ==================== PAGE CONFIGURATION ====================

APP_NAME = "Sales CRM"
APP_ICON = "📈"
APP_VERSION = "1.0.0"

st.set_page_config(
    page_title=APP_NAME,
    page_icon=APP_ICON,
    layout="wide",
    initial_sidebar_state="expanded"
)

# Landing page keys -> page scripts
PAGE_FILES = {
    'admin_dashboard': "pages/3_🛠️_Admin.py",
    'executive_dashboard': "pages/1_📊_Sales_Dashboard.py",
    'team_dashboard': "pages/1_📊_Sales_Dashboard.py",
    'sales_dashboard': "pages/1_📊_Sales_Dashboard.py",
}

# ==================== CUSTOM CSS ====================

st.markdown("""
<style>
    .main-header {
        font-size: 2.5rem;
        font-weight: bold;
        margin-bottom: 0.5rem;
        color: #1f77b4;
    }

    .sub-header {
        font-size: 1.1rem;
        color: #666;
        margin-bottom: 2rem;
    }

    .footer {
        text-align: center;
        color: #888;
        padding: 1rem;
        margin-top: 3rem;
        border-top: 1px solid #eee;
        font-size: 0.9rem;
    }
</style>
""", unsafe_allow_html=True)

# ==================== INITIALIZATION ====================

auth = AuthManager()

# ==================== HELPER FUNCTIONS ====================

def show_login_page():
    """Display the login page"""
    st.markdown(f'<p class="main-header">{APP_ICON} {APP_NAME}</p>', unsafe_allow_html=True)
    st.markdown('<p class="sub-header">Pipeline, targets and team performance</p>', unsafe_allow_html=True)

    db_ok, db_error = check_db_connection()
    if not db_ok:
        st.error(f"⚠️ {db_error}")
        st.info("Please check your network connection or contact IT support.")
        return

    col1, col2, col3 = st.columns([1, 2, 1])

    with col2:
        with st.form("login_form", clear_on_submit=False):
            st.markdown("#### 🔐 Login")

            email = st.text_input("Email", placeholder="you@company.com", key="login_email")
            password = st.text_input("Password", type="password", key="login_password")

            submit = st.form_submit_button("🔑 Login", type="primary", use_container_width=True)

            if submit:
                if not email or not password:
                    st.warning("Please enter both email and password")
                else:
                    with st.spinner("Authenticating..."):
                        success, result = auth.authenticate(email, password)

                    if success:
                        auth.login(result)
                        st.rerun()
                    else:
                        st.error(result.get("error", "Authentication failed"))


def show_sidebar(profile):
    with st.sidebar:
        st.markdown(f"### 👤 {auth.get_user_display_name()}")
        role = profile.role.value if profile and profile.role else 'pending'
        st.caption(f"Role: {ROLE_LABELS.get(role, role)}")
        st.markdown("---")

        if st.button("🚪 Logout", use_container_width=True):
            auth.logout()
            st.rerun()


def show_main_app():
    """Route a signed-in user"""
    profile = auth.get_current_profile()
    show_sidebar(profile)

    page = landing_page(profile)
    logger.info(f"Landing {st.session_state.get('user_email')} on {page}")

    if page == PENDING_PAGE:
        show_pending_notice(profile)
    else:
        st.switch_page(PAGE_FILES[page])

    st.markdown(f"""
    <div class="footer">
        <strong>{APP_NAME}</strong> v{APP_VERSION}
    </div>
    """, unsafe_allow_html=True)


# ==================== MAIN ====================

def main():
    """Main application entry point"""
    if not auth.check_session():
        show_login_page()
    else:
        show_main_app()


if __name__ == "__main__":
    main()

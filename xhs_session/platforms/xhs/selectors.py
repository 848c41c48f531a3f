"""Xiaohongshu DOM markers used for login-state detection.

Each constant is a tuple so the probe can try every entry; a hit on any
one sets the corresponding signal. Only what is needed to tell a logged-in
page from a logged-out one lives here.
"""

# --- Profile / avatar / username markers (strongest positive signal) ---
USER_SELECTORS: tuple[str, ...] = (
    ".avatar",
    ".user-avatar",
    ".profile-avatar",
    ".user-name",
    ".username",
    ".profile-name",
    ".user-info",
    ".header-user",
    ".user-menu",
    ".profile-menu",
    ".account-menu",
    ".user-center",
    ".profile-center",
    '[data-testid*="avatar"]',
    '[data-testid*="user"]',
    '[data-testid*="profile"]',
)

# --- Generic site furniture ---
NAVIGATION_SELECTORS: tuple[str, ...] = (
    ".nav",
    ".navigation",
    ".menu",
    ".header-nav",
    ".top-nav",
    ".main-nav",
    '[data-testid*="nav"]',
)

# --- Feed / search-result cards ---
CONTENT_SELECTORS: tuple[str, ...] = (
    ".note-item",
    ".feed-item",
    ".content-item",
    ".note-card",
    ".search-item",
    ".result-item",
    ".waterfall-item",
    '[class*="feeds-card"]',
)

# --- Login modal containers ---
LOGIN_MODAL_SELECTORS: tuple[str, ...] = (
    ".login-container",
    ".passport-login-container",
    ".login-dialog",
    ".login-box",
)

# --- Body-text markers of an explicit "please log in" prompt ---
LOGIN_PROMPT_TEXTS: tuple[str, ...] = (
    "登录后查看搜索结果",
    "登录后查看更多",
    "扫码登录",
    "手机号登录",
    "请在手机上确认",
    "请先登录",
)

# --- Storage keys that suggest a logged-in user ---
STORAGE_KEY_MARKERS: tuple[str, ...] = ("user", "login", "session")

"""Shared constants for the branch engine.

Reserved ids, default titles and the tag vocabulary live here so that
branches.py, models.py and the tests agree on the same values.
"""

# ─────────────────────────────────────────────────────────────────────────────
# Main branch
# ─────────────────────────────────────────────────────────────────────────────

MAIN_BRANCH_ID = "main"
MAIN_BRANCH_TITLE = "Main Conversation"
MAIN_BRANCH_DESCRIPTION = "The primary conversation thread"
ROOT_MESSAGE_ID = "root"  # Branch-point message id for main (no real message)
MAIN_BRANCH_REASON = "Initial conversation"

# ─────────────────────────────────────────────────────────────────────────────
# Branch creation / loading
# ─────────────────────────────────────────────────────────────────────────────

DEFAULT_BRANCH_REASON = "User-created branch"
LOADED_BRANCH_REASON = "Loaded from chat"
DESCRIPTION_PREVIEW_CHARS = 50  # Message content shown in a new branch's description

# ─────────────────────────────────────────────────────────────────────────────
# Tags
# ─────────────────────────────────────────────────────────────────────────────

TAG_MAIN = "main"
TAG_USER_CREATED = "user-created"
TAG_LOADED = "loaded"
TAG_MERGED = "merged"
TAG_HAS_CHILDREN = "has-children"

# ─────────────────────────────────────────────────────────────────────────────
# Chat metadata keys (caller-facing, camelCase)
# ─────────────────────────────────────────────────────────────────────────────

META_ACTIVE_BRANCH = "activeBranch"
META_BRANCH_COUNT = "branchCount"

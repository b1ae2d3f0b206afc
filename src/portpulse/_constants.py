"""Internal constants shared across the library."""

USER_AGENT = "portpulse/1.0"

# ------------------------------------------------------------------
# Report store (PostgREST dialect)
# ------------------------------------------------------------------

CHECKPOINT_VIEW_PATH = "/rest/v1/checkpoint_status_view"
REPORTS_PATH = "/rest/v1/reports"
BLACKLIST_PATH = "/rest/v1/blacklist_items"
VOTE_RPC_PATH = "/rest/v1/rpc/increment_blacklist_count"

# ------------------------------------------------------------------
# Traffic
# ------------------------------------------------------------------

BAIDU_TRAFFIC_URL = "https://api.map.baidu.com/traffic/v1/bound"
#: Half-width in degrees of the box queried around a checkpoint (~500 m).
BAIDU_BOUND_DELTA = 0.005

TRAFFIC_TIMEOUT_SECONDS = 3.0

DESC_TIMEOUT = "Traffic data unavailable (timeout)"
DESC_NO_DATA = "No traffic data"
DESC_UNAVAILABLE = "Traffic data unavailable"
DESC_SURROUNDINGS_CLEAR = "Surroundings clear"
DESC_ROADS_CLEAR = "Roads clear"
DESC_SLOW = "Slow traffic"
DESC_HEAVY = "Heavy traffic"
DESC_SEVERE = "Severe congestion"

# ------------------------------------------------------------------
# Refresh cadence
# ------------------------------------------------------------------

CHECKPOINT_REFRESH_SECONDS = 15.0
BLACKLIST_REFRESH_SECONDS = 10.0

# ------------------------------------------------------------------
# User-facing notices
# ------------------------------------------------------------------

NOTICE_OFFLINE = "Failed to fetch live data, showing offline data"
NOTICE_REFRESH_FAILED = "Could not refresh live data, showing the last known state"
NOTICE_SYNCING = "Syncing..."
NOTICE_REPORT_OK = "Report submitted. Thanks for the update!"
NOTICE_VOTE_OK = "Vote recorded. Thanks for the tip!"
NOTICE_ITEM_OK = "Item submitted. It will appear once approved."
NOTICE_WRITE_FAILED = "Submission failed, please retry later"
NOTICE_WRITE_TIMEOUT = "Network timed out, please retry"

LAST_UPDATED_NONE = "No data"
LAST_UPDATED_NOW = "Just now"
LAST_UPDATED_HOUR = "Over an hour ago"
LAST_UPDATED_OFFLINE = "Offline data"

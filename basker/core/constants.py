"""
Core constants used across the application. Keep these simple and documented.
"""

# XRPC method ids (com.atproto lexicons)
CREATE_SESSION = "com.atproto.server.createSession"
REFRESH_SESSION = "com.atproto.server.refreshSession"
CREATE_RECORD = "com.atproto.repo.createRecord"
PUT_RECORD = "com.atproto.repo.putRecord"
GET_RECORD = "com.atproto.repo.getRecord"
LIST_RECORDS = "com.atproto.repo.listRecords"
DELETE_RECORD = "com.atproto.repo.deleteRecord"

# Hard upper bound of listRecords; larger collections are only seen up to this page
MAX_LIST_LIMIT: int = 100

# XRPC error names that mean "the record or repo is not there"
NOT_FOUND_ERRORS: frozenset[str] = frozenset({"RecordNotFound", "NotFound"})

# Payload keys the server or the writer stamps; ignored when diffing
VOLATILE_PAYLOAD_KEYS: frozenset[str] = frozenset({"$type", "createdAt", "updatedAt"})

ADMIN_PERMISSIONS: tuple[str, ...] = ("verify_work", "manage_companies", "view_analytics", "manage_users")

from datetime import datetime, timezone

utc_now = lambda: datetime.now(timezone.utc)

from __future__ import annotations
import json
import os
import sys
import uvicorn

mode = os.environ.get("DAYCARE_RUN_MODE", "api").lower()
if mode == "scheduled-report":
    from daycare.app import get_dispatcher
    force = os.environ.get("FORCE_SEND", "").lower() in ("1", "true", "yes")
    dispatcher = get_dispatcher()
    result = dispatcher.scheduled_report(secret=dispatcher.settings.cron_secret, force=force)
    print(json.dumps(result.body, ensure_ascii=False))
    sys.exit(0 if result.status_code == 200 else 1)
else:
    from daycare.app import app
    uvicorn.run(app, host="0.0.0.0", port=int(os.environ.get('PORT','8080')))

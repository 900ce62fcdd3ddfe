"""
Run one scheduled digest cycle from the command line.

Workflow:
1. Load environment variables from `.env` and validate them.
2. Find profiles due in the current UTC hour (Supabase `profiles` table).
3. For each user, research their tickers with Gemini, email the digest via
   Resend and record it in the `digests` table.
4. Print the cycle report as JSON.

Useful when the scheduler is a plain crontab rather than an HTTP cron service.
"""

import json
import logging
import sys

from stock_digest.config import configure_logging, load_settings
from stock_digest.digest import DigestService


def main() -> int:
    """Entry point for the script."""
    configure_logging()

    try:
        settings = load_settings()
    except RuntimeError as exc:
        logging.critical(str(exc))
        return 1

    configure_logging(settings.log_level)
    service = DigestService.from_settings(settings)

    try:
        report = service.run_digest_cycle()
    except Exception:
        logging.critical("Failed to query scheduled profiles. Exiting.", exc_info=True)
        return 1

    print(json.dumps(report.to_response(), indent=2))
    failed = [r for r in report.results if r.status == "error"]
    if failed:
        logging.warning("%d user(s) failed in this cycle.", len(failed))
    logging.info("Processing complete.")
    return 0


if __name__ == "__main__":
    sys.exit(main())

"""Rewrite legacy invoice statuses ("Paid", "Partial", "Overdue", ...) to the canonical enum.

Run once against the configured DATABASE_URL after upgrading.
"""

from backend.app.core.logging import configure_logging
from backend.app.db.session import SessionLocal
from backend.app.services.invoice_status_migration import normalize_invoice_statuses


def main() -> int:
    configure_logging()
    db = SessionLocal()
    try:
        changed = normalize_invoice_statuses(db)
    finally:
        db.close()
    print(f"Normalised {changed} invoice statuses.")
    return changed


if __name__ == "__main__":
    main()

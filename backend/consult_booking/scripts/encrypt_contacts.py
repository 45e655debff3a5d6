"""
Contact encryption maintenance.

    python -m consult_booking.scripts.encrypt_contacts generate-key
    python -m consult_booking.scripts.encrypt_contacts encrypt [--dry-run]

`encrypt` seals reservation contacts that were imported as plaintext and
refreshes their lookup digest. Already encrypted values are left alone,
so the command can be re-run safely. Back up the database first.
"""

import argparse
import logging
from dataclasses import dataclass
from typing import Callable

from sqlalchemy.orm import Session

from ..config import settings
from ..database import SessionLocal
from ..models import Reservation
from ..utils.encryption import FieldCipher, generate_key, get_cipher, is_encrypted
from ..utils.hashing import contact_digest

logger = logging.getLogger(__name__)


@dataclass
class ContactMigrationReport:
    encrypted: int = 0
    skipped: int = 0
    failed: int = 0


def encrypt_plaintext_contacts(
    db: Session,
    cipher: FieldCipher,
    digest: Callable[[str], str] = contact_digest,
    dry_run: bool = False,
) -> ContactMigrationReport:
    report = ContactMigrationReport()

    for reservation in db.query(Reservation).order_by(Reservation.created_at):
        value = reservation.contact_encrypted
        if is_encrypted(value):
            report.skipped += 1
            continue
        if not value or not value.strip():
            logger.warning(f"Reservation {reservation.id} has no contact, skipping")
            report.skipped += 1
            continue

        try:
            contact = value.strip()
            sealed, contact_hash = cipher.encrypt(contact), digest(contact)
        except Exception:
            logger.exception(f"Failed to encrypt contact of reservation {reservation.id}")
            report.failed += 1
            continue

        reservation.contact_encrypted = sealed
        reservation.contact_digest = contact_hash
        report.encrypted += 1

    if dry_run:
        db.rollback()
    else:
        db.commit()

    logger.info(
        f"Contact encryption {'(dry run) ' if dry_run else ''}finished: "
        f"encrypted={report.encrypted}, skipped={report.skipped}, failed={report.failed}"
    )
    return report


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Contact encryption maintenance")
    parser.add_argument("command", choices=["generate-key", "encrypt"], help="Command to execute")
    parser.add_argument("--dry-run", action="store_true", help="encrypt: report without writing")
    args = parser.parse_args(argv)

    if args.command == "generate-key":
        print(generate_key())
        return 0

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    db = SessionLocal()
    try:
        report = encrypt_plaintext_contacts(db, get_cipher(), dry_run=args.dry_run)
    finally:
        db.close()
    return 1 if report.failed else 0


if __name__ == "__main__":
    raise SystemExit(main())

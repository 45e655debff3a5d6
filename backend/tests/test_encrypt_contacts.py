"""Tests for the contact encryption maintenance command."""
from unittest.mock import patch

import pytest

from consult_booking.models import Reservation
from consult_booking.scripts import encrypt_contacts
from consult_booking.scripts.encrypt_contacts import encrypt_plaintext_contacts, main
from consult_booking.utils.encryption import FieldCipher, decode_key, get_cipher, is_encrypted
from consult_booking.utils.hashing import contact_digest

from conftest import TOMORROW, local_instant


@pytest.fixture
def legacy_row(db_session, insert_reservation):
    """A reservation whose contact was imported without encryption."""
    row = insert_reservation(local_instant(TOMORROW, 10), local_instant(TOMORROW, 11), contact="legacy@example.com")
    row.contact_encrypted = " legacy@example.com "
    row.contact_digest = "stale"
    db_session.commit()
    return row


@pytest.mark.unit
class TestEncryptPlaintextContacts:

    def test_plaintext_is_sealed(self, db_session, cipher, legacy_row, insert_reservation):
        sealed = insert_reservation(local_instant(TOMORROW, 12), local_instant(TOMORROW, 13))
        original_token = sealed.contact_encrypted

        report = encrypt_plaintext_contacts(db_session, cipher)

        assert (report.encrypted, report.skipped, report.failed) == (1, 1, 0)
        db_session.expire_all()
        row = db_session.get(Reservation, legacy_row.id)
        assert is_encrypted(row.contact_encrypted)
        assert cipher.decrypt(row.contact_encrypted) == "legacy@example.com"
        assert row.contact_digest == contact_digest("legacy@example.com")
        assert db_session.get(Reservation, sealed.id).contact_encrypted == original_token

    def test_second_run_is_noop(self, db_session, cipher, legacy_row):
        encrypt_plaintext_contacts(db_session, cipher)
        report = encrypt_plaintext_contacts(db_session, cipher)

        assert (report.encrypted, report.skipped) == (0, 1)

    def test_dry_run_writes_nothing(self, db_session, cipher, legacy_row):
        report = encrypt_plaintext_contacts(db_session, cipher, dry_run=True)

        assert report.encrypted == 1
        db_session.expire_all()
        assert db_session.get(Reservation, legacy_row.id).contact_encrypted == " legacy@example.com "

    def test_failing_row_is_counted(self, db_session, cipher, legacy_row):
        def broken_digest(contact):
            raise RuntimeError("digest key missing")

        report = encrypt_plaintext_contacts(db_session, cipher, digest=broken_digest)

        assert (report.encrypted, report.failed) == (0, 1)
        db_session.expire_all()
        assert db_session.get(Reservation, legacy_row.id).contact_encrypted == " legacy@example.com "


@pytest.mark.unit
class TestCommandLine:

    def test_generate_key(self, capsys):
        assert main(["generate-key"]) == 0

        key = capsys.readouterr().out.strip()
        assert len(decode_key(key)) == 32
        FieldCipher(decode_key(key))

    def test_encrypt_command(self, db_session, session_factory, legacy_row):
        with patch.object(encrypt_contacts, "SessionLocal", session_factory):
            assert main(["encrypt"]) == 0

        db_session.expire_all()
        row = db_session.get(Reservation, legacy_row.id)
        assert get_cipher().decrypt(row.contact_encrypted) == "legacy@example.com"

    def test_command_required(self):
        with pytest.raises(SystemExit):
            main([])
